"""Abstract backend contract consumed by the login coordinator.

The coordinator delegates every real operation -- talking to Microsoft,
minting offline identities, persisting the session -- to a
:class:`CommandBridge`. Each method is a request/response call that
suspends the caller until the backend resolves or fails.

To plug in a different backend (a native helper process, an RPC
service, a test double), subclass :class:`CommandBridge` and implement
the abstract coroutines.

See Also:
    :class:`~launchauth.bridge.launcher.LauncherBridge` -- the built-in
    backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from launchauth.exceptions import AuthError
from launchauth.models import Account, DeviceAuthorizationChallenge


class CommandBridge(ABC):
    """Backend operations used by :class:`~launchauth.auth.coordinator.AuthCoordinator`."""

    @abstractmethod
    async def get_active_account(self) -> Optional[Account]:
        """Return the currently active account (e.g. a persisted session), if any."""
        ...

    @abstractmethod
    async def start_device_authorization(self) -> DeviceAuthorizationChallenge:
        """Request a new device/user code pair.

        Raises:
            LaunchAuthError: If the challenge cannot be obtained.
        """
        ...

    @abstractmethod
    async def complete_device_authorization(self, device_code: str) -> Account:
        """Exchange *device_code* for an account. Called once per poll.

        Raises:
            DeviceFlowError: With kind ``AUTHORIZATION_PENDING`` or
                ``SLOW_DOWN`` while the user has not finished, or a
                terminal kind when the code can no longer succeed.
            LaunchAuthError: On any other failure.
        """
        ...

    @abstractmethod
    async def login_offline(self, username: str) -> Account:
        """Create and activate an offline account for *username*."""
        ...

    @abstractmethod
    async def logout(self) -> None:
        """Forget the active account."""
        ...

    async def refresh_account(self) -> Account:
        """Renew the tokens of the active account.

        The default implementation reports that refreshing is unsupported.
        """
        raise AuthError(f"{type(self).__name__} does not support refreshing accounts")
