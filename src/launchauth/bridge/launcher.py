"""Built-in backend: Microsoft login, offline accounts, and session persistence.

:class:`LauncherBridge` implements :class:`~launchauth.bridge.base.CommandBridge`
on top of :class:`~launchauth.bridge.microsoft.MicrosoftAuthClient` and
:class:`~launchauth.auth.account_store.AccountStore`. While it finishes
a Microsoft login it publishes progress lines on the
:data:`~launchauth.events.AUTH_PROGRESS_EVENT` channel of the shared
:class:`~launchauth.events.EventBus`.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from launchauth.auth.account_store import AccountStore
from launchauth.bridge.base import CommandBridge
from launchauth.bridge.microsoft import MicrosoftAuthClient
from launchauth.events import AUTH_PROGRESS_EVENT, EventBus
from launchauth.exceptions import AuthError, ValidationError
from launchauth.models import Account, AccountType, DeviceAuthorizationChallenge

logger = logging.getLogger(__name__)


def offline_uuid(username: str) -> str:
    """Return the stable offline UUID for *username*.

    A name-based (version 3, MD5) UUID in the OID namespace, so the same
    name always maps to the same player identity.
    """
    return str(uuid.uuid3(uuid.NAMESPACE_OID, username))


class LauncherBridge(CommandBridge):
    """Backend used by the CLI.

    Successful logins are written to *store* before they are returned.
    A device login that completes after the coordinator cancelled the
    flow is therefore still saved, and the next
    :meth:`~launchauth.auth.AuthCoordinator.check_account` reports it.
    Call :meth:`~launchauth.auth.AuthCoordinator.aclose` to cancel the
    poll task itself, or :meth:`logout` to drop the saved account.

    Args:
        microsoft: HTTP client for the Microsoft and Xbox endpoints.
        store: Where the active account is persisted.
        events: Bus receiving progress messages.
    """

    def __init__(
        self,
        microsoft: MicrosoftAuthClient,
        store: AccountStore,
        events: EventBus,
    ) -> None:
        self._microsoft = microsoft
        self._store = store
        self._events = events

    async def get_active_account(self) -> Optional[Account]:
        return self._store.load()

    async def start_device_authorization(self) -> DeviceAuthorizationChallenge:
        challenge = await self._microsoft.request_device_code()
        logger.info("Device code issued, expires in %ss", challenge.expires_in)
        return challenge

    async def complete_device_authorization(self, device_code: str) -> Account:
        token_data = await self._microsoft.poll_token(device_code)
        self._progress("Microsoft sign-in complete")
        account = await self._microsoft.login_game(token_data, self._progress)
        self._store.save(account)
        self._progress(f"Signed in as {account.username}")
        logger.info("Microsoft account '%s' activated", account.username)
        return account

    async def login_offline(self, username: str) -> Account:
        if not username.strip():
            raise ValidationError("Username cannot be empty")
        account = Account(
            type=AccountType.OFFLINE,
            username=username,
            uuid=offline_uuid(username),
        )
        self._store.save(account)
        logger.info("Offline account '%s' activated", username)
        return account

    async def logout(self) -> None:
        self._store.clear()

    async def refresh_account(self) -> Account:
        """Renew the stored Microsoft session; offline accounts are returned unchanged.

        Raises:
            AuthError: If there is no stored account, it has no refresh
                token, or Microsoft rejects the refresh.
        """
        account = self._store.load()
        if account is None:
            raise AuthError("No active account to refresh")
        if account.type == AccountType.OFFLINE:
            return account
        if not account.refresh_token:
            raise AuthError("Stored Microsoft account has no refresh token; log in again")

        self._progress("Refreshing Microsoft session...")
        token_data = await self._microsoft.refresh(account.refresh_token)
        if "refresh_token" not in token_data:
            token_data = {**token_data, "refresh_token": account.refresh_token}
        refreshed = await self._microsoft.login_game(token_data, self._progress)
        self._store.save(refreshed)
        return refreshed

    def _progress(self, message: str) -> None:
        self._events.emit(AUTH_PROGRESS_EVENT, message)
