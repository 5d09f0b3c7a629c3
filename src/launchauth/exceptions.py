"""Exception hierarchy for launchauth.

All exceptions inherit from :class:`LaunchAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`launchauth.exit_codes`.
The top-level error handler in :func:`launchauth.app.main` catches
``LaunchAuthError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    LaunchAuthError (exit 1)
    +-- ValidationError             (exit 2)
    +-- AuthError                   (exit 3)
    |   +-- DeviceFlowError         (exit 3)
    |       +-- TransientProtocolError
    |       +-- TerminalProtocolError
    +-- TransportError              (exit 6)
    +-- ConfigError                 (exit 1)

Device flow failures carry a :class:`DeviceFlowErrorKind` so callers can
switch on a stable discriminant instead of searching the message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from launchauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class DeviceFlowErrorKind(str, Enum):
    """Error codes returned by the token endpoint during device polling (:rfc:`8628` section 3.5)."""

    AUTHORIZATION_PENDING = "authorization_pending"
    SLOW_DOWN = "slow_down"
    EXPIRED_TOKEN = "expired_token"
    ACCESS_DENIED = "access_denied"
    OTHER = "other"

    @property
    def is_transient(self) -> bool:
        """Whether polling should continue after this error."""
        return self in (DeviceFlowErrorKind.AUTHORIZATION_PENDING, DeviceFlowErrorKind.SLOW_DOWN)

    @classmethod
    def from_code(cls, code: str) -> DeviceFlowErrorKind:
        """Map a raw OAuth ``error`` value to a kind, defaulting to :attr:`OTHER`."""
        try:
            return cls(code)
        except ValueError:
            return cls.OTHER


class LaunchAuthError(Exception):
    """Base exception for all launchauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`launchauth.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(LaunchAuthError):
    """Raised for a failed local precondition, such as an empty offline username."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(LaunchAuthError):
    """Raised when authentication fails (denied, expired, account without a game license)."""

    exit_code = EXIT_AUTH_FAILURE


class DeviceFlowError(AuthError):
    """Raised by the token endpoint while polling a device code.

    Use :func:`device_flow_error` to build the right subclass for a raw
    OAuth error code.

    Args:
        kind: The structured error discriminant.
        message: Human-readable description. It always starts with the
            raw error code so string-based consumers keep working.
    """

    def __init__(self, kind: DeviceFlowErrorKind, message: Optional[str] = None):
        super().__init__(message or kind.value)
        self.kind = kind


class TransientProtocolError(DeviceFlowError):
    """The user has not finished authorizing yet; keep polling."""


class TerminalProtocolError(DeviceFlowError):
    """The device code can no longer succeed (expired, denied, or rejected)."""


class TransportError(LaunchAuthError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(LaunchAuthError):
    """Raised for configuration problems (invalid JSON, missing client ID)."""

    exit_code = EXIT_GENERIC_FAILURE


def device_flow_error(code: str, description: Optional[str] = None) -> DeviceFlowError:
    """Build a :class:`DeviceFlowError` subclass from a token endpoint ``error`` value.

    Args:
        code: The OAuth ``error`` field (e.g. ``"authorization_pending"``).
        description: Optional ``error_description`` from the response.

    Returns:
        A :class:`TransientProtocolError` for pending/slow-down codes,
        otherwise a :class:`TerminalProtocolError`.
    """
    kind = DeviceFlowErrorKind.from_code(code)
    message = f"{code}: {description}" if description else code
    if kind.is_transient:
        return TransientProtocolError(kind, message)
    return TerminalProtocolError(kind, message)
