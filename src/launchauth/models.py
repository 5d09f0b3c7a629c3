"""Canonical Pydantic models shared across all launchauth modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Login models** -- produced by the backend and published by the
coordinator:
    :class:`LoginMode`, :class:`FlowState`, :class:`AccountType`,
    :class:`DeviceAuthorizationChallenge`, and :class:`Account`.

**Configuration models** -- serialised as JSON in the user's config
directory:
    :class:`AuthSettings`, :class:`OutputConfig`, and :class:`GlobalConfig`.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Login state ---


class LoginMode(str, enum.Enum):
    """Which login branch the user picked."""

    UNSELECTED = "unselected"
    OFFLINE_ENTRY = "offline"
    DEVICE_FLOW = "microsoft"


class FlowState(str, enum.Enum):
    """Coordinator state machine.

    ``AWAITING_AUTHORIZATION`` and ``POLLING`` both belong to the
    :attr:`LoginMode.DEVICE_FLOW` mode; they differ in whether a
    challenge has been received yet.
    """

    IDLE = "idle"
    OFFLINE_ENTRY = "offline_entry"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    POLLING = "polling"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AccountType(str, enum.Enum):
    """Discriminator for :class:`Account`."""

    MICROSOFT = "microsoft"
    OFFLINE = "offline"


class DeviceAuthorizationChallenge(BaseModel):
    """Device/user code pair issued at the start of a device flow.

    Immutable once issued. A restarted flow gets a new instance.

    Example::

        DeviceAuthorizationChallenge(
            device_code="GmRh...",
            user_code="WDJB-MJHT",
            verification_uri="https://www.microsoft.com/link",
            expires_in=900,
            interval=5,
        )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    device_code: str
    user_code: str
    verification_uri: str = Field(
        validation_alias=AliasChoices("verification_uri", "verification_url"),
        description="URL the user opens to enter the code",
    )
    expires_in: int = Field(default=900, description="Lifetime of the device code in seconds")
    interval: int = Field(
        default=0, description="Minimum polling interval in seconds (0 = not provided)"
    )
    message: Optional[str] = Field(
        default=None, description="Optional human-readable instruction from the provider"
    )


class Account(BaseModel):
    """The authenticated identity.

    Token material on online accounts is opaque to the coordinator; it
    is produced and refreshed by the backend.
    """

    type: AccountType
    username: str
    uuid: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_expired(self) -> bool:
        """``True`` when ``expires_at`` is set and in the past."""
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires


# --- Configuration ---


class AuthSettings(BaseModel):
    """Endpoints and client registration for the Microsoft login chain.

    ``client_id`` must be the ID of an Azure application that has the
    public client flows enabled; there is no usable default.
    """

    client_id: str = Field(default="", description="Azure application (client) ID")
    device_authorization_url: str = (
        "https://login.microsoftonline.com/consumers/oauth2/v2.0/devicecode"
    )
    token_url: str = "https://login.microsoftonline.com/consumers/oauth2/v2.0/token"
    scopes: list[str] = Field(default_factory=lambda: ["XboxLive.signin", "offline_access"])
    xbox_auth_url: str = "https://user.auth.xboxlive.com/user/authenticate"
    xsts_auth_url: str = "https://xsts.auth.xboxlive.com/xsts/authorize"
    minecraft_login_url: str = "https://api.minecraftservices.com/authentication/login_with_xbox"
    minecraft_profile_url: str = "https://api.minecraftservices.com/minecraft/profile"
    poll_interval: int = Field(
        default=5, description="Poll period in seconds when the provider sends none"
    )
    timeout: int = Field(default=30, description="HTTP request timeout in seconds")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(default="auto", description="Output format: auto, json, plain, rich")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/launchauth/config.json``.

    Loaded and saved by :func:`~launchauth.config.load_global_config` and
    :func:`~launchauth.config.save_global_config`. See
    :func:`~launchauth.config.resolve_config` for how environment
    variables and CLI flags override it.
    """

    auth: AuthSettings = Field(default_factory=AuthSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)
