"""Backends the login coordinator delegates to.

- :class:`CommandBridge` -- abstract request/response contract.
- :class:`LauncherBridge` -- built-in backend persisting to an
  :class:`~launchauth.auth.account_store.AccountStore`.
- :class:`MicrosoftAuthClient` -- HTTP client for the Microsoft device
  flow and the Xbox Live token chain.
"""

from launchauth.bridge.base import CommandBridge
from launchauth.bridge.launcher import LauncherBridge, offline_uuid
from launchauth.bridge.microsoft import MicrosoftAuthClient

__all__ = [
    "CommandBridge",
    "LauncherBridge",
    "MicrosoftAuthClient",
    "offline_uuid",
]
