"""Wiring of the default login stack.

:func:`open_session` builds an :class:`~launchauth.auth.AuthCoordinator`
backed by the Microsoft HTTP client and the on-disk account store, and
tears everything down on exit.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from launchauth.auth.account_store import AccountStore
from launchauth.auth.coordinator import AuthCoordinator
from launchauth.bridge.launcher import LauncherBridge
from launchauth.bridge.microsoft import MicrosoftAuthClient
from launchauth.events import EventBus
from launchauth.host import HostEnvironment
from launchauth.models import GlobalConfig


@asynccontextmanager
async def open_session(
    config: GlobalConfig,
    host: HostEnvironment,
    *,
    store: Optional[AccountStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[AuthCoordinator]:
    """Yield a coordinator with the stored account already loaded.

    Args:
        config: Effective configuration (see :func:`~launchauth.config.resolve_config`).
        host: Side effects for the coordinator.
        store: Account store; defaults to the one in the data directory.
        transport: Optional httpx transport, e.g. a mock in tests.
    """
    events = EventBus()
    async with httpx.AsyncClient(transport=transport) as client:
        microsoft = MicrosoftAuthClient(config.auth, client)
        bridge = LauncherBridge(microsoft, store or AccountStore(), events)
        coordinator = AuthCoordinator(
            bridge,
            events,
            host,
            default_interval=config.auth.poll_interval,
        )
        try:
            await coordinator.check_account()
            yield coordinator
        finally:
            await coordinator.aclose()
