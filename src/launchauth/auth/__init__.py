"""Login state and persistence for launchauth.

The main entry points are:

- :class:`AuthCoordinator` -- the login state machine (mode selection,
  device flow polling, offline login, logout).
- :class:`AccountStore` -- the persisted active account.
- :class:`IntervalTimer` -- fixed-cadence asyncio timer driving the polls.

Typical usage::

    from launchauth.auth import AuthCoordinator

    coordinator = AuthCoordinator(bridge, events, host)
    await coordinator.begin_device_flow()
    account = await coordinator.wait_for_flow()
"""

from launchauth.auth.account_store import AccountStore
from launchauth.auth.coordinator import AuthCoordinator, classify_poll_error
from launchauth.auth.timer import IntervalTimer, Timer, TimerFactory

__all__ = [
    "AccountStore",
    "AuthCoordinator",
    "IntervalTimer",
    "Timer",
    "TimerFactory",
    "classify_poll_error",
]
