"""In-memory doubles and model factories shared by the coordinator tests.

A scripted :class:`FakeBridge`, a recording :class:`FakeHost` and a
manually fired :class:`FakeTimerFactory` stand in for the coordinator's
collaborators. Fixtures wrapping them live in ``conftest.py``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from launchauth.bridge.base import CommandBridge
from launchauth.exceptions import device_flow_error
from launchauth.host import HostEnvironment
from launchauth.models import Account, AccountType, DeviceAuthorizationChallenge


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


def make_challenge(
    device_code: str = "device-1",
    user_code: str = "ABCD-EFGH",
    interval: int = 5,
    expires_in: int = 900,
) -> DeviceAuthorizationChallenge:
    return DeviceAuthorizationChallenge(
        device_code=device_code,
        user_code=user_code,
        verification_uri="https://www.microsoft.com/link",
        expires_in=expires_in,
        interval=interval,
    )


def make_account(username: str = "Alex", type: AccountType = AccountType.MICROSOFT) -> Account:
    return Account(
        type=type,
        username=username,
        uuid="0f5c1ad6a3df4bcd9fd6c46ff4f4a6a2",
        access_token="game-token" if type == AccountType.MICROSOFT else None,
        refresh_token="ms-refresh" if type == AccountType.MICROSOFT else None,
    )


# ---------------------------------------------------------------------------
# Coordinator doubles
# ---------------------------------------------------------------------------


class FakeBridge(CommandBridge):
    """Scripted backend.

    ``challenge_results`` and ``poll_results`` are consumed one item per
    call; exceptions in them are raised. An empty ``poll_results`` answers
    ``authorization_pending``. A gate event, if set, is awaited once by
    the next matching call after it has taken its result.
    """

    def __init__(self) -> None:
        self.account: Optional[Account] = None
        self.get_account_error: Optional[Exception] = None
        self.challenge_results: list[Any] = []
        self.challenge_gate: Optional[asyncio.Event] = None
        self.poll_results: list[Any] = []
        self.poll_gate: Optional[asyncio.Event] = None
        self.poll_calls: list[str] = []
        self.offline_names: list[str] = []
        self.offline_error: Optional[Exception] = None
        self.logout_error: Optional[Exception] = None
        self.logout_calls = 0
        self.refresh_result: Any = None

    async def get_active_account(self) -> Optional[Account]:
        if self.get_account_error is not None:
            raise self.get_account_error
        return self.account

    async def start_device_authorization(self) -> DeviceAuthorizationChallenge:
        result = self.challenge_results.pop(0) if self.challenge_results else make_challenge()
        gate, self.challenge_gate = self.challenge_gate, None
        if gate is not None:
            await gate.wait()
        if isinstance(result, BaseException):
            raise result
        return result

    async def complete_device_authorization(self, device_code: str) -> Account:
        self.poll_calls.append(device_code)
        if self.poll_results:
            result = self.poll_results.pop(0)
        else:
            result = device_flow_error("authorization_pending")
        gate, self.poll_gate = self.poll_gate, None
        if gate is not None:
            await gate.wait()
        if isinstance(result, BaseException):
            raise result
        self.account = result
        return result

    async def login_offline(self, username: str) -> Account:
        self.offline_names.append(username)
        if self.offline_error is not None:
            raise self.offline_error
        self.account = make_account(username, AccountType.OFFLINE)
        return self.account

    async def logout(self) -> None:
        self.logout_calls += 1
        self.account = None
        if self.logout_error is not None:
            raise self.logout_error

    async def refresh_account(self) -> Account:
        if isinstance(self.refresh_result, BaseException):
            raise self.refresh_result
        if self.refresh_result is None:
            return await super().refresh_account()
        self.account = self.refresh_result
        return self.refresh_result


class FakeHost(HostEnvironment):
    """Records side effects; optionally fails them."""

    def __init__(self) -> None:
        self.copied: list[str] = []
        self.opened: list[str] = []
        self.notices: list[str] = []
        self.clipboard_error: Optional[Exception] = None
        self.open_error: Optional[Exception] = None

    def copy_to_clipboard(self, text: str) -> None:
        if self.clipboard_error is not None:
            raise self.clipboard_error
        self.copied.append(text)

    def open_url(self, url: str) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened.append(url)

    def notify_error(self, message: str) -> None:
        self.notices.append(message)


class FakeTimer:
    def __init__(self, period: float, callback: Callable[[], None]) -> None:
        self.period = period
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.cancel_calls = 0

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True
        self.cancel_calls += 1

    def fire(self) -> None:
        self.callback()


class FakeTimerFactory:
    """Timer factory whose timers only tick when a test calls :meth:`fire`."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, period: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(period, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.active]

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def settle() -> None:
    """Let scheduled poll tasks run to completion."""
    for _ in range(10):
        await asyncio.sleep(0)


