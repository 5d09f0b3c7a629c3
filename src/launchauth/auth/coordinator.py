"""Interactive login coordinator.

:class:`AuthCoordinator` owns everything about signing a launcher user
in: picking the login mode, running the Microsoft device flow
(:rfc:`8628`), offline logins, logout, and the resulting account. It is
framework-agnostic. Frontends read its properties and register for
changes with :meth:`AuthCoordinator.subscribe`.

Device flow lifecycle::

    idle --begin_device_flow--> awaiting_authorization --challenge--> polling
    polling --success--> authenticated
    polling --terminal error--> failed --dismiss_error--> idle
    (any flow state) --cancel_device_flow--> idle

While polling, a repeating timer schedules :meth:`AuthCoordinator.poll_once`.
At most one poll request is outstanding at a time; ticks that arrive
while one is pending are dropped. Results that come back after the
attempt was cancelled or restarted are discarded.

Errors never escape the public operations. They are stored in
:attr:`AuthCoordinator.last_error` and, for blocking failures, shown
through :meth:`~launchauth.host.HostEnvironment.notify_error`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from launchauth.auth.timer import IntervalTimer, Timer, TimerFactory
from launchauth.bridge.base import CommandBridge
from launchauth.events import AUTH_PROGRESS_EVENT, EventBus, Unsubscribe
from launchauth.exceptions import (
    DeviceFlowErrorKind,
    LaunchAuthError,
    TerminalProtocolError,
    TransportError,
    ValidationError,
)
from launchauth.host import HostEnvironment
from launchauth.models import Account, DeviceAuthorizationChallenge, FlowState, LoginMode

logger = logging.getLogger(__name__)

INITIAL_STATUS = "Waiting for authorization..."
DEFAULT_POLL_INTERVAL = 5
SLOW_DOWN_INCREMENT = 5

_CHANGE_EVENT = "change"
_FLOW_STATES = (FlowState.AWAITING_AUTHORIZATION, FlowState.POLLING)

ChangeCallback = Callable[[str, Any], None]


def classify_poll_error(error: BaseException | str) -> DeviceFlowErrorKind:
    """Classify a failed token poll.

    A structured ``kind`` attribute wins. Otherwise the text is searched
    for the :rfc:`8628` error codes, for backends that only report
    strings. Anything unrecognised is :attr:`DeviceFlowErrorKind.OTHER`,
    which ends the attempt.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, DeviceFlowErrorKind):
        return kind
    text = str(error)
    for candidate in DeviceFlowErrorKind:
        if candidate is not DeviceFlowErrorKind.OTHER and candidate.value in text:
            return candidate
    return DeviceFlowErrorKind.OTHER


class AuthCoordinator:
    """Login state machine for one launcher process.

    Args:
        bridge: Backend performing the actual account operations.
        events: Bus carrying :data:`~launchauth.events.AUTH_PROGRESS_EVENT`
            messages from the backend.
        host: Clipboard, browser and notice side effects.
        timer_factory: Builds the repeating poll timer from
            ``(period_seconds, callback)``.
        default_interval: Poll period when the challenge carries none.
        clock: Monotonic clock used for the device code deadline.

    Example::

        coordinator = AuthCoordinator(bridge, events, TerminalHost())
        await coordinator.check_account()
        await coordinator.begin_device_flow()
        account = await coordinator.wait_for_flow()
    """

    def __init__(
        self,
        bridge: CommandBridge,
        events: EventBus,
        host: HostEnvironment,
        *,
        timer_factory: TimerFactory = IntervalTimer,
        default_interval: int = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bridge = bridge
        self._events = events
        self._host = host
        self._timer_factory = timer_factory
        self._default_interval = default_interval
        self._clock = clock
        self._changes = EventBus()

        # Observable fields
        self._current_account: Optional[Account] = None
        self._login_mode = LoginMode.UNSELECTED
        self._state = FlowState.IDLE
        self._device_code_challenge: Optional[DeviceAuthorizationChallenge] = None
        self._status_message = ""
        self._is_busy = False
        self._last_error: Optional[LaunchAuthError] = None

        # Poll state; timer and listener are held and released together.
        self._timer: Optional[Timer] = None
        self._unlisten: Optional[Unsubscribe] = None
        self._in_flight = False
        self._attempt = 0
        self._deadline: Optional[float] = None
        self._settled: Optional[asyncio.Event] = None
        self._poll_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------ #
    # Observable state
    # ------------------------------------------------------------------ #

    @property
    def current_account(self) -> Optional[Account]:
        return self._current_account

    @property
    def login_mode(self) -> LoginMode:
        return self._login_mode

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def device_code_challenge(self) -> Optional[DeviceAuthorizationChallenge]:
        return self._device_code_challenge

    @property
    def status_message(self) -> str:
        """Rolling status line; the latest progress message or transition wins."""
        return self._status_message

    @property
    def is_busy(self) -> bool:
        return self._is_busy

    @property
    def last_error(self) -> Optional[LaunchAuthError]:
        return self._last_error

    @property
    def is_polling(self) -> bool:
        return self._timer is not None

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Call ``callback(field_name, value)`` whenever an observable field changes."""
        return self._changes.on(_CHANGE_EVENT, callback)

    # ------------------------------------------------------------------ #
    # Account operations
    # ------------------------------------------------------------------ #

    async def check_account(self) -> None:
        """Load the backend's active account, if any. Failures are only logged."""
        try:
            account = await self._bridge.get_active_account()
        except Exception as exc:
            logger.warning("Failed to check active account: %s", exc)
            return
        self._set("current_account", account)
        if account is not None and self._state is FlowState.IDLE:
            self._set("state", FlowState.AUTHENTICATED)
        elif account is None and self._state is FlowState.AUTHENTICATED:
            self._set("state", FlowState.IDLE)

    def set_login_mode(self, mode: LoginMode) -> None:
        """Switch the UI branch. Leaving the device flow cancels it."""
        if mode is not LoginMode.DEVICE_FLOW and self._flow_active():
            self.cancel_device_flow()
        self._set("login_mode", mode)
        if mode is LoginMode.OFFLINE_ENTRY:
            self._set("state", FlowState.OFFLINE_ENTRY)
        elif mode is LoginMode.UNSELECTED and self._state in (
            FlowState.OFFLINE_ENTRY,
            FlowState.FAILED,
        ):
            self._set("state", self._resting_state())

    async def begin_offline_login(self, username: str) -> Optional[Account]:
        """Log in offline as *username* (surrounding whitespace is ignored).

        Returns:
            The new account, or ``None`` if validation or the backend failed.
        """
        self.set_login_mode(LoginMode.OFFLINE_ENTRY)
        name = username.strip()
        if not name:
            self._report(ValidationError("Username cannot be empty"))
            return None

        self._set("last_error", None)
        self._set("is_busy", True)
        try:
            account = await self._bridge.login_offline(name)
        except Exception as exc:
            self._report(_as_error(exc), notice="Failed to log in offline")
            return None
        finally:
            self._set("is_busy", False)

        self._set("current_account", account)
        self._set("state", FlowState.AUTHENTICATED)
        logger.info("Logged in offline as '%s'", account.username)
        return account

    async def logout(self) -> None:
        """Log out. The account is cleared even when the backend call fails."""
        if self._flow_active():
            self.cancel_device_flow()
        self._set("is_busy", True)
        try:
            await self._bridge.logout()
        except Exception as exc:
            self._report(_as_error(exc), notice="Failed to log out")
        finally:
            self._set("current_account", None)
            self._set("login_mode", LoginMode.UNSELECTED)
            self._set("state", FlowState.IDLE)
            self._set("is_busy", False)

    async def refresh_account(self) -> Optional[Account]:
        """Ask the backend to renew the current account's session.

        Returns:
            The refreshed account, or ``None`` on failure (the previous
            account stays current).
        """
        if self._current_account is None:
            self._report(ValidationError("No account to refresh"))
            return None

        self._set("is_busy", True)
        try:
            account = await self._bridge.refresh_account()
        except Exception as exc:
            self._report(_as_error(exc), notice="Failed to refresh account")
            return None
        finally:
            self._set("is_busy", False)

        self._set("current_account", account)
        return account

    def dismiss_error(self) -> None:
        """Acknowledge the last error and leave the ``failed`` state."""
        self._set("last_error", None)
        if self._state is FlowState.FAILED:
            self._set("state", self._resting_state())

    # ------------------------------------------------------------------ #
    # Device flow
    # ------------------------------------------------------------------ #

    async def begin_device_flow(self) -> Optional[DeviceAuthorizationChallenge]:
        """Start a Microsoft device login, cancelling any attempt in progress.

        Returns:
            The issued challenge, or ``None`` if it could not be obtained
            or the attempt was cancelled while waiting for it.
        """
        if self._flow_active():
            logger.info("Restarting device flow")
            self.cancel_device_flow()

        self._attempt += 1
        attempt = self._attempt
        self._settled = asyncio.Event()
        self._set("last_error", None)
        self._set("device_code_challenge", None)
        self._set("status_message", INITIAL_STATUS)
        self._set("login_mode", LoginMode.DEVICE_FLOW)
        self._set("state", FlowState.AWAITING_AUTHORIZATION)
        self._unlisten = self._events.on(AUTH_PROGRESS_EVENT, self._on_progress)

        self._set("is_busy", True)
        try:
            challenge = await self._bridge.start_device_authorization()
        except Exception as exc:
            if attempt != self._attempt:
                logger.debug("Ignoring challenge failure of a superseded attempt: %s", exc)
                return None
            self._release()
            self._set("is_busy", False)
            self._set("login_mode", LoginMode.UNSELECTED)
            self._set("state", self._resting_state())
            self._report(_as_error(exc), notice="Failed to start Microsoft login")
            self._settle()
            return None

        if attempt != self._attempt:
            logger.info("Discarding device code of a cancelled attempt")
            return None

        self._set("is_busy", False)
        self._set("device_code_challenge", challenge)
        self._best_effort("copy the user code", self._host.copy_to_clipboard, challenge.user_code)
        self._best_effort(
            "open the verification page", self._host.open_url, challenge.verification_uri
        )

        period = challenge.interval if challenge.interval > 0 else self._default_interval
        self._deadline = (
            self._clock() + challenge.expires_in if challenge.expires_in > 0 else None
        )
        device_code = challenge.device_code
        self._timer = self._timer_factory(period, lambda: self._on_tick(device_code))
        self._timer.start()
        self._set("state", FlowState.POLLING)
        logger.info("Polling for authorization every %ss", period)
        return challenge

    async def poll_once(self, device_code: str) -> None:
        """Make one token exchange attempt for the active device flow.

        Skipped when a poll is already in flight or no flow is active.
        """
        if self._in_flight:
            logger.debug("Poll already in flight, skipping")
            return
        if self._timer is None:
            logger.debug("No active device flow, skipping poll")
            return

        attempt = self._attempt
        self._in_flight = True
        try:
            if self._deadline is not None and self._clock() >= self._deadline:
                self._fail_flow(
                    TerminalProtocolError(
                        DeviceFlowErrorKind.EXPIRED_TOKEN,
                        "expired_token: the device code expired before authorization completed",
                    )
                )
                return

            try:
                account = await self._bridge.complete_device_authorization(device_code)
            except Exception as exc:
                if attempt != self._attempt:
                    logger.debug("Discarding poll error of a cancelled attempt: %s", exc)
                    return
                self._handle_poll_error(exc)
                return

            if attempt != self._attempt:
                logger.info("Discarding login result that arrived after cancellation")
                return

            self._release()
            self._deadline = None
            self._set("current_account", account)
            self._set("device_code_challenge", None)
            self._set("state", FlowState.AUTHENTICATED)
            logger.info("Logged in as '%s'", account.username)
            self._settle()
        finally:
            self._in_flight = False

    def cancel_device_flow(self) -> None:
        """Abort the device flow. Safe to call at any time, any number of times.

        A poll request already sent is not interrupted; its result is
        discarded when it arrives.
        """
        self._attempt += 1
        self._release()
        self._deadline = None
        if self._state in _FLOW_STATES:
            self._set("is_busy", False)
        self._set("device_code_challenge", None)
        self._set("status_message", "")
        self._set("login_mode", LoginMode.UNSELECTED)
        if self._state in _FLOW_STATES or self._state is FlowState.FAILED:
            self._set("state", self._resting_state())
        self._settle()

    async def wait_for_flow(self) -> Optional[Account]:
        """Wait until the current device flow ends, then return the current account."""
        if self._settled is not None:
            await self._settled.wait()
        return self._current_account

    async def aclose(self) -> None:
        """Cancel the flow and any poll task still running."""
        self.cancel_device_flow()
        tasks = list(self._poll_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> AuthCoordinator:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _on_tick(self, device_code: str) -> None:
        if self._in_flight:
            logger.debug("Timer tick while a poll is in flight, dropped")
            return
        task = asyncio.get_running_loop().create_task(self.poll_once(device_code))
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)

    def _on_progress(self, message: Any) -> None:
        self._set("status_message", str(message))

    def _handle_poll_error(self, error: Exception) -> None:
        kind = classify_poll_error(error)
        if kind is DeviceFlowErrorKind.AUTHORIZATION_PENDING:
            logger.debug("Authorization pending")
            return
        if kind is DeviceFlowErrorKind.SLOW_DOWN:
            if self._timer is not None:
                self._timer.period += SLOW_DOWN_INCREMENT
                logger.info("Asked to slow down, polling every %ss", self._timer.period)
            return
        self._fail_flow(_as_error(error))

    def _fail_flow(self, error: LaunchAuthError) -> None:
        self._release()
        self._deadline = None
        self._set("device_code_challenge", None)
        self._set("status_message", f"Error: {error}")
        self._set("login_mode", LoginMode.UNSELECTED)
        self._set("state", FlowState.FAILED)
        self._report(error, notice="Login failed")
        self._settle()

    def _release(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None

    def _flow_active(self) -> bool:
        return (
            self._timer is not None
            or self._unlisten is not None
            or self._state in _FLOW_STATES
        )

    def _resting_state(self) -> FlowState:
        if self._current_account is not None:
            return FlowState.AUTHENTICATED
        return FlowState.IDLE

    def _settle(self) -> None:
        if self._settled is not None:
            self._settled.set()

    def _report(self, error: LaunchAuthError, notice: Optional[str] = None) -> None:
        logger.warning("%s", error)
        self._set("last_error", error)
        if notice is not None:
            self._best_effort("show the error notice", self._host.notify_error, f"{notice}: {error}")

    def _best_effort(self, action: str, func: Callable[[str], None], value: str) -> None:
        try:
            func(value)
        except Exception as exc:
            logger.warning("Could not %s: %s", action, exc)

    def _set(self, name: str, value: Any) -> None:
        attr = f"_{name}"
        if getattr(self, attr) == value:
            return
        setattr(self, attr, value)
        self._changes.emit(_CHANGE_EVENT, name, value)


def _as_error(exc: Exception) -> LaunchAuthError:
    """Wrap unexpected exceptions so every reported error has an exit code."""
    if isinstance(exc, LaunchAuthError):
        return exc
    return TransportError(str(exc) or type(exc).__name__)
