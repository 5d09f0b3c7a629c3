"""Tests for AuthCoordinator account operations: check, offline login, logout, refresh."""

from __future__ import annotations

import logging

import pytest

from helpers import FakeBridge, FakeHost, FakeTimerFactory, make_account, settle
from launchauth.auth.coordinator import AuthCoordinator
from launchauth.exceptions import AuthError, ValidationError, device_flow_error
from launchauth.models import AccountType, FlowState, LoginMode


class TestCheckAccount:
    @pytest.mark.asyncio
    async def test_loads_existing_account(
        self, coordinator: AuthCoordinator, bridge: FakeBridge
    ) -> None:
        bridge.account = make_account()

        await coordinator.check_account()

        assert coordinator.current_account == bridge.account
        assert coordinator.state is FlowState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_no_account_stays_idle(self, coordinator: AuthCoordinator) -> None:
        await coordinator.check_account()

        assert coordinator.current_account is None
        assert coordinator.state is FlowState.IDLE

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(
        self,
        coordinator: AuthCoordinator,
        bridge: FakeBridge,
        host: FakeHost,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        bridge.get_account_error = OSError("disk gone")

        with caplog.at_level(logging.WARNING, logger="launchauth"):
            await coordinator.check_account()

        assert coordinator.current_account is None
        assert host.notices == []
        assert "Failed to check active account" in caplog.text


class TestOfflineLogin:
    @pytest.mark.asyncio
    async def test_trims_and_activates_account(
        self, coordinator: AuthCoordinator, bridge: FakeBridge
    ) -> None:
        account = await coordinator.begin_offline_login("  Steve  ")

        assert bridge.offline_names == ["Steve"]
        assert account is not None
        assert account.type is AccountType.OFFLINE
        assert coordinator.current_account == account
        assert coordinator.state is FlowState.AUTHENTICATED
        assert coordinator.last_error is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "\t\n"])
    async def test_blank_name_is_rejected_without_calling_backend(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, host: FakeHost, name: str
    ) -> None:
        result = await coordinator.begin_offline_login(name)

        assert result is None
        assert bridge.offline_names == []
        assert isinstance(coordinator.last_error, ValidationError)
        assert host.notices == []
        assert coordinator.current_account is None
        assert coordinator.login_mode is LoginMode.OFFLINE_ENTRY

    @pytest.mark.asyncio
    async def test_backend_failure_is_notified(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, host: FakeHost
    ) -> None:
        bridge.offline_error = OSError("read-only file system")

        result = await coordinator.begin_offline_login("Steve")

        assert result is None
        assert host.notices == ["Failed to log in offline: read-only file system"]
        assert not coordinator.is_busy

    @pytest.mark.asyncio
    async def test_busy_while_backend_runs(self, coordinator: AuthCoordinator) -> None:
        busy: list[bool] = []
        coordinator.subscribe(lambda field, value: busy.append(value) if field == "is_busy" else None)

        await coordinator.begin_offline_login("Steve")

        assert busy == [True, False]

    @pytest.mark.asyncio
    async def test_cancels_running_device_flow(
        self, coordinator: AuthCoordinator, timers: FakeTimerFactory
    ) -> None:
        await coordinator.begin_device_flow()

        await coordinator.begin_offline_login("Steve")

        assert timers.active == []
        assert coordinator.current_account.username == "Steve"


class TestLogout:
    @pytest.mark.asyncio
    async def test_clears_account(self, coordinator: AuthCoordinator, bridge: FakeBridge) -> None:
        await coordinator.begin_offline_login("Steve")

        await coordinator.logout()

        assert bridge.logout_calls == 1
        assert coordinator.current_account is None
        assert coordinator.login_mode is LoginMode.UNSELECTED
        assert coordinator.state is FlowState.IDLE

    @pytest.mark.asyncio
    async def test_clears_account_even_when_backend_fails(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, host: FakeHost
    ) -> None:
        await coordinator.begin_offline_login("Steve")
        bridge.logout_error = OSError("permission denied")

        await coordinator.logout()

        assert coordinator.current_account is None
        assert host.notices == ["Failed to log out: permission denied"]
        assert not coordinator.is_busy


class TestRefresh:
    @pytest.mark.asyncio
    async def test_requires_an_account(
        self, coordinator: AuthCoordinator, host: FakeHost
    ) -> None:
        assert await coordinator.refresh_account() is None
        assert isinstance(coordinator.last_error, ValidationError)
        assert host.notices == []

    @pytest.mark.asyncio
    async def test_replaces_current_account(
        self, coordinator: AuthCoordinator, bridge: FakeBridge
    ) -> None:
        bridge.account = make_account()
        await coordinator.check_account()
        renewed = make_account().model_copy(update={"access_token": "renewed"})
        bridge.refresh_result = renewed

        assert await coordinator.refresh_account() == renewed
        assert coordinator.current_account.access_token == "renewed"

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_account(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, host: FakeHost
    ) -> None:
        bridge.account = make_account()
        await coordinator.check_account()
        bridge.refresh_result = AuthError("Token refresh failed with status 400")

        assert await coordinator.refresh_account() is None
        assert coordinator.current_account == bridge.account
        assert host.notices == ["Failed to refresh account: Token refresh failed with status 400"]

    @pytest.mark.asyncio
    async def test_unsupported_backend(
        self, coordinator: AuthCoordinator, bridge: FakeBridge
    ) -> None:
        bridge.account = make_account()
        await coordinator.check_account()

        await coordinator.refresh_account()

        assert "does not support refreshing" in str(coordinator.last_error)


class TestModesAndErrors:
    def test_offline_mode_enters_offline_state(self, coordinator: AuthCoordinator) -> None:
        coordinator.set_login_mode(LoginMode.OFFLINE_ENTRY)
        assert coordinator.state is FlowState.OFFLINE_ENTRY

        coordinator.set_login_mode(LoginMode.UNSELECTED)
        assert coordinator.state is FlowState.IDLE

    @pytest.mark.asyncio
    async def test_dismiss_error_leaves_failed_state(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, timers: FakeTimerFactory
    ) -> None:
        bridge.poll_results = [device_flow_error("access_denied")]
        await coordinator.begin_device_flow()
        timers.last.fire()
        await settle()
        assert coordinator.state is FlowState.FAILED

        coordinator.dismiss_error()

        assert coordinator.last_error is None
        assert coordinator.state is FlowState.IDLE

    @pytest.mark.asyncio
    async def test_failed_flow_can_be_restarted(
        self, coordinator: AuthCoordinator, bridge: FakeBridge, timers: FakeTimerFactory
    ) -> None:
        bridge.poll_results = [device_flow_error("expired_token"), make_account()]
        await coordinator.begin_device_flow()
        timers.last.fire()
        await settle()

        await coordinator.begin_device_flow()
        timers.last.fire()
        await settle()

        assert coordinator.state is FlowState.AUTHENTICATED
        assert coordinator.last_error is None

    def test_subscribe_returns_unsubscribe(self, coordinator: AuthCoordinator) -> None:
        seen: list[tuple[str, object]] = []
        unsubscribe = coordinator.subscribe(lambda field, value: seen.append((field, value)))

        coordinator.set_login_mode(LoginMode.OFFLINE_ENTRY)
        unsubscribe()
        unsubscribe()
        coordinator.set_login_mode(LoginMode.UNSELECTED)

        assert seen == [
            ("login_mode", LoginMode.OFFLINE_ENTRY),
            ("state", FlowState.OFFLINE_ENTRY),
        ]
