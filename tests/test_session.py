"""Tests for open_session wiring."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from helpers import FakeHost
from launchauth.auth.account_store import AccountStore
from launchauth.models import Account, AccountType, FlowState, GlobalConfig
from launchauth.session import open_session


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("offline", request=request)


class TestOpenSession:
    @pytest.mark.asyncio
    async def test_loads_stored_account(self, tmp_path: Path) -> None:
        store = AccountStore(tmp_path / "account.json")
        store.save(Account(type=AccountType.OFFLINE, username="Steve", uuid="u"))

        async with open_session(GlobalConfig(), FakeHost(), store=store) as coordinator:
            assert coordinator.current_account.username == "Steve"
            assert coordinator.state is FlowState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_network_failure_is_reported_as_transport_error(self, tmp_path: Path) -> None:
        config = GlobalConfig()
        config.auth.client_id = "test-client"
        host = FakeHost()

        async with open_session(
            config,
            host,
            store=AccountStore(tmp_path / "account.json"),
            transport=httpx.MockTransport(_unreachable),
        ) as coordinator:
            assert await coordinator.begin_device_flow() is None
            assert coordinator.last_error.exit_code == 6

        assert host.notices[0].startswith("Failed to start Microsoft login: Request to")
