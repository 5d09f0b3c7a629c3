"""Shared test fixtures for launchauth.

Provides isolated config environments, output state management, a CLI
runner, and fixtures wrapping the coordinator doubles defined in
:mod:`helpers`. These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from helpers import FakeBridge, FakeClock, FakeHost, FakeTimerFactory
from launchauth.auth.coordinator import AuthCoordinator
from launchauth.events import EventBus
from launchauth.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams, the
    cached references go stale once the test ends.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and data to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    clears LAUNCHAUTH_* environment variables and changes the working
    directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("launchauth.config._is_xdg_platform", lambda: True)

    for var in ["LAUNCHAUTH_CLIENT_ID", "LAUNCHAUTH_POLL_INTERVAL"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Coordinator doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def timers() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinator(
    bridge: FakeBridge,
    events: EventBus,
    host: FakeHost,
    timers: FakeTimerFactory,
    clock: FakeClock,
) -> AuthCoordinator:
    return AuthCoordinator(bridge, events, host, timer_factory=timers, clock=clock)
