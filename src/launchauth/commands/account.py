"""Account commands -- log in, log out, inspect and refresh the session.

Each command resolves the effective configuration, opens a login
session (:func:`~launchauth.session.open_session`) and drives the
:class:`~launchauth.auth.AuthCoordinator` to completion.

Typical workflow::

    launchauth login              # Microsoft device login
    launchauth login --offline Steve
    launchauth status --json
    launchauth logout
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Optional

import typer

from launchauth.auth.coordinator import AuthCoordinator
from launchauth.exit_codes import EXIT_AUTH_FAILURE, EXIT_CANCELLED
from launchauth.exceptions import ValidationError
from launchauth.host import TerminalHost
from launchauth.models import Account, GlobalConfig
from launchauth.output import (
    OutputFormat,
    OutputManager,
    format_response,
    get_output,
    info,
    print_table,
    success,
    suggest,
)


def login_command(
    ctx: typer.Context,
    offline: Optional[str] = typer.Option(
        None, "--offline", metavar="NAME", help="Log in offline with this player name."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Do not open the verification page in a browser."
    ),
) -> None:
    """Log in with a Microsoft account, or offline with ``--offline NAME``.

    The Microsoft login prints a code and a URL. Open the URL on any
    device, enter the code, and the command finishes once the sign-in
    is complete. Press Ctrl-C to cancel.

    Raises:
        typer.Exit: With the error's exit code if the login fails, or 130
            if it was cancelled.

    Example::

        launchauth login
        launchauth login --no-browser
        launchauth login --offline Steve
    """
    config = _resolve(ctx)
    host = TerminalHost(open_browser=not no_browser)
    account = asyncio.run(_login(config, host, offline))
    success(f"Logged in as {account.username}")
    _print_account(account)


def logout_command(ctx: typer.Context) -> None:
    """Log out and forget the stored account.

    Example::

        launchauth logout
    """
    config = _resolve(ctx)
    asyncio.run(_logout(config, TerminalHost()))
    success("Logged out.")


def status_command(ctx: typer.Context) -> None:
    """Show the active account.

    Tokens are never printed. Exits with code 3 when nobody is logged in.

    Example::

        launchauth status
        launchauth status --json
    """
    from launchauth.auth.account_store import AccountStore

    account = AccountStore().load()
    if account is None:
        info("Not logged in.")
        suggest("Run 'launchauth login' to sign in.")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    _print_account(account)
    if account.is_expired:
        suggest("The session has expired. Run 'launchauth refresh'.")


def refresh_command(ctx: typer.Context) -> None:
    """Renew the tokens of the stored Microsoft account.

    Example::

        launchauth refresh
    """
    config = _resolve(ctx)
    account = asyncio.run(_refresh(config, TerminalHost()))
    success(f"Session refreshed for {account.username}")


# ------------------------------------------------------------------ #
# Async drivers
# ------------------------------------------------------------------ #


async def _login(config: GlobalConfig, host: TerminalHost, username: Optional[str]) -> Account:
    from launchauth.session import open_session

    output = get_output()
    async with open_session(config, host) as coordinator:
        if username is not None:
            account = await coordinator.begin_offline_login(username)
            if account is None:
                _fail(coordinator, output)
            return account

        cancelled: list[bool] = []

        def _cancel() -> None:
            cancelled.append(True)
            coordinator.cancel_device_flow()

        unsubscribe = coordinator.subscribe(_progress_printer(output))
        handles_sigint = _add_sigint_handler(_cancel)
        try:
            challenge = await coordinator.begin_device_flow()
            account = None
            if challenge is not None:
                account = await coordinator.wait_for_flow()
        finally:
            if handles_sigint:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            unsubscribe()

        if cancelled:
            output.warning("Login cancelled.")
            raise typer.Exit(code=EXIT_CANCELLED)
        if coordinator.last_error is not None or account is None:
            _fail(coordinator, output)
        return account


async def _logout(config: GlobalConfig, host: TerminalHost) -> None:
    from launchauth.session import open_session

    async with open_session(config, host) as coordinator:
        await coordinator.logout()
        if coordinator.last_error is not None:
            _fail(coordinator, get_output())


async def _refresh(config: GlobalConfig, host: TerminalHost) -> Account:
    from launchauth.session import open_session

    output = get_output()
    async with open_session(config, host) as coordinator:
        unsubscribe = coordinator.subscribe(_progress_printer(output))
        try:
            account = await coordinator.refresh_account()
        finally:
            unsubscribe()
        if account is None:
            _fail(coordinator, output)
        return account


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _resolve(ctx: typer.Context) -> GlobalConfig:
    from launchauth.config import resolve_config

    client_id = ctx.obj.get("client_id") if ctx.obj else None
    return resolve_config(cli_client_id=client_id)


def _progress_printer(output: OutputManager) -> Any:  # noqa: ANN401
    """Build a coordinator observer that streams the login to the terminal."""

    def _on_change(field: str, value: Any) -> None:  # noqa: ANN401
        if field == "device_code_challenge" and value is not None:
            output.user_code(value.verification_uri, value.user_code)
        elif field == "status_message" and value:
            output.progress(value)

    return _on_change


def _add_sigint_handler(callback: Any) -> bool:  # noqa: ANN401
    """Route Ctrl-C to *callback* while the loop runs. Returns False if unsupported."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, callback)
    except (NotImplementedError, RuntimeError, ValueError):
        return False
    return True


def _fail(coordinator: AuthCoordinator, output: OutputManager) -> None:
    """Exit with the exit code of the coordinator's last error.

    Validation errors are not shown as notices by the coordinator, so
    they are printed here.
    """
    error = coordinator.last_error
    if isinstance(error, ValidationError):
        output.error(str(error))
    code = error.exit_code if error is not None else EXIT_AUTH_FAILURE
    raise typer.Exit(code=code)


def _print_account(account: Account) -> None:
    summary = {
        "username": account.username,
        "uuid": account.uuid,
        "type": account.type.value,
        "expires_at": account.expires_at.isoformat() if account.expires_at else None,
    }
    if get_output().format == OutputFormat.JSON:
        format_response(summary)
        return
    rows = [[key, "-" if value is None else str(value)] for key, value in summary.items()]
    print_table(["Field", "Value"], rows, title="Account")
