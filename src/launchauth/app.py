"""Typer application and CLI entry point for launchauth.

This module builds the top-level Typer application, registers the
built-in commands (``login``, ``logout``, ``status``, ``refresh`` and
the ``config`` group), and configures output and logging from the
global options.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer
app. Unhandled exceptions are written to a crash log under the data
directory.

See Also:
    :mod:`launchauth.config`: Configuration resolution.
    :mod:`launchauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from launchauth import __version__
from launchauth.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="launchauth",
    help="Sign a game launcher in with a Microsoft account or an offline name.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"launchauth {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Azure application ID (overrides config and env)."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~launchauth.output.OutputManager` and
    logging from CLI flags, and stores shared options in the Typer
    context so that sub-commands can read them via ``ctx.obj``.

    Without ``--json`` or ``--plain`` the format stored under
    ``output.format`` in the config file applies.
    """
    from launchauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _configured_format()

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    _configure_logging(verbose, no_color)

    ctx.ensure_object(dict)
    ctx.obj["client_id"] = client_id
    ctx.obj["force"] = force


def _configured_format() -> Any:  # noqa: ANN401
    """Return the output format from the config file, or AUTO if unreadable."""
    from launchauth.config import load_global_config
    from launchauth.exceptions import ConfigError
    from launchauth.output import OutputFormat

    try:
        configured = load_global_config().output.format
    except ConfigError:
        return OutputFormat.AUTO
    try:
        return OutputFormat(configured)
    except ValueError:
        return OutputFormat.AUTO


def _configure_logging(verbose: bool, no_color: bool = False) -> None:
    """Route ``launchauth.*`` log records to stderr through Rich."""
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger("launchauth")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=verbose,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from launchauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def _register_commands() -> None:
    from launchauth.commands.account import (
        login_command,
        logout_command,
        refresh_command,
        status_command,
    )
    from launchauth.commands.config import config_app

    app.command("login")(login_command)
    app.command("logout")(logout_command)
    app.command("status")(status_command)
    app.command("refresh")(refresh_command)
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def main() -> None:
    """CLI entry point invoked by the ``launchauth`` console script.

    Unhandled :class:`~launchauth.exceptions.LaunchAuthError` instances
    cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from launchauth.exceptions import LaunchAuthError
        from launchauth.output import error

        if isinstance(exc, LaunchAuthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
