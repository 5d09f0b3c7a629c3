"""Config commands -- view and modify global configuration.

Provides the ``launchauth config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~launchauth.models.GlobalConfig`): the Microsoft client
registration, endpoint URLs, poll interval and output defaults.
"""

from __future__ import annotations

import typer

from launchauth.exit_codes import EXIT_INVALID_USAGE
from launchauth.output import error, format_response, get_output, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Prints the file contents merged with defaults; environment variable
    and CLI overrides are not applied.

    Example::

        launchauth config show
        launchauth config show --json
    """
    from launchauth.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'auth.client_id')."
    ),
    value: str = typer.Argument(help="Value to set. Lists take comma-separated items."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the
    existing field's type (bool, int, list or str) and the result is
    validated against :class:`~launchauth.models.GlobalConfig` before
    saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        launchauth config set auth.client_id 00000000-0000-0000-0000-000000000000
        launchauth config set auth.poll_interval 10
        launchauth config set auth.scopes XboxLive.signin,offline_access
    """
    from launchauth.config import load_global_config, save_global_config
    from launchauth.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    current = target[final_key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    elif isinstance(current, list):
        coerced = [item.strip() for item in value.split(",") if item.strip()]  # type: ignore[assignment]
    else:
        coerced = value  # type: ignore[assignment]

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        launchauth config reset
        launchauth --force config reset
    """
    from launchauth.config import save_global_config
    from launchauth.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


@config_app.command("path")
def config_path() -> None:
    """Print the path of the config file."""
    from launchauth.config import global_config_path

    get_output().print_data(str(global_config_path()))
