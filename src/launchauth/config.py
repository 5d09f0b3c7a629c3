"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for launchauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.launchauth/`` on macOS and Windows. See :func:`get_config_dir`
  and :func:`get_data_dir`.
* **Global config** -- A single :class:`~launchauth.models.GlobalConfig`
  JSON file storing the Microsoft client registration and output defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective
  configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from launchauth.exceptions import ConfigError
from launchauth.models import GlobalConfig

_APP_NAME = "launchauth"
_CONFIG_FILENAME = "config.json"

ENV_CLIENT_ID = "LAUNCHAUTH_CLIENT_ID"
ENV_POLL_INTERVAL = "LAUNCHAUTH_POLL_INTERVAL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/launchauth/`` (default ``~/.config/launchauth/``).
    On macOS/Windows: ``~/.launchauth/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored account, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/launchauth/`` (default ``~/.local/share/launchauth/``).
    On macOS/Windows: ``~/.launchauth/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    When *mode* is given it is applied to the temp file before any content
    is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~launchauth.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_client_id: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_client_id``, ``cli_format``)
        2. Environment variables (``LAUNCHAUTH_CLIENT_ID``,
           ``LAUNCHAUTH_POLL_INTERVAL``)
        3. User config (``~/.config/launchauth/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~launchauth.models.GlobalConfig`.

    Raises:
        ConfigError: If the config file is invalid or
            ``LAUNCHAUTH_POLL_INTERVAL`` is not a positive integer.
    """
    config = load_global_config()

    env_client_id = os.environ.get(ENV_CLIENT_ID)
    if env_client_id:
        config.auth.client_id = env_client_id

    env_interval = os.environ.get(ENV_POLL_INTERVAL)
    if env_interval:
        try:
            interval = int(env_interval)
        except ValueError:
            raise ConfigError(
                f"{ENV_POLL_INTERVAL} must be an integer, got: {env_interval}"
            ) from None
        if interval <= 0:
            raise ConfigError(f"{ENV_POLL_INTERVAL} must be positive, got: {interval}")
        config.auth.poll_interval = interval

    if cli_client_id is not None:
        config.auth.client_id = cli_client_id

    if cli_format is not None:
        config.output.format = cli_format

    return config
