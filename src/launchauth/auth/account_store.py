"""Persistent storage for the current launcher account.

The account is kept in ``~/.local/share/launchauth/account.json`` (XDG)
or the platform-equivalent directory. Writes go through
:func:`~launchauth.config._atomic_write` with ``0o600`` permissions so
that tokens are never world-readable, even momentarily.

Only one account is stored at a time; saving replaces the previous one.

See Also:
    :class:`~launchauth.bridge.launcher.LauncherBridge` -- the backend
    that reads and writes this store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from launchauth.config import _atomic_write, get_data_dir
from launchauth.models import Account

logger = logging.getLogger(__name__)

_ACCOUNT_FILENAME = "account.json"


class AccountStore:
    """Read/write the current :class:`~launchauth.models.Account`.

    Args:
        path: Explicit file location. Defaults to ``account.json`` in
            the data directory.

    Example::

        store = AccountStore()
        store.save(Account(type="offline", username="Steve", uuid="..."))
        assert store.load().username == "Steve"
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or get_data_dir() / _ACCOUNT_FILENAME

    @property
    def path(self) -> Path:
        """The filesystem path of the account file."""
        return self._path

    def save(self, account: Account) -> None:
        """Persist *account* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        data = account.model_dump(mode="json")
        _atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def load(self) -> Optional[Account]:
        """Load the stored account.

        Returns:
            The stored :class:`Account`, or ``None`` if the file does not
            exist or cannot be parsed.
        """
        if not self._path.is_file():
            return None
        try:
            text = self._path.read_text(encoding="utf-8")
            return Account.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable account file %s: %s", self._path, exc)
            return None

    def clear(self) -> None:
        """Delete the stored account. No-op when nothing is stored."""
        if self._path.is_file():
            self._path.unlink()
