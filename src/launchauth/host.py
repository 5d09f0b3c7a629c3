"""Host-environment side effects used by the login coordinator.

The coordinator never touches the desktop directly. It asks a
:class:`HostEnvironment` to copy the user code, open the verification
page, and show blocking error notices. :class:`TerminalHost` is the
implementation used by the CLI.

Clipboard and browser calls are best-effort from the coordinator's point
of view: any exception they raise is logged and the login continues.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional

from launchauth.output import OutputManager, get_output

logger = logging.getLogger(__name__)

# Tried in order; the first one found on PATH wins.
_CLIPBOARD_COMMANDS: dict[str, list[list[str]]] = {
    "darwin": [["pbcopy"]],
    "win32": [["clip"]],
    "linux": [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ],
}


class HostEnvironment(ABC):
    """Side effects the coordinator delegates to its host."""

    @abstractmethod
    def copy_to_clipboard(self, text: str) -> None:
        """Place *text* on the system clipboard."""
        ...

    @abstractmethod
    def open_url(self, url: str) -> None:
        """Open *url* in an external browser."""
        ...

    @abstractmethod
    def notify_error(self, message: str) -> None:
        """Show a blocking error notice, separate from the rolling status line."""
        ...


class TerminalHost(HostEnvironment):
    """Host for terminal sessions.

    Args:
        open_browser: When ``False`` the verification URL is only printed,
            as needed over SSH or inside containers.
        output: Output manager for notices. Defaults to the global one.
    """

    def __init__(self, open_browser: bool = True, output: Optional[OutputManager] = None) -> None:
        self._open_browser = open_browser
        self._output = output

    @property
    def output(self) -> OutputManager:
        return self._output or get_output()

    def copy_to_clipboard(self, text: str) -> None:
        """Pipe *text* into the platform clipboard utility.

        Raises:
            OSError: If no clipboard utility is installed.
            subprocess.CalledProcessError: If the utility exits non-zero.
        """
        command = _find_clipboard_command()
        if command is None:
            raise OSError("No clipboard utility found on PATH")
        subprocess.run(command, input=text, text=True, check=True, timeout=5)
        logger.debug("Copied user code with %s", command[0])

    def open_url(self, url: str) -> None:
        """Open *url* with :mod:`webbrowser` unless browsing is disabled.

        Raises:
            OSError: If no runnable browser was found.
        """
        if not self._open_browser:
            self.output.debug("Browser launch disabled, not opening verification page")
            return
        if not webbrowser.open(url):
            raise OSError(f"No browser available to open {url}")

    def notify_error(self, message: str) -> None:
        self.output.error(message)


def _find_clipboard_command() -> Optional[list[str]]:
    """Return the first clipboard command available on this platform."""
    platform_key = "linux" if sys.platform.startswith(("linux", "freebsd")) else sys.platform
    for command in _CLIPBOARD_COMMANDS.get(platform_key, []):
        if shutil.which(command[0]):
            return command
    return None
