"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~launchauth.exceptions.LaunchAuthError` subclass.
Wrapper scripts can inspect the exit code to tell a rejected login from
a network outage without parsing stderr.

Example::

    $ launchauth login
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the device code expired or was denied
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments (e.g. an empty username)."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or was denied."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CANCELLED = 130
"""The user interrupted the command (Ctrl-C)."""
