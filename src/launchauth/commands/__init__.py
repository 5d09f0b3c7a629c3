"""Built-in CLI sub-commands for launchauth.

* :mod:`~launchauth.commands.account` -- ``login``, ``logout``,
  ``status`` and ``refresh``, registered directly on the root app.
* :mod:`~launchauth.commands.config` -- the ``config`` group for
  viewing and modifying global settings.
"""
