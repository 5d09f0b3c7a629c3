"""launchauth -- account login coordinator for a game launcher.

This package drives the two ways a launcher user can sign in: the
Microsoft OAuth 2.0 Device Authorization Grant (:rfc:`8628`) and a plain
offline username. The interactive flow is owned by a single
:class:`~launchauth.auth.coordinator.AuthCoordinator`, which talks to a
backend through the :class:`~launchauth.bridge.base.CommandBridge`
contract and publishes its state to observers.

Typical workflow::

    launchauth login              # device code flow in the browser
    launchauth login --offline Steve
    launchauth status

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    events: Subscribable event channels (progress messages, state changes).
    host: Clipboard, browser and notice side effects.
    session: Composition root wiring bridge, coordinator and host.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
