"""
Error taxonomy for the binding engine.

Engine failures surface as exceptions to whichever caller triggered them.
The only control-flow exception is CancellationSignal, which is consumed at
the composed-handler merge boundary and never reaches callers.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(EngineError, TypeError):
    """Raised immediately when the engine is wired with invalid parts.

    Examples: registering a non-callable handler, composing with a
    non-callable merge function, resolving an empty path.
    """


class CancellationSignal(EngineError):
    """Abort a composed-handler merge and keep the local handler's result."""

    def __init__(self, message: str = "Cancel"):
        super().__init__(message)
