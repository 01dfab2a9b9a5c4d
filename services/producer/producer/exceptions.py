"""
Exceptions raised by the producer core.
"""


class EmitterError(Exception):
    """Base class for interval emitter errors."""


class EmitterStateError(EmitterError):
    """Raised when an emitter is used in a state that does not allow the operation."""
