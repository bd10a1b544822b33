"""Error types raised by the engine.

Lookups that miss return ``None`` (the not-found sentinel) instead of
raising; these classes cover caller misuse and malformed input.
"""


class ReckoningError(Exception):
    """Base class for engine errors."""


class ConflictError(ReckoningError):
    """The requested change collides with existing state.

    Raised when adding a trait that is already active for an entity, or
    when editing a proposal that has already been resolved.
    """


class ValidationError(ReckoningError, ValueError):
    """Malformed input, rejected before anything is written."""
