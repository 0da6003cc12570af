"""
Error taxonomy for room operations.
All errors derive from ValueError so callers that only know the reducer's
"raise ValueError on a bad action" contract keep working.
"""


class RoomError(ValueError):
    """Base class. `kind` is the short machine-readable name sent to clients."""
    kind = "room_error"


class ValidationError(RoomError):
    """Caller input violates a precondition; nothing is written."""
    kind = "validation_error"


class AuthError(RoomError):
    """Wrong room password, or the caller lacks the right (e.g. not the owner)."""
    kind = "auth_error"


class NotFoundError(RoomError):
    kind = "not_found"


class ExternalStoreError(RoomError):
    """The document store failed to read or write."""
    kind = "store_error"


class StaleWriteError(ExternalStoreError):
    """A version-checked write lost the race against another writer."""
    kind = "conflict"
