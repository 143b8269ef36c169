"""
Error types for ClipShare.

Every failure the store adapter, the collection services and the HTTP layer
can report lives here so callers have a single import surface.
"""


class ClipShareError(Exception):
    """Base error type for all ClipShare failures."""


class StoreUnavailable(ClipShareError):
    """
    Raised when the key-value store cannot be reached or rejects a command.

    Covers connection failures, timeouts, authentication errors and
    misconfiguration. Never used for "key absent" or "transaction aborted".
    """


class CollectionNotFound(ClipShareError):
    """Raised when a collection key is absent (expired or never created)."""


class ItemNotFound(ClipShareError):
    """Raised when an item id is not present in an existing collection."""


class CorruptedCollection(ClipShareError):
    """Raised when a stored collection record cannot be deserialized."""


class ConflictError(ClipShareError):
    """
    Raised when an optimistic transaction lost a race.

    The watched collection key changed between the read and the commit, so
    nothing was written. The whole operation may be retried by the caller.
    """


class InvalidInput(ClipShareError):
    """Raised when a request body is malformed or fails validation."""
