"""Error kinds raised by the store-facing services.

Every store operation either returns or raises exactly one of these. The API
layer maps them to HTTP responses in ``app.api.errors``.
"""


class StoreError(Exception):
    """Base class for failures surfaced by the record store."""

    default_message = "store operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(StoreError):
    """The entity does not exist, or a conditional write matched zero rows."""

    default_message = "record not found"


class ConflictError(StoreError):
    """A uniqueness constraint would be violated."""

    default_message = "resource already exists"


class StoreTimeoutError(StoreError):
    default_message = "store operation timed out"


class UnclassifiedStoreError(StoreError):
    default_message = "store operation failed"
