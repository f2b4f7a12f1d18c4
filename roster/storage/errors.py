"""Error types for storage backends.

Shape problems on load are not errors: the normalizer recovers them. The types
here are the failures a caller has to know about.
"""

from typing import Any


class StorageError(RuntimeError):
    """Base exception for storage backend failures."""

    pass


class AdapterInitError(StorageError):
    """Raised when a backend fails to become ready.

    The bootstrapper turns this into a fallback; it never reaches the user as
    a hard failure.
    """

    def __init__(self, backend: str, original_error: Exception | None = None) -> None:
        self.backend = backend
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Backend '{backend}' failed to initialize{detail}")


class TransactionError(StorageError):
    """Raised when a write failed mid-transaction.

    The transaction was rolled back; callers must treat the mutation as not
    having happened.
    """

    pass


class RemoteProtocolError(StorageError):
    """Raised for non-success or unparsable responses from the remote endpoint.

    Attributes:
        status: HTTP status code of the response
        message: Server-provided message (or a client-side parse message)
        details: Optional server-provided details
    """

    def __init__(self, status: int, message: str, details: Any = None) -> None:
        self.status = status
        self.message = message
        self.details = details
        super().__init__(f"{status}: {message}")
