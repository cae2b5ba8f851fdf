"""
Custom exceptions for the key-value store.
"""


class EngineError(Exception):
    """
    Raised when the embedded storage engine fails.

    Covers open failures, I/O errors, a full map and commit failures.
    The store is left in its last committed state.
    """

    def __init__(self, operation: str, cause: Exception):
        """
        Initialize engine error.

        Args:
            operation: Store operation that was running.
            cause: Original engine exception.
        """
        self.operation = operation
        self.cause = cause
        super().__init__(f"Engine failure during {operation}: {cause}")


class InvalidKeyError(ValueError):
    """Raised when a key cannot be stored by the engine (empty or too long)."""


class MalformedRequestError(ValueError):
    """Raised when a request body does not have the expected shape."""
