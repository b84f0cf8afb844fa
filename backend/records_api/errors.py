from typing import Dict, List, Optional


class RecordError(Exception):
    """Base exception for record store errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.message = message
        self.errors = errors or []
        self.original_exception = original_exception
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "errors": self.errors}


class RecordValidationError(RecordError):
    """Exception raised when record input is malformed or out of range."""

    status_code = 400


class ConflictError(RecordError):
    """Exception raised when a write violates a unique constraint."""

    status_code = 409


class RecordNotFoundError(RecordError):
    """Exception raised when an operation references a nonexistent id."""

    status_code = 404
