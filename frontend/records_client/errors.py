from typing import Dict, List, Optional


class ApiError(Exception):
    """Base exception for failed calls to the records API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(self.message)

    def field_errors(self) -> Dict[str, str]:
        """Map field name to the first message reported for it."""
        result = {}
        for error in self.errors:
            result.setdefault(error.get("field", ""), error.get("message", ""))
        return result


class ApiValidationError(ApiError):
    """Exception raised when the server rejects the input."""

    pass


class ApiConflictError(ApiError):
    """Exception raised when the email is already in use."""

    pass


class ApiNotFoundError(ApiError):
    """Exception raised when the record does not exist."""

    pass
