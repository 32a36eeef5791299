"""Simple, consistent API error handling."""

from typing import Optional

from fastapi import HTTPException


class APIError(HTTPException):
    """API error with consistent format.

    All errors will be formatted as:
    {"error": "error message", "details": "optional underlying error"}
    """

    def __init__(self, status_code: int, message: str, details: Optional[str] = None):
        """Create an API error.

        Args:
            status_code: HTTP status code
            message: Error message to display
            details: Optional text of the underlying exception
        """
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details


class ValidationError(APIError):
    """400 - Request validation failed."""

    def __init__(self, message: str):
        super().__init__(400, message)


class NotFoundError(APIError):
    """404 - Resource not found."""

    def __init__(self, resource: str = "Artifact"):
        super().__init__(404, f"{resource} not found")


class ServerError(APIError):
    """500 - Internal server error."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(500, message, details)
