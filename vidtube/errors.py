"""Error type shared by every handler and service."""

from typing import Any, Optional

from vidtube.models.response import ErrorResponse


class ApiError(Exception):
    """Exception carrying an HTTP status code and a client-facing message.

    Validation, not-found, conflict, unauthorized and internal failures are
    all raised as this one type; callers branch on ``status_code``.

    Attributes:
        status_code: HTTP status code for the error envelope
        message: Human-readable message returned to the client
        errors: Ordered list of sub-error strings
        cause: Original exception, kept for server-side logging only
    """

    success = False
    data = None

    def __init__(
        self,
        status_code: int,
        message: str = "Something went wrong",
        errors: Optional[list[str]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.errors = list(errors or [])
        self.cause = cause
        super().__init__(message)

    def to_envelope(self) -> dict[str, Any]:
        """Serialize to the error response envelope."""
        return ErrorResponse(
            success=self.success,
            status_code=self.status_code,
            message=self.message,
            errors=self.errors,
            data=self.data,
        ).model_dump(by_alias=True)

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, message={self.message!r})"
