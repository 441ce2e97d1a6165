"""Success and error response envelopes."""

from typing import Any, Optional

from pydantic import Field, model_validator

from vidtube.models.base import CamelModel


class ApiResponse(CamelModel):
    """Success envelope wrapped around every handler payload.

    Attributes:
        status_code: HTTP status code, serialized as ``statusCode``
        data: Handler payload
        message: Human-readable summary
        success: Derived from the status code (< 400)
    """

    status_code: int = Field(ge=100, le=599)
    data: Any = None
    message: str = "Success"
    success: bool = True

    @model_validator(mode="after")
    def derive_success(self) -> "ApiResponse":
        """Keep success consistent with the status code."""
        self.success = self.status_code < 400
        return self


class ErrorResponse(CamelModel):
    """Error envelope rendered for every ApiError."""

    success: bool = False
    status_code: int
    message: str
    errors: list[str] = Field(default_factory=list)
    data: Optional[Any] = None
