"""Pydantic models for HTTP API responses."""

from typing import Optional
from pydantic import BaseModel, Field

from launcher.models.state import InstallState
from launcher.models.status import InstallStep


class ProgressResponse(BaseModel):
    """GET /api/v1.0/progress response.

    Returns the current install state with an application-level status code.
    """

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: InstallState = Field(..., description="Install state snapshot")


class SuccessResponse(BaseModel):
    """Success response for command endpoints."""

    code: int = Field(default=200, description="Application-level status code (200)")
    msg: str = Field(default="success", description="Success message")
    data: Optional[dict] = Field(None, description="Optional response data")


class ErrorResponse(BaseModel):
    """Error response for command endpoints.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(..., description="Application-level error code (409/500)")
    msg: str = Field(..., description="Error message with error code prefix")
    step: Optional[InstallStep] = Field(None, description="Current step when the request was refused")
    progress: Optional[float] = Field(None, description="Current progress when the request was refused")
