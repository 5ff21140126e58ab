"""Models and field types shared across routers."""

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field


def _strip_required(value: str) -> str:
    if not value.strip():
        raise ValueError("Name is required")
    return value.strip()


# Display name of an organization or workspace; whitespace-only is rejected
Name = Annotated[str, Field(min_length=1, max_length=128), AfterValidator(_strip_required)]


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Human-readable error message")
    error_code: str = Field(..., description="Error code for programmatic handling")
    details: dict[str, Any] | None = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="ok or degraded")
    version: str = Field(..., description="Service version")
    uptime: float = Field(..., description="Service uptime in seconds")
    database: str = Field(..., description="ok or unreachable")
