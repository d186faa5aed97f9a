"""Pydantic models for API requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class ImageReadRequest(BaseModel):
    """Request body for reading a single image."""

    data: str = Field(..., min_length=1, description="Instruction for the model")
    url: str = Field(..., min_length=1, description="Image URL or data URL")


class ImageGenerateRequest(BaseModel):
    """Request body for generating an image."""

    data: str = Field(..., min_length=1, description="Text prompt for the image")


class TokenUsageModel(BaseModel):
    """Token counters for one model call."""

    model_config = ConfigDict(populate_by_name=True)

    input_count: int = Field(..., alias="inputCount")
    output_count: int = Field(..., alias="outputCount")
    total_count: int = Field(..., alias="totalCount")


class ImageReadResponse(BaseModel):
    """Response model for the image read endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    response: str = Field(..., description="Text generated by the model")
    token_usage: TokenUsageModel = Field(..., alias="tokenUsage")


class ImageGenerateResponse(BaseModel):
    """Response model for the image generation endpoint."""

    response: str = Field(..., description="URL of the generated image")


class PageResponse(BaseModel):
    """One page of a scanned document response."""

    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(..., ge=1, description="Page number (1-indexed)")
    response: str
    token_usage: TokenUsageModel = Field(..., alias="tokenUsage")


class ScannedDocumentResponse(BaseModel):
    """Response model for the scanned document endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    total_pages: int = Field(..., alias="totalPages")
    pages: list[PageResponse]


class ErrorDetail(BaseModel):
    """Error detail model for API error responses.

    This model provides structured error responses with:
    - Human-readable error message
    - Machine-readable error code
    - Optional additional details for debugging
    - Optional request ID for correlation
    """

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E3001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )
