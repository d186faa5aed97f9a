"""Centralized exception classes for multimodal image operations.

Every failure surfaced by an operation is one of the typed errors below. Each
carries an error code, an HTTP status for the API layer, and a details
dictionary with the context of the failing call (file path, image URL,
instruction text, page number). The original exception is always chained via
``raise ... from exc``.

Exception Hierarchy:
    ConnectorError (base)
    ├── FileHandlingFailure
    │   └── FileTooLargeError
    ├── ImageProcessingFailure
    ├── ImageAnalysisFailure
    ├── ImageGenerationFailure
    ├── ConfigurationError
    └── ValidationError

Error Codes:
    - E1xxx: File/document errors
    - E2xxx: Image processing errors
    - E3xxx: Model call errors
    - E4xxx: Request errors
    - E9xxx: Internal/configuration errors
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used by the connector."""

    # File errors (E1xxx)
    FILE_HANDLING_FAILURE = "E1001"
    FILE_TOO_LARGE = "E1002"

    # Image processing errors (E2xxx)
    IMAGE_PROCESSING_FAILURE = "E2001"

    # Model call errors (E3xxx)
    IMAGE_ANALYSIS_FAILURE = "E3001"
    IMAGE_GENERATION_FAILURE = "E3002"

    # Request errors (E4xxx)
    INVALID_REQUEST = "E4001"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    CONFIGURATION_ERROR = "E9002"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions."""

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception.

        Returns:
            HTTP status code appropriate for this error.
        """
        return self.http_status


class ConnectorError(Exception, HTTPStatusMixin):
    """Base exception for all connector errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Dictionary with additional error context.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# File Errors (E1xxx)
# =============================================================================


class FileHandlingFailure(ConnectorError):
    """Raised when a document path cannot be read or parsed."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        error_code: ErrorCode = ErrorCode.FILE_HANDLING_FAILURE,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file path information.

        Args:
            message: Error message.
            file_path: Path to the problematic file.
            error_code: Error code.
            details: Additional details.
        """
        details = details or {}
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, error_code, details)
        self.file_path = file_path


class FileTooLargeError(FileHandlingFailure):
    """Raised when an uploaded document exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        file_path: str | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            file_path: Optional file path.
        """
        message = (
            f"File size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            file_path=file_path,
            error_code=ErrorCode.FILE_TOO_LARGE,
            details={"file_size_bytes": file_size, "max_size_bytes": max_size},
        )
        self.file_size = file_size
        self.max_size = max_size


# =============================================================================
# Image Processing Errors (E2xxx)
# =============================================================================


class ImageProcessingFailure(ConnectorError):
    """Raised when an in-memory image cannot be re-encoded."""

    http_status: int = 422

    def __init__(
        self,
        message: str = "Error occurred while processing the image",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.IMAGE_PROCESSING_FAILURE, details)


# =============================================================================
# Model Call Errors (E3xxx)
# =============================================================================


class ImageAnalysisFailure(ConnectorError):
    """Raised when the chat model fails to analyze an image or a page."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        instruction: str | None = None,
        image_url: str | None = None,
        file_path: str | None = None,
        page_number: int | None = None,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the context of the failed analysis.

        Args:
            message: Error message.
            instruction: Instruction text sent with the image.
            image_url: Image URL or location, for single-image reads.
            file_path: Source document path, for scanned documents.
            page_number: 1-indexed page that failed, for scanned documents.
            model: The model that was called.
            details: Additional details.
        """
        details = details or {}
        if instruction is not None:
            details["instruction"] = instruction
        if image_url:
            details["image_url"] = image_url
        if file_path:
            details["file_path"] = file_path
        if page_number is not None:
            details["page_number"] = page_number
        if model:
            details["model"] = model
        super().__init__(message, ErrorCode.IMAGE_ANALYSIS_FAILURE, details)
        self.instruction = instruction
        self.file_path = file_path
        self.page_number = page_number


class ImageGenerationFailure(ConnectorError):
    """Raised when the text-to-image model fails."""

    http_status: int = 502

    def __init__(
        self,
        prompt: str,
        message: str | None = None,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the prompt that failed.

        Args:
            prompt: The generation prompt.
            message: Optional custom message.
            model: The image model that was called.
            details: Additional details.
        """
        details = details or {}
        details["prompt"] = prompt
        if model:
            details["model"] = model
        message = message or f"Error while generating the required image: {prompt}"
        super().__init__(message, ErrorCode.IMAGE_GENERATION_FAILURE, details)
        self.prompt = prompt


# =============================================================================
# Request / Configuration Errors
# =============================================================================


class ValidationError(ConnectorError):
    """General validation error for request input."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, ErrorCode.INVALID_REQUEST, details)


class ConfigurationError(ConnectorError):
    """Raised when a required configuration value is missing."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if key:
            details["key"] = key
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        self.key = key
