"""Utilities package for multimodal image operations.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from multimodal_image_ops.utils.exceptions import (
    ConfigurationError,
    ConnectorError,
    ErrorCode,
    FileHandlingFailure,
    FileTooLargeError,
    HTTPStatusMixin,
    ImageAnalysisFailure,
    ImageGenerationFailure,
    ImageProcessingFailure,
    ValidationError,
)
from multimodal_image_ops.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ConfigurationError",
    "ConnectorError",
    "ErrorCode",
    "FileHandlingFailure",
    "FileTooLargeError",
    "HTTPStatusMixin",
    "ImageAnalysisFailure",
    "ImageGenerationFailure",
    "ImageProcessingFailure",
    "ValidationError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
