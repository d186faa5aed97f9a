"""Configuration management for multimodal image operations.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
MIO_ prefix, or via a .env file in the project root.

Environment Variables:
    MIO_OPENAI_API_KEY: OpenAI API key (required for model calls)
    MIO_OPENAI_BASE_URL: Optional OpenAI-compatible endpoint
    MIO_OPENAI_MODEL: Chat model used to read images (default: gpt-4o)
    MIO_OPENAI_IMAGE_MODEL: Text-to-image model (default: dall-e-3)
    MIO_OPENAI_TEMPERATURE: Chat model temperature (default: 0.0)
    MIO_OPENAI_MAX_TOKENS: Maximum tokens per response (default: 4096)
    MIO_REQUEST_TIMEOUT_SECONDS: Timeout for each model call (default: 60)
    MIO_PDF_DPI: Resolution used to rasterize document pages (default: 300)
    MIO_MAX_CONCURRENT_PAGES: Pages analyzed in parallel (default: 1)
    MIO_MAX_FILE_SIZE_MB: Maximum uploaded document size in MB (default: 25)
    MIO_TEMP_UPLOAD_DIR: Directory for temporary document uploads
    MIO_LOG_LEVEL: Logging level (default: INFO)
    MIO_DEBUG: Enable debug mode (default: false)
    MIO_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    MIO_SERVER_HOST: Server bind host (default: 0.0.0.0)
    MIO_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

from langchain_openai import ChatOpenAI
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from multimodal_image_ops.utils.exceptions import ConfigurationError

OPENAI_API_KEY = "OPENAI_API_KEY"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        MIO_OPENAI_API_KEY=sk-...
        MIO_OPENAI_MODEL=gpt-4o-mini
        MIO_MAX_CONCURRENT_PAGES=4
    """

    model_config = SettingsConfigDict(
        env_prefix="MIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # OpenAI / Model Settings
    # =========================================================================

    openai_api_key: SecretStr = SecretStr("")
    """OpenAI API key. Required for every model call."""

    openai_base_url: str | None = None
    """Optional base URL for an OpenAI-compatible endpoint."""

    openai_model: str = "gpt-4o"
    """Chat model used for image reads and scanned documents."""

    openai_image_model: str = "dall-e-3"
    """Text-to-image model used by image generation."""

    openai_temperature: float = 0.0
    """Temperature for chat model sampling."""

    openai_max_tokens: int = 4096
    """Maximum tokens for a chat model response."""

    request_timeout_seconds: float = 60.0
    """Timeout applied to each individual model call."""

    # =========================================================================
    # Document Processing Settings
    # =========================================================================

    pdf_dpi: int = 300
    """Resolution used to rasterize document pages."""

    max_concurrent_pages: int = 1
    """Pages analyzed in parallel. 1 processes pages strictly in sequence."""

    max_file_size_mb: int = 25
    """Maximum uploaded document size in megabytes."""

    temp_upload_dir: str = "/tmp/mio_uploads"
    """Directory for storing temporary uploaded documents."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with detailed error responses."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    """Host address for the server to bind to."""

    server_port: int = 8000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("openai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"openai_temperature must be between 0.0 and 2.0, got {v}")
        return v

    @field_validator("pdf_dpi")
    @classmethod
    def validate_dpi(cls, v: int) -> int:
        """Validate rasterization DPI is within a renderable range."""
        if not 72 <= v <= 1200:
            raise ValueError(f"pdf_dpi must be between 72 and 1200, got {v}")
        return v

    @field_validator("max_concurrent_pages")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"max_concurrent_pages must be between 1 and 16, got {v}")
        return v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        """Validate file size is positive and reasonable."""
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"request_timeout_seconds must be positive, got {v}")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def get_openai_api_key(self) -> str:
        """Get the OpenAI API key value.

        Returns:
            The API key string. Returns empty string if not set.

        Note:
            Direct access to openai_api_key returns a SecretStr which
            prevents accidental logging.
        """
        return self.openai_api_key.get_secret_value()

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary with sensitive values masked."""
        return {
            "openai_api_key": "***" if self.get_openai_api_key() else "(not set)",
            "openai_base_url": self.openai_base_url,
            "openai_model": self.openai_model,
            "openai_image_model": self.openai_image_model,
            "openai_temperature": self.openai_temperature,
            "openai_max_tokens": self.openai_max_tokens,
            "request_timeout_seconds": self.request_timeout_seconds,
            "pdf_dpi": self.pdf_dpi,
            "max_concurrent_pages": self.max_concurrent_pages,
            "max_file_size_mb": self.max_file_size_mb,
            "temp_upload_dir": self.temp_upload_dir,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Log warnings for settings that will break or weaken the service.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if not s.get_openai_api_key():
        logger.warning(
            "OPENAI_API_KEY is not configured. Model calls will fail. "
            "Set MIO_OPENAI_API_KEY environment variable."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"model={s.openai_model}, image_model={s.openai_image_model}, "
        f"pdf_dpi={s.pdf_dpi}, max_concurrent_pages={s.max_concurrent_pages}"
    )


class ConfigExtractor:
    """Resolves secret values by key.

    Lookup order: explicit values passed to the constructor, secrets held by
    the settings object, then the process environment.
    """

    def __init__(
        self,
        source: Settings | None = None,
        values: Mapping[str, str] | None = None,
    ) -> None:
        self._source = source
        self._values = dict(values or {})

    def extract_value(self, key: str) -> str:
        """Return the value configured for ``key``.

        Raises:
            ConfigurationError: If no non-empty value is configured.
        """
        value = self._values.get(key)
        if not value and self._source is not None and key == OPENAI_API_KEY:
            value = self._source.get_openai_api_key()
        if not value:
            value = os.environ.get(key)
        if not value:
            raise ConfigurationError(f"Configuration value not set: {key}", key=key)
        return value


class ModelConfiguration:
    """Resolved model configuration handed to every operation.

    Yields a ready chat model, the configured model names, and the
    config extractor used for secrets. The chat model is built lazily
    from the extractor unless one is injected.
    """

    def __init__(
        self,
        model_name: str,
        config_extractor: ConfigExtractor,
        image_model_name: str | None = None,
        model: Any | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
    ) -> None:
        self.model_name = model_name
        self.image_model_name = image_model_name or model_name
        self.config_extractor = config_extractor
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url
        self._model = model

    @classmethod
    def from_settings(cls, s: Settings) -> "ModelConfiguration":
        return cls(
            model_name=s.openai_model,
            image_model_name=s.openai_image_model,
            config_extractor=ConfigExtractor(source=s),
            temperature=s.openai_temperature,
            max_tokens=s.openai_max_tokens,
            timeout=s.request_timeout_seconds,
            base_url=s.openai_base_url,
        )

    @property
    def model(self) -> Any:
        """Get or create the chat model.

        Raises:
            ConfigurationError: If the API key is not configured.
        """
        if self._model is None:
            api_key = self.config_extractor.extract_value(OPENAI_API_KEY)
            # Retries are disabled: a failed call aborts the operation.
            self._model = ChatOpenAI(
                api_key=api_key,  # type: ignore[arg-type]
                model=self.model_name,
                temperature=self.temperature,
                max_completion_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=0,
                base_url=self.base_url,
            )
        return self._model


# Create the global settings instance
settings = Settings()
