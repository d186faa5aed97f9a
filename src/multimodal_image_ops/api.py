"""FastAPI application exposing the image operations over HTTP."""

import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

from fastapi import (
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from multimodal_image_ops import __version__
from multimodal_image_ops.config import (
    ModelConfiguration,
    settings,
    validate_settings_on_startup,
)
from multimodal_image_ops.models import (
    ErrorDetail,
    HealthResponse,
    ImageGenerateRequest,
    ImageGenerateResponse,
    ImageReadRequest,
    ImageReadResponse,
    ScannedDocumentResponse,
)
from multimodal_image_ops.operations import (
    draw_image,
    read_from_image,
    read_scanned_document,
)
from multimodal_image_ops.services.prompt_builder import REMOTE_URL_PREFIXES
from multimodal_image_ops.utils.exceptions import (
    ConnectorError,
    ErrorCode,
    FileTooLargeError,
    ValidationError,
)
from multimodal_image_ops.utils.logging import (
    LogContext,
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorDetail, "description": "Invalid request or document"},
    422: {"model": ErrorDetail, "description": "Image could not be processed"},
    500: {"model": ErrorDetail, "description": "Configuration error"},
    502: {"model": ErrorDetail, "description": "Model call failed"},
}


def _json_response(payload: str) -> Response:
    return Response(content=payload, media_type="application/json")


def create_app(configuration: ModelConfiguration | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        configuration: Model configuration used by every request. Defaults
            to one built from the global settings.
    """
    app = FastAPI(
        title="Multimodal Image Operations API",
        description=(
            "Image understanding, image generation and scanned-document "
            "transcription backed by multimodal LLMs."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.configuration = configuration or ModelConfiguration.from_settings(
        settings
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it in logs and the response headers."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(ConnectorError)
    async def connector_exception_handler(
        request: Request, exc: ConnectorError
    ) -> JSONResponse:
        """Return typed connector errors as structured error responses."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.error(
            f"Connector Error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
            cause=repr(exc.__cause__) if exc.__cause__ else None,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail(
                detail=exc.message,
                error_code=exc.error_code.value,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(f"HTTP Error: {exc.detail}", status_code=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler; hides internals unless debug is enabled."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                detail=detail,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
        }

    @app.post(
        "/image/read",
        tags=["Image"],
        responses={200: {"model": ImageReadResponse}, **_ERROR_RESPONSES},
    )
    async def image_read(request: Request, body: ImageReadRequest) -> Response:
        """Ask the chat model about the image at ``url``.

        Only ``http(s)://`` and ``data:`` URLs are accepted; local paths
        are never resolved on the server.
        """
        if not body.url.startswith(REMOTE_URL_PREFIXES):
            raise ValidationError(
                "The image url must be an http://, https:// or data: URL",
                field="url",
            )

        configuration = request.app.state.configuration
        with LogContext(operation="image_read"):
            payload = await run_in_threadpool(
                read_from_image, configuration, body.data, body.url
            )
        return _json_response(payload)

    @app.post(
        "/image/generate",
        tags=["Image"],
        responses={200: {"model": ImageGenerateResponse}, **_ERROR_RESPONSES},
    )
    async def image_generate(request: Request, body: ImageGenerateRequest) -> Response:
        """Generate an image from a text prompt."""
        configuration = request.app.state.configuration
        with LogContext(operation="image_generate"):
            payload = await run_in_threadpool(draw_image, configuration, body.data)
        return _json_response(payload)

    @app.post(
        "/image/read-scanned-documents",
        tags=["Image"],
        responses={
            200: {"model": ScannedDocumentResponse},
            413: {"model": ErrorDetail, "description": "File too large"},
            **_ERROR_RESPONSES,
        },
    )
    async def image_read_scanned_documents(
        request: Request,
        file: Annotated[UploadFile, File(description="PDF document to read")],
        data: Annotated[str, Form(description="Instruction sent with each page")],
    ) -> Response:
        """Upload a PDF and ask the chat model the same question about each page.

        The upload is stored in the temporary upload directory for the
        duration of the request and removed afterwards.
        """
        if not data.strip():
            raise ValidationError("An instruction must be provided", field="data")
        if not file.filename:
            raise ValidationError("A document file must be provided", field="file")

        content = await file.read()
        if len(content) > settings.max_file_size_bytes:
            logger.warning(
                "File too large",
                file_size=len(content),
                max_size=settings.max_file_size_bytes,
            )
            raise FileTooLargeError(
                file_size=len(content),
                max_size=settings.max_file_size_bytes,
                file_path=file.filename,
            )

        upload_dir = Path(settings.temp_upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        temp_path = upload_dir / f"{uuid.uuid4()}{Path(file.filename).suffix}"
        temp_path.write_bytes(content)

        configuration = request.app.state.configuration
        try:
            with LogContext(operation="read_scanned_documents", filename=file.filename):
                payload = await run_in_threadpool(
                    read_scanned_document, configuration, data, temp_path
                )
        finally:
            temp_path.unlink(missing_ok=True)

        return _json_response(payload)

    logger.info("FastAPI application created successfully")
    return app


# Create the application instance
app = create_app()
