"""Multimodal Image Operations - image reading, generation and scanned documents via LLMs."""

__version__ = "0.1.0"

from multimodal_image_ops.api import app, create_app  # noqa: E402
from multimodal_image_ops.operations import (  # noqa: E402
    draw_image,
    read_from_image,
    read_scanned_document,
)

__all__ = [
    "app",
    "create_app",
    "draw_image",
    "read_from_image",
    "read_scanned_document",
]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from multimodal_image_ops.config import settings

    uvicorn.run(
        "multimodal_image_ops.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
