"""Encode raster images as base64 PNG text for model payloads."""

import base64
import io
import logging
from dataclasses import dataclass

from PIL import Image

from multimodal_image_ops.utils.exceptions import ImageProcessingFailure

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"

# Modes Pillow can write to PNG without conversion.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class EncodedImage:
    """Base64 text of a serialized image, tagged with its MIME type."""

    data: str
    mime_type: str = PNG_MIME_TYPE

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def encode_image_to_base64(image: Image.Image) -> str:
    """Serialize an image as PNG and return its base64 text.

    Args:
        image: In-memory raster image.

    Returns:
        Base64 encoding of the PNG bytes.

    Raises:
        ImageProcessingFailure: If the image cannot be serialized.
    """
    try:
        if image.mode not in _PNG_MODES:
            image = image.convert("RGB")
        with io.BytesIO() as buffer:
            image.save(buffer, format="PNG")
            encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    except (OSError, ValueError, TypeError) as exc:
        logger.error(f"Failed to encode image as PNG: {exc}")
        raise ImageProcessingFailure(details={"error": str(exc)}) from exc

    return encoded


def encode_image(image: Image.Image) -> EncodedImage:
    """Encode an image and tag it with the PNG MIME type."""
    return EncodedImage(data=encode_image_to_base64(image), mime_type=PNG_MIME_TYPE)
