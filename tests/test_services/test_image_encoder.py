"""Tests for the image encoder."""

import base64
import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from multimodal_image_ops.services.image_encoder import (
    PNG_MIME_TYPE,
    EncodedImage,
    encode_image,
    encode_image_to_base64,
)
from multimodal_image_ops.utils.exceptions import ErrorCode, ImageProcessingFailure


class TestEncodeImageToBase64:
    """Tests for encode_image_to_base64."""

    def test_output_decodes_to_png_with_same_dimensions(
        self, sample_image: Image.Image
    ) -> None:
        """Decoding the base64 text yields a PNG of the original size."""
        encoded = encode_image_to_base64(sample_image)

        decoded = Image.open(io.BytesIO(base64.b64decode(encoded)))
        assert decoded.format == "PNG"
        assert decoded.size == (64, 48)

    def test_round_trip_is_lossless(self, sample_image: Image.Image) -> None:
        """PNG encoding preserves pixel data exactly."""
        encoded = encode_image_to_base64(sample_image)

        decoded = Image.open(io.BytesIO(base64.b64decode(encoded))).convert("RGB")
        assert decoded.tobytes() == sample_image.tobytes()

    def test_rgba_image_keeps_alpha(self) -> None:
        image = Image.new("RGBA", (10, 10), color=(0, 0, 255, 128))
        decoded = Image.open(io.BytesIO(base64.b64decode(encode_image_to_base64(image))))
        assert decoded.mode == "RGBA"

    def test_cmyk_image_is_converted(self) -> None:
        """Modes PNG cannot store are converted to RGB first."""
        image = Image.new("CMYK", (10, 10))
        decoded = Image.open(io.BytesIO(base64.b64decode(encode_image_to_base64(image))))
        assert decoded.mode == "RGB"
        assert decoded.size == (10, 10)

    def test_save_failure_raises_image_processing_failure(self) -> None:
        image = MagicMock(spec=Image.Image)
        image.mode = "RGB"
        image.save.side_effect = OSError("disk full")

        with pytest.raises(ImageProcessingFailure) as exc_info:
            encode_image_to_base64(image)

        assert exc_info.value.error_code == ErrorCode.IMAGE_PROCESSING_FAILURE
        assert isinstance(exc_info.value.__cause__, OSError)
        assert exc_info.value.details["error"] == "disk full"


class TestEncodeImage:
    """Tests for encode_image."""

    def test_tags_png_mime_type(self, sample_image: Image.Image) -> None:
        encoded = encode_image(sample_image)
        assert isinstance(encoded, EncodedImage)
        assert encoded.mime_type == PNG_MIME_TYPE
        assert encoded.data == encode_image_to_base64(sample_image)

    def test_data_url(self) -> None:
        encoded = EncodedImage(data="aGVsbG8=")
        assert encoded.to_data_url() == "data:image/png;base64,aGVsbG8="
