"""Multimodal prompt construction.

A prompt pairs an instruction with exactly one image reference. The
reference is either a ``RemoteImage`` (a URL the provider fetches) or an
``InlineImage`` (base64 data plus MIME type embedded in the request).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from langchain_core.messages import HumanMessage
from PIL import Image, UnidentifiedImageError

from multimodal_image_ops.services.image_encoder import EncodedImage, encode_image
from multimodal_image_ops.utils.exceptions import FileHandlingFailure

REMOTE_URL_PREFIXES = ("http://", "https://", "data:")


class ImageReference(ABC):
    """An image attached to a prompt. Use ``remote`` or ``inline`` to create one."""

    @abstractmethod
    def to_url(self) -> str:
        """URL placed in the ``image_url`` content part."""

    @staticmethod
    def remote(url: str) -> "RemoteImage":
        return RemoteImage(url=url)

    @staticmethod
    def inline(encoded: EncodedImage) -> "InlineImage":
        return InlineImage(data=encoded.data, mime_type=encoded.mime_type)

    @staticmethod
    def from_location(location: str) -> "ImageReference":
        """Resolve a URL or a local image path into a reference.

        ``http(s)://`` and ``data:`` URLs are passed through as remote
        references. Anything else is read as a local image file and
        inlined as PNG.

        Raises:
            FileHandlingFailure: If a local path cannot be read as an image.
        """
        if location.startswith(REMOTE_URL_PREFIXES):
            return RemoteImage(url=location)

        try:
            with Image.open(Path(location)) as image:
                image.load()
                encoded = encode_image(image)
        except (OSError, UnidentifiedImageError) as exc:
            raise FileHandlingFailure(
                f"Unable to read image file: {location}",
                file_path=location,
                details={"error": str(exc)},
            ) from exc
        return ImageReference.inline(encoded)


@dataclass(frozen=True)
class RemoteImage(ImageReference):
    url: str

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("RemoteImage requires a non-empty url")

    def to_url(self) -> str:
        return self.url


@dataclass(frozen=True)
class InlineImage(ImageReference):
    data: str
    mime_type: str

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("InlineImage requires non-empty base64 data")
        if not self.mime_type:
            raise ValueError("InlineImage requires a mime_type")

    def to_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class MultimodalPrompt:
    """An instruction paired with one image reference."""

    instruction: str
    image: ImageReference

    def content_parts(self) -> list[dict[str, Any]]:
        return [
            {"type": "text", "text": self.instruction},
            {"type": "image_url", "image_url": {"url": self.image.to_url()}},
        ]

    def to_message(self) -> HumanMessage:
        return HumanMessage(content=self.content_parts())  # type: ignore[arg-type]


def build_prompt(instruction: str, image_ref: ImageReference) -> MultimodalPrompt:
    """Combine an instruction with an image reference.

    Raises:
        TypeError: If ``image_ref`` is not a ``RemoteImage`` or ``InlineImage``.
    """
    if not isinstance(image_ref, (RemoteImage, InlineImage)):
        raise TypeError(
            f"image_ref must be RemoteImage or InlineImage, got {type(image_ref).__name__}"
        )
    return MultimodalPrompt(instruction=instruction, image=image_ref)
