"""Services for multimodal image operations."""

from multimodal_image_ops.services.image_encoder import EncodedImage, encode_image
from multimodal_image_ops.services.model_invoker import (
    ChatModelInvoker,
    ImageGenerator,
    ModelResponse,
    TokenUsage,
)
from multimodal_image_ops.services.page_batch import (
    BatchResult,
    PageBatchOrchestrator,
    PageResult,
)
from multimodal_image_ops.services.page_rasterizer import PdfDocument, open_document
from multimodal_image_ops.services.prompt_builder import (
    ImageReference,
    InlineImage,
    MultimodalPrompt,
    RemoteImage,
    build_prompt,
)

__all__ = [
    "BatchResult",
    "ChatModelInvoker",
    "EncodedImage",
    "ImageGenerator",
    "ImageReference",
    "InlineImage",
    "ModelResponse",
    "MultimodalPrompt",
    "PageBatchOrchestrator",
    "PageResult",
    "PdfDocument",
    "RemoteImage",
    "TokenUsage",
    "build_prompt",
    "encode_image",
    "open_document",
]
