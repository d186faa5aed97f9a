"""Output formatting for operation results."""

from multimodal_image_ops.output.result_assembler import (
    assemble_batch,
    assemble_image_generate,
    assemble_image_read,
    image_read_payload,
)

__all__ = [
    "assemble_batch",
    "assemble_image_generate",
    "assemble_image_read",
    "image_read_payload",
]
