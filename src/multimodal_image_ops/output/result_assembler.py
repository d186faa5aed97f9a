"""JSON output for the three image operations.

Output shapes:
    Image read:      {"response": str, "tokenUsage": {...}}
    Image generate:  {"response": str}
    Scanned document: {"totalPages": int, "pages": [{"page", "response", "tokenUsage"}]}
"""

import json
from typing import Any

from multimodal_image_ops.services.model_invoker import ModelResponse
from multimodal_image_ops.services.page_batch import BatchResult

RESPONSE = "response"
TOKEN_USAGE = "tokenUsage"


def image_read_payload(response: ModelResponse) -> dict[str, Any]:
    return {
        RESPONSE: response.text,
        TOKEN_USAGE: response.token_usage.to_dict(),
    }


def assemble_image_read(response: ModelResponse) -> str:
    return json.dumps(image_read_payload(response), ensure_ascii=False)


def assemble_image_generate(image_url: str) -> str:
    return json.dumps({RESPONSE: image_url}, ensure_ascii=False)


def assemble_batch(batch: BatchResult) -> str:
    """Serialize a BatchResult, pages in ascending page order."""
    return json.dumps(batch.to_dict(), ensure_ascii=False)
