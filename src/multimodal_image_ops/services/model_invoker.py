"""Model invocation for image analysis and image generation.

Both model capabilities are injected behind small protocols so any
provider client can stand in:

- ``ChatModel``: anything with ``invoke(messages)`` returning a LangChain
  ``AIMessage``-like object (e.g. ``langchain_openai.ChatOpenAI``).
- ``ImageClient``: anything exposing ``images.generate(...)`` shaped like
  the OpenAI SDK client.

Each invoker performs exactly one call per request. Failures are wrapped
in a typed error and never retried.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

from openai import OpenAI

from multimodal_image_ops.config import OPENAI_API_KEY, ModelConfiguration
from multimodal_image_ops.services.prompt_builder import MultimodalPrompt
from multimodal_image_ops.utils.exceptions import (
    ImageAnalysisFailure,
    ImageGenerationFailure,
)
from multimodal_image_ops.utils.logging import get_logger

logger = get_logger(__name__)


class ChatModel(Protocol):
    def invoke(self, input: Any) -> Any: ...


class ImageClient(Protocol):
    @property
    def images(self) -> Any: ...


@dataclass(frozen=True)
class TokenUsage:
    """Token counters reported for one model call."""

    input_count: int = 0
    output_count: int = 0
    total_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "inputCount": self.input_count,
            "outputCount": self.output_count,
            "totalCount": self.total_count,
        }


@dataclass(frozen=True)
class ModelResponse:
    text: str
    token_usage: TokenUsage


def _as_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def extract_token_usage(message: Any) -> TokenUsage:
    """Read token counters from a chat model response.

    Prefers LangChain's ``usage_metadata`` and falls back to the provider's
    raw ``response_metadata["token_usage"]``. Missing or malformed counters
    are reported as 0; a missing total is the sum of input and output.
    """
    try:
        usage = getattr(message, "usage_metadata", None) or {}
        if usage:
            input_count = _as_count(usage.get("input_tokens"))
            output_count = _as_count(usage.get("output_tokens"))
            total = usage.get("total_tokens")
        else:
            response_metadata = getattr(message, "response_metadata", None) or {}
            raw = response_metadata.get("token_usage") or {}
            input_count = _as_count(raw.get("prompt_tokens"))
            output_count = _as_count(raw.get("completion_tokens"))
            total = raw.get("total_tokens")
    except (AttributeError, TypeError):
        logger.warning("Token usage metadata unreadable, reporting zero usage")
        return TokenUsage()

    total_count = _as_count(total) if total is not None else input_count + output_count
    return TokenUsage(input_count, output_count, total_count)


def message_text(message: Any) -> str:
    """Return the text of a chat model response.

    Content may be a plain string or a list of content parts; text parts
    are concatenated in order.
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class ChatModelInvoker:
    """Sends multimodal prompts to a chat model.

    The model is either injected directly or resolved from a
    ``ModelConfiguration`` on the first call, so configuration problems
    surface as analysis failures of that call.
    """

    def __init__(
        self,
        model: ChatModel | None = None,
        model_name: str | None = None,
        configuration: ModelConfiguration | None = None,
    ) -> None:
        if model is None and configuration is None:
            raise ValueError("ChatModelInvoker needs a model or a configuration")
        self._model = model
        self._configuration = configuration
        self._model_lock = threading.Lock()
        self.model_name = model_name or (
            configuration.model_name if configuration is not None else None
        )

    @classmethod
    def from_configuration(
        cls, configuration: ModelConfiguration
    ) -> "ChatModelInvoker":
        return cls(configuration=configuration)

    @property
    def model(self) -> ChatModel:
        """The chat model, built from the configuration when first needed.

        Raises:
            ConfigurationError: If the API key is not configured.
        """
        with self._model_lock:
            if self._model is None:
                self._model = self._configuration.model  # type: ignore[union-attr]
            return self._model

    def generate(self, prompt: MultimodalPrompt) -> ModelResponse:
        """Send one prompt and return the generated text with token usage.

        Raises:
            ImageAnalysisFailure: If the model cannot be built or the call
                raises for any reason.
        """
        start = time.perf_counter()
        try:
            message = self.model.invoke([prompt.to_message()])
            text = message_text(message)
        except Exception as exc:
            logger.log_api_call(
                service="chat_model",
                operation="generate",
                duration_seconds=time.perf_counter() - start,
                success=False,
                error_message=str(exc),
            )
            raise ImageAnalysisFailure(
                f"Model call failed: {exc}",
                instruction=prompt.instruction,
                model=self.model_name,
            ) from exc

        token_usage = extract_token_usage(message)
        logger.log_api_call(
            service="chat_model",
            operation="generate",
            duration_seconds=time.perf_counter() - start,
            tokens_used=token_usage.total_count,
        )
        return ModelResponse(text=text, token_usage=token_usage)


class ImageGenerator:
    """Generates images from text prompts with a text-to-image model."""

    def __init__(self, client: ImageClient, model_name: str) -> None:
        self.client = client
        self.model_name = model_name

    @classmethod
    def from_configuration(cls, configuration: ModelConfiguration) -> "ImageGenerator":
        """Build an OpenAI image client from the resolved configuration.

        Raises:
            ConfigurationError: If the API key is not configured.
        """
        client = OpenAI(
            api_key=configuration.config_extractor.extract_value(OPENAI_API_KEY),
            base_url=configuration.base_url,
            timeout=configuration.timeout,
            max_retries=0,
        )
        return cls(client, configuration.image_model_name)

    def generate_image(self, prompt: str) -> str:
        """Generate one image and return its URL.

        Providers that return only base64 data yield a ``data:`` URL.

        Raises:
            ImageGenerationFailure: If the call fails or returns no image.
        """
        start = time.perf_counter()
        try:
            response = self.client.images.generate(
                model=self.model_name, prompt=prompt, n=1
            )
            data = list(getattr(response, "data", None) or [])
            if not data:
                raise ValueError("Image model returned no images")
            image = data[0]
            url = getattr(image, "url", None)
            if not url:
                b64_json = getattr(image, "b64_json", None)
                if not b64_json:
                    raise ValueError("Image model returned neither a URL nor image data")
                url = f"data:image/png;base64,{b64_json}"
        except Exception as exc:
            logger.log_api_call(
                service="image_model",
                operation="generate_image",
                duration_seconds=time.perf_counter() - start,
                success=False,
                error_message=str(exc),
            )
            raise ImageGenerationFailure(prompt, model=self.model_name) from exc

        logger.log_api_call(
            service="image_model",
            operation="generate_image",
            duration_seconds=time.perf_counter() - start,
        )
        return url
