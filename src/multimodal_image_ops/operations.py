"""Image operations exposed to the host.

Each operation takes a resolved ``ModelConfiguration`` plus its own
parameters and returns a JSON string, or raises a typed error from
``multimodal_image_ops.utils.exceptions``.
"""

from pathlib import Path

from multimodal_image_ops.config import ModelConfiguration, settings
from multimodal_image_ops.output.result_assembler import (
    assemble_batch,
    assemble_image_generate,
    assemble_image_read,
)
from multimodal_image_ops.services.model_invoker import (
    ChatModelInvoker,
    ImageGenerator,
)
from multimodal_image_ops.services.page_batch import PageBatchOrchestrator
from multimodal_image_ops.services.prompt_builder import ImageReference, build_prompt
from multimodal_image_ops.utils.exceptions import (
    FileHandlingFailure,
    ImageAnalysisFailure,
    ImageGenerationFailure,
)
from multimodal_image_ops.utils.logging import get_logger, timed_operation

logger = get_logger(__name__)


def read_from_image(
    configuration: ModelConfiguration, data: str, context_url: str
) -> str:
    """Ask the chat model about one image.

    Args:
        configuration: Resolved model configuration.
        data: Instruction text.
        context_url: Image URL, ``data:`` URL, or local image path.

    Returns:
        JSON ``{"response": ..., "tokenUsage": {...}}``.

    Raises:
        FileHandlingFailure: If a local image path cannot be read.
        ImageAnalysisFailure: If the image cannot be analyzed.
    """
    with timed_operation(logger, "read_from_image") as metrics:
        try:
            prompt = build_prompt(data, ImageReference.from_location(context_url))
            invoker = ChatModelInvoker.from_configuration(configuration)
            response = invoker.generate(prompt)
        except FileHandlingFailure:
            raise
        except Exception as exc:
            raise ImageAnalysisFailure(
                f"Unable to analyze the provided image {context_url} with the text: {data}",
                instruction=data,
                image_url=context_url,
                model=configuration.model_name,
            ) from exc

        metrics.api_calls = 1
        metrics.tokens_used = response.token_usage.total_count

    return assemble_image_read(response)


def draw_image(configuration: ModelConfiguration, data: str) -> str:
    """Generate an image from a text prompt.

    Returns:
        JSON ``{"response": <image URL>}``.

    Raises:
        ImageGenerationFailure: If the image cannot be generated, including
            when the image model cannot be configured.
    """
    with timed_operation(logger, "draw_image") as metrics:
        try:
            generator = ImageGenerator.from_configuration(configuration)
            image_url = generator.generate_image(data)
        except ImageGenerationFailure:
            raise
        except Exception as exc:
            raise ImageGenerationFailure(
                data, model=configuration.image_model_name
            ) from exc

        metrics.api_calls = 1
        logger.info("Generated Image", url=image_url)

    return assemble_image_generate(image_url)


def read_scanned_document(
    configuration: ModelConfiguration,
    data: str,
    file_path: str | Path,
    dpi: int | None = None,
    max_concurrency: int | None = None,
) -> str:
    """Ask the chat model the same question about every page of a PDF.

    Args:
        configuration: Resolved model configuration.
        data: Instruction text sent with each page.
        file_path: Path to the PDF.
        dpi: Rasterization resolution. Defaults to settings.pdf_dpi.
        max_concurrency: Pages analyzed in parallel. Defaults to
            settings.max_concurrent_pages.

    Returns:
        JSON ``{"totalPages": N, "pages": [...]}``.

    Raises:
        FileHandlingFailure: If the document cannot be opened.
        ImageProcessingFailure: If a page image cannot be encoded.
        ImageAnalysisFailure: If any page cannot be analyzed.
    """
    orchestrator = PageBatchOrchestrator(
        ChatModelInvoker.from_configuration(configuration),
        dpi=dpi or settings.pdf_dpi,
        max_concurrency=max_concurrency or settings.max_concurrent_pages,
    )
    batch = orchestrator.process_document(file_path, data)
    return assemble_batch(batch)
