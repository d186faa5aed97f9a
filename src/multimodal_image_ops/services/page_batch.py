"""Page-by-page analysis of scanned documents.

Each page of a PDF is rendered, encoded as PNG, paired with the
instruction, and sent to the chat model. Page results are collected in
page order into a ``BatchResult``.

The batch fails fast: the first page that cannot be rendered, encoded,
or analyzed aborts the whole document, the document is released, and a
single typed error is raised. No partial result is ever returned.

With ``max_concurrency > 1`` pages are still rendered one at a time on the
calling thread, while up to ``max_concurrency`` model calls run on a
thread pool. On the first failure pending calls are cancelled and the
results of calls already in flight are discarded.
"""

import contextvars
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from multimodal_image_ops.services.image_encoder import encode_image
from multimodal_image_ops.services.model_invoker import ChatModelInvoker, TokenUsage
from multimodal_image_ops.services.page_rasterizer import (
    DEFAULT_DPI,
    PdfDocument,
    open_document,
)
from multimodal_image_ops.services.prompt_builder import (
    ImageReference,
    MultimodalPrompt,
    build_prompt,
)
from multimodal_image_ops.utils.exceptions import (
    ImageAnalysisFailure,
    ImageProcessingFailure,
)
from multimodal_image_ops.utils.logging import (
    LogContext,
    ProgressTracker,
    get_logger,
    timed_operation,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PageResult:
    """Model response for one page."""

    page: int
    """Page number (1-indexed)."""

    response: str
    """Text generated for the page."""

    token_usage: TokenUsage
    """Token counters for the page's model call."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "response": self.response,
            "tokenUsage": self.token_usage.to_dict(),
        }


@dataclass
class BatchResult:
    """All page results for a document, in ascending page order."""

    total_pages: int
    pages: list[PageResult] = field(default_factory=list)

    def add_page(self, page_result: PageResult) -> None:
        self.pages.append(page_result)

    @property
    def total_tokens(self) -> int:
        return sum(page.token_usage.total_count for page in self.pages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPages": self.total_pages,
            "pages": [page.to_dict() for page in self.pages],
        }


def _document_failure(
    source: str, instruction: str, page_number: int
) -> ImageAnalysisFailure:
    return ImageAnalysisFailure(
        f"Unable to analyze the provided document {source} with the text: {instruction}",
        instruction=instruction,
        file_path=source,
        page_number=page_number,
    )


class PageBatchOrchestrator:
    """Runs the render → encode → prompt → invoke pipeline over every page."""

    def __init__(
        self,
        invoker: ChatModelInvoker,
        dpi: int = DEFAULT_DPI,
        max_concurrency: int = 1,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.invoker = invoker
        self.dpi = dpi
        self.max_concurrency = max_concurrency

    def process_document(self, file_path: str | Path, instruction: str) -> BatchResult:
        """Analyze every page of a PDF with the same instruction.

        Args:
            file_path: Path to the PDF.
            instruction: Instruction sent with each page image.

        Returns:
            BatchResult with one PageResult per page, pages 1..N in order.

        Raises:
            FileHandlingFailure: If the document cannot be opened.
            ImageProcessingFailure: If a rendered page cannot be encoded.
            ImageAnalysisFailure: If a page cannot be rendered or analyzed.
        """
        document = open_document(file_path)

        with (
            document,
            LogContext(file_path=document.source),
            timed_operation(logger, "process_document") as metrics,
        ):
            batch = BatchResult(total_pages=document.page_count)
            logger.info("Total pages to be converted", total_pages=batch.total_pages)

            tracker = ProgressTracker(logger, "Reading pages", total=batch.total_pages)
            if self.max_concurrency == 1 or document.page_count <= 1:
                for index in range(document.page_count):
                    prompt = self._prepare_prompt(document, index, instruction)
                    batch.add_page(
                        self._invoke_page(prompt, document.source, index + 1)
                    )
                    metrics.api_calls += 1
                    tracker.update(details=f"page={index + 1}")
            else:
                for page_result in self._process_concurrently(
                    document, instruction, tracker
                ):
                    batch.add_page(page_result)
                metrics.api_calls = len(batch.pages)

            metrics.pages_processed = len(batch.pages)
            metrics.tokens_used = batch.total_tokens
            if batch.total_pages:
                tracker.complete()

        return batch

    def _prepare_prompt(
        self, document: PdfDocument, index: int, instruction: str
    ) -> MultimodalPrompt:
        page_number = index + 1
        logger.info("Reading page", page=page_number)

        try:
            image = document.render_page(index, dpi=self.dpi)
        except Exception as exc:
            raise _document_failure(document.source, instruction, page_number) from exc

        try:
            encoded = encode_image(image)
        except ImageProcessingFailure as exc:
            exc.details.setdefault("file_path", document.source)
            exc.details.setdefault("instruction", instruction)
            exc.details["page_number"] = page_number
            raise
        finally:
            image.close()

        return build_prompt(instruction, ImageReference.inline(encoded))

    def _invoke_page(
        self, prompt: MultimodalPrompt, source: str, page_number: int
    ) -> PageResult:
        try:
            response = self.invoker.generate(prompt)
        except Exception as exc:
            raise _document_failure(source, prompt.instruction, page_number) from exc

        return PageResult(
            page=page_number,
            response=response.text,
            token_usage=response.token_usage,
        )

    def _process_concurrently(
        self,
        document: PdfDocument,
        instruction: str,
        tracker: ProgressTracker,
    ) -> list[PageResult]:
        results: list[PageResult] = []
        pending: set[Future[PageResult]] = set()
        page_of: dict[Future[PageResult], int] = {}

        def collect(done: set[Future[PageResult]]) -> None:
            # Lowest failing page wins when several calls finish together.
            for future in sorted(done, key=lambda f: page_of[f]):
                results.append(future.result())
                tracker.update(details=f"page={page_of[future]}")

        executor = ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="page-batch"
        )
        try:
            for index in range(document.page_count):
                if len(pending) >= self.max_concurrency:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    collect(done)
                prompt = self._prepare_prompt(document, index, instruction)
                # Worker threads log with the caller's request and file context.
                future = executor.submit(
                    contextvars.copy_context().run,
                    self._invoke_page,
                    prompt,
                    document.source,
                    index + 1,
                )
                page_of[future] = index + 1
                pending.add(future)

            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                collect(done)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        results.sort(key=lambda result: result.page)
        return results
