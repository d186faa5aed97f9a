"""Tests for page-by-page scanned document analysis."""

import base64
import io
import threading
from typing import Any
from unittest.mock import patch

import pytest
from langchain_core.messages import AIMessage
from PIL import Image

from multimodal_image_ops.services import page_batch
from multimodal_image_ops.services.model_invoker import ChatModelInvoker, TokenUsage
from multimodal_image_ops.services.page_batch import (
    BatchResult,
    PageBatchOrchestrator,
    PageResult,
)
from multimodal_image_ops.services.page_rasterizer import PdfDocument
from multimodal_image_ops.utils.exceptions import (
    FileHandlingFailure,
    ImageAnalysisFailure,
    ImageProcessingFailure,
)
from multimodal_image_ops.utils.logging import (
    LogContext,
    get_extra_context,
    get_request_id,
)


def _image_width(message: Any) -> int:
    """Width of the page image embedded in a prompt message."""
    url = message.content[1]["image_url"]["url"]
    data = url.split(",", 1)[1]
    return Image.open(io.BytesIO(base64.b64decode(data))).size[0]


class SlowFirstChatModel:
    """Chat model whose first call finishes last."""

    def __init__(self) -> None:
        self.release_first = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def invoke(self, input: Any) -> AIMessage:
        page = _image_width(input[0]) - 100
        with self._lock:
            self.calls += 1
            if self.calls >= 2:
                self.release_first.set()
        if page == 1:
            self.release_first.wait(timeout=5)
        return AIMessage(
            content=f"page {page}",
            usage_metadata={"input_tokens": 1, "output_tokens": 1, "total_tokens": 2},
        )


class ContextRecordingChatModel:
    """Chat model that records the logging context of each call."""

    def __init__(self) -> None:
        self.seen: list[tuple[str | None, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def invoke(self, input: Any) -> AIMessage:
        with self._lock:
            self.seen.append((get_request_id(), dict(get_extra_context())))
        return AIMessage(content="ok")


class TestBatchResult:
    def test_to_dict(self) -> None:
        batch = BatchResult(total_pages=1)
        batch.add_page(PageResult(1, "hello", TokenUsage(3, 4, 7)))

        assert batch.to_dict() == {
            "totalPages": 1,
            "pages": [
                {
                    "page": 1,
                    "response": "hello",
                    "tokenUsage": {"inputCount": 3, "outputCount": 4, "totalCount": 7},
                }
            ],
        }
        assert batch.total_tokens == 7


class TestPageBatchOrchestrator:
    """Tests for PageBatchOrchestrator."""

    def test_every_page_analyzed_in_order(
        self, fake_pdf: Any, fake_chat_model: Any
    ) -> None:
        path, _ = fake_pdf(3)
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model))

        batch = orchestrator.process_document(path, "Transcribe the page")

        assert batch.total_pages == 3
        assert [page.page for page in batch.pages] == [1, 2, 3]
        assert [page.response for page in batch.pages] == [
            "text for call 1",
            "text for call 2",
            "text for call 3",
        ]
        assert all(page.token_usage.total_count == 120 for page in batch.pages)

    def test_each_page_image_sent_once_with_instruction(
        self, fake_pdf: Any, fake_chat_model: Any
    ) -> None:
        """Page k's prompt carries page k's image and the shared instruction."""
        path, poppler = fake_pdf(3)
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model), dpi=200)

        orchestrator.process_document(path, "Transcribe the page")

        assert [_image_width(call[0]) for call in fake_chat_model.calls] == [
            101,
            102,
            103,
        ]
        assert all(
            call[0].content[0] == {"type": "text", "text": "Transcribe the page"}
            for call in fake_chat_model.calls
        )
        assert poppler.render_calls == [(1, 200), (2, 200), (3, 200)]

    def test_empty_document_makes_no_model_calls(
        self, fake_pdf: Any, fake_chat_model: Any
    ) -> None:
        path, poppler = fake_pdf(0)
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model))

        batch = orchestrator.process_document(path, "Transcribe")

        assert batch.to_dict() == {"totalPages": 0, "pages": []}
        assert fake_chat_model.calls == []
        assert poppler.render_calls == []

    def test_model_failure_aborts_and_closes_document(
        self, fake_pdf: Any, chat_model_factory: Any
    ) -> None:
        path, poppler = fake_pdf(4)
        model = chat_model_factory(fail_on_calls={2})
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(model))

        with (
            patch.object(
                PdfDocument, "close", autospec=True, side_effect=PdfDocument.close
            ) as close_spy,
            pytest.raises(ImageAnalysisFailure) as exc_info,
        ):
            orchestrator.process_document(path, "Transcribe")

        error = exc_info.value
        assert error.page_number == 2
        assert error.file_path == str(path)
        assert error.instruction == "Transcribe"
        assert error.message == (
            f"Unable to analyze the provided document {path} with the text: Transcribe"
        )
        assert isinstance(error.__cause__, ImageAnalysisFailure)
        assert close_spy.call_count == 1
        assert len(model.calls) == 2
        assert [page for page, _ in poppler.render_calls] == [1, 2]

    def test_render_failure_raises_analysis_failure(
        self, fake_pdf: Any, fake_chat_model: Any
    ) -> None:
        path, _ = fake_pdf(3, fail_on_page=2)
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model))

        with pytest.raises(ImageAnalysisFailure) as exc_info:
            orchestrator.process_document(path, "Transcribe")

        assert exc_info.value.page_number == 2
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert len(fake_chat_model.calls) == 1

    def test_encode_failure_raises_processing_failure(
        self, fake_pdf: Any, fake_chat_model: Any
    ) -> None:
        path, _ = fake_pdf(2)
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model))

        with (
            patch.object(
                page_batch,
                "encode_image",
                side_effect=ImageProcessingFailure(details={"error": "bad mode"}),
            ),
            pytest.raises(ImageProcessingFailure) as exc_info,
        ):
            orchestrator.process_document(path, "Transcribe")

        assert exc_info.value.details["page_number"] == 1
        assert exc_info.value.details["file_path"] == str(path)
        assert exc_info.value.details["instruction"] == "Transcribe"
        assert fake_chat_model.calls == []

    def test_unreadable_document_fails_before_rendering(
        self, tmp_path: Any, fake_chat_model: Any
    ) -> None:
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(fake_chat_model))

        with (
            patch.object(PdfDocument, "render_page") as mock_render,
            pytest.raises(FileHandlingFailure),
        ):
            orchestrator.process_document(tmp_path / "missing.pdf", "Transcribe")

        mock_render.assert_not_called()
        assert fake_chat_model.calls == []

    def test_invalid_concurrency(self, fake_chat_model: Any) -> None:
        with pytest.raises(ValueError):
            PageBatchOrchestrator(ChatModelInvoker(fake_chat_model), max_concurrency=0)


class TestConcurrentPageBatch:
    """Tests for bounded concurrent page analysis."""

    def test_results_ordered_by_page_when_calls_finish_out_of_order(
        self, fake_pdf: Any
    ) -> None:
        path, _ = fake_pdf(4)
        model = SlowFirstChatModel()
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(model), max_concurrency=2)

        batch = orchestrator.process_document(path, "Transcribe")

        assert [page.page for page in batch.pages] == [1, 2, 3, 4]
        assert [page.response for page in batch.pages] == [
            "page 1",
            "page 2",
            "page 3",
            "page 4",
        ]
        assert batch.total_tokens == 8

    def test_model_calls_keep_logging_context(self, fake_pdf: Any) -> None:
        """Pool threads see the caller's request ID and the document path."""
        path, _ = fake_pdf(4)
        model = ContextRecordingChatModel()
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(model), max_concurrency=2)

        with LogContext(request_id="req-7"):
            orchestrator.process_document(path, "Transcribe")

        assert len(model.seen) == 4
        assert all(request_id == "req-7" for request_id, _ in model.seen)
        assert all(context["file_path"] == str(path) for _, context in model.seen)

    def test_failure_returns_no_partial_result(
        self, fake_pdf: Any, chat_model_factory: Any
    ) -> None:
        path, _ = fake_pdf(6)
        model = chat_model_factory(fail_on_calls={1})
        orchestrator = PageBatchOrchestrator(ChatModelInvoker(model), max_concurrency=2)

        with (
            patch.object(
                PdfDocument, "close", autospec=True, side_effect=PdfDocument.close
            ) as close_spy,
            pytest.raises(ImageAnalysisFailure) as exc_info,
        ):
            orchestrator.process_document(path, "Transcribe")

        assert exc_info.value.page_number is not None
        assert close_spy.call_count == 1
        assert len(model.calls) < 6
