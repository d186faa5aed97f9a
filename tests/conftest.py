from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest
from langchain_core.messages import AIMessage
from PIL import Image

from multimodal_image_ops.config import ConfigExtractor, ModelConfiguration
from multimodal_image_ops.services import page_rasterizer


class FakeChatModel:
    """Chat model double that records every prompt it receives.

    Replies ``"text for call <n>"`` with fixed token usage, and raises on
    the calls listed in ``fail_on_calls``.
    """

    def __init__(
        self,
        fail_on_calls: set[int] | None = None,
        usage_metadata: dict[str, int] | None = None,
    ) -> None:
        self.fail_on_calls = fail_on_calls or set()
        self.usage_metadata = usage_metadata or {
            "input_tokens": 100,
            "output_tokens": 20,
            "total_tokens": 120,
        }
        self.calls: list[list[Any]] = []
        self._lock = threading.Lock()

    def invoke(self, input: Any) -> AIMessage:
        with self._lock:
            self.calls.append(input)
            call_number = len(self.calls)
        if call_number in self.fail_on_calls:
            raise RuntimeError("model unavailable")
        return AIMessage(
            content=f"text for call {call_number}",
            usage_metadata=self.usage_metadata,  # type: ignore[arg-type]
        )


class FakePoppler:
    """Stands in for pdf2image's poppler calls on a fake PDF.

    Page ``n`` renders as an RGB image ``(100 + n) x 50`` so tests can tell
    pages apart by width.
    """

    def __init__(self, pages: int, fail_on_page: int | None = None) -> None:
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.render_calls: list[tuple[int, int]] = []
        self.rendered_paths: list[str] = []

    def pdfinfo_from_path(self, pdf_path: str, **kwargs: Any) -> dict[str, Any]:
        return {"Pages": self.pages}

    def convert_from_path(
        self,
        pdf_path: str,
        dpi: int = 200,
        first_page: int | None = None,
        last_page: int | None = None,
        **kwargs: Any,
    ) -> list[Image.Image]:
        assert first_page is not None and first_page == last_page
        self.render_calls.append((first_page, dpi))
        self.rendered_paths.append(pdf_path)
        if first_page == self.fail_on_page:
            raise RuntimeError("poppler crashed")
        return [Image.new("RGB", (100 + first_page, 50), color="white")]


@pytest.fixture
def fake_pdf(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Factory: ``fake_pdf(pages, fail_on_page=None) -> (path, poppler)``."""

    def make(pages: int, fail_on_page: int | None = None) -> tuple[Path, FakePoppler]:
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"%PDF-1.4\n% fake document\n")
        poppler = FakePoppler(pages, fail_on_page)
        monkeypatch.setattr(
            page_rasterizer, "pdfinfo_from_path", poppler.pdfinfo_from_path
        )
        monkeypatch.setattr(
            page_rasterizer, "convert_from_path", poppler.convert_from_path
        )
        return path, poppler

    return make


@pytest.fixture
def fake_chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def chat_model_factory() -> type[FakeChatModel]:
    return FakeChatModel


@pytest.fixture
def sample_image() -> Image.Image:
    """A small fixed-size RGB image."""
    return Image.new("RGB", (64, 48), color=(200, 30, 30))


@pytest.fixture
def model_configuration(fake_chat_model: FakeChatModel) -> ModelConfiguration:
    """Configuration with an injected fake chat model and a test API key."""
    return ModelConfiguration(
        model_name="gpt-4o",
        image_model_name="dall-e-3",
        config_extractor=ConfigExtractor(values={"OPENAI_API_KEY": "sk-test"}),
        model=fake_chat_model,
    )
