"""PDF page rasterization.

Opens a PDF once, exposes its page count, and renders single pages on
demand with pdf2image (poppler). A ``PdfDocument`` is a scoped handle:

    with open_document("scan.pdf") as document:
        for index in range(document.page_count):
            image = document.render_page(index)

The handle is released exactly once when the ``with`` block exits,
whether it exits normally or by an exception.
"""

import logging
import threading
from pathlib import Path
from typing import Any

from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image

from multimodal_image_ops.utils.exceptions import FileHandlingFailure

logger = logging.getLogger(__name__)

DEFAULT_DPI = 300


class PdfDocument:
    """An opened PDF on disk.

    Pages are rendered straight from the file, one page per poppler call.
    Rendering calls on one handle are serialized; poppler is not assumed
    to be safe for concurrent use of the same document.
    """

    def __init__(self, path: Path, page_count: int) -> None:
        self._path = path
        self._page_count = page_count
        self._closed = False
        self._lock = threading.Lock()

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def path(self) -> Path:
        return self._path

    @property
    def source(self) -> str:
        return str(self._path)

    @property
    def closed(self) -> bool:
        return self._closed

    def render_page(self, index: int, dpi: int = DEFAULT_DPI) -> Image.Image:
        """Render one page as a raster image.

        Args:
            index: 0-based page index.
            dpi: Rendering resolution.

        Returns:
            The rendered page.

        Raises:
            FileHandlingFailure: If the document has been closed.
            IndexError: If ``index`` is outside the document.
        """
        if not 0 <= index < self._page_count:
            raise IndexError(
                f"Page index {index} out of range for {self._page_count} pages"
            )

        with self._lock:
            if self._closed:
                raise FileHandlingFailure(
                    f"Document is closed: {self.source}", file_path=self.source
                )
            images = convert_from_path(
                self.source,
                dpi=dpi,
                first_page=index + 1,
                last_page=index + 1,
            )

        if not images:
            raise ValueError(f"Failed to render page {index + 1} of {self.source}")

        return images[0]

    def close(self) -> None:
        """Release the document. Calling close more than once is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.debug(f"Closed document {self.source}")

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def open_document(file_path: str | Path) -> PdfDocument:
    """Open a PDF and read its page count.

    Args:
        file_path: Path to the PDF on disk.

    Returns:
        An open ``PdfDocument``; use it as a context manager.

    Raises:
        FileHandlingFailure: If the file cannot be read or is not a valid PDF.
    """
    path = Path(file_path)
    source = str(path)
    message = f"Error occurred while processing the document file: {source}"

    try:
        path.stat()
    except OSError as exc:
        raise FileHandlingFailure(
            message, file_path=source, details={"error": str(exc)}
        ) from exc

    try:
        info = pdfinfo_from_path(source)
        page_count = int(info.get("Pages", 0))
    except (
        PDFInfoNotInstalledError,
        PDFPageCountError,
        PDFPopplerTimeoutError,
        PDFSyntaxError,
        ValueError,
    ) as exc:
        raise FileHandlingFailure(
            message, file_path=source, details={"error": str(exc)}
        ) from exc

    logger.info(f"Opened document {source}: {page_count} pages")
    return PdfDocument(path, page_count)
