"""Page rasterization for PDF catalogs using PyMuPDF."""

import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

import fitz  # PyMuPDF

from ..config import DEFAULT_RENDER_SCALE
from ..logger import logger
from .errors import RasterizationError, RunFatalError

IMAGE_FORMAT = "jpeg"
IMAGE_MIME_TYPE = "image/jpeg"


@runtime_checkable
class Document(Protocol):
    """A paginated source the pipeline can rasterize page by page."""

    image_mime_type: str

    @property
    def page_count(self) -> int: ...

    def render_page(self, page_index: int, scale: float = DEFAULT_RENDER_SCALE) -> bytes: ...


class PdfDocument:
    """A PDF opened with PyMuPDF, rendered one page at a time.

    PyMuPDF documents are not thread-safe, so rendering is serialized with a
    lock while the slower inference calls run concurrently.
    """

    image_mime_type = IMAGE_MIME_TYPE

    def __init__(self, doc: fitz.Document, name: str = "<memory>"):
        self._doc = doc
        self._lock = threading.Lock()
        self.name = name

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def render_page(self, page_index: int, scale: float = DEFAULT_RENDER_SCALE) -> bytes:
        """Render one page to JPEG bytes.

        Args:
            page_index: 0-based page index.
            scale: Zoom factor relative to 72 DPI.

        Returns:
            Encoded JPEG image.

        Raises:
            RasterizationError: If the page is out of range or fails to render.
        """
        with self._lock:
            if self._doc.is_closed:
                raise RasterizationError(page_index, "document is closed")
            page_count = self._doc.page_count
            if not 0 <= page_index < page_count:
                raise RasterizationError(
                    page_index, f"page index out of range (0..{page_count - 1})"
                )
            try:
                page = self._doc[page_index]
                pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
                image = pix.tobytes(IMAGE_FORMAT)
            except Exception as e:
                raise RasterizationError(page_index, str(e)) from e

        logger.debug(
            "page rendered",
            page_number=page_index + 1,
            width=pix.width,
            height=pix.height,
            image_bytes=len(image),
        )
        return image

    def close(self) -> None:
        with self._lock:
            if not self._doc.is_closed:
                self._doc.close()

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_document(source: str | Path | bytes) -> PdfDocument:
    """Open a PDF from a path or raw bytes.

    Args:
        source: Filesystem path or the PDF file contents.

    Returns:
        PdfDocument ready for rendering.

    Raises:
        FileNotFoundError: If a path is given and does not exist.
        RunFatalError: If the document cannot be opened as a PDF.
    """
    if isinstance(source, bytes):
        name = "<memory>"
        try:
            doc = fitz.open(stream=source, filetype="pdf")
        except Exception as e:
            raise RunFatalError(f"Cannot open PDF: {e}") from e
    else:
        file_path = Path(source)
        if not file_path.exists():
            raise FileNotFoundError(f"PDF file not found: {file_path}")
        name = str(file_path)
        try:
            doc = fitz.open(file_path)
        except Exception as e:
            raise RunFatalError(f"Cannot open PDF {file_path}: {e}") from e

    if doc.needs_pass:
        doc.close()
        raise RunFatalError(f"PDF is encrypted: {name}")

    logger.info("pdf opened", file_path=name, total_pages=doc.page_count)
    return PdfDocument(doc, name=name)
