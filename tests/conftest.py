"""Shared stubs and fixtures for extraction tests."""

import json
import threading
import time
from pathlib import Path

import fitz
import pytest

from catalog_extractor.extraction import InferenceClient, RetryPolicy


class FakeDocument:
    """In-memory document whose page images encode the page index."""

    image_mime_type = "image/png"

    def __init__(self, page_count: int, broken_pages: set[int] | None = None):
        self._page_count = page_count
        self.broken_pages = broken_pages or set()
        self.rendered: list[int] = []
        self._lock = threading.Lock()

    @property
    def page_count(self) -> int:
        return self._page_count

    def render_page(self, page_index: int, scale: float = 1.5) -> bytes:
        with self._lock:
            self.rendered.append(page_index)
        if page_index in self.broken_pages:
            raise ValueError(f"corrupt content on page {page_index + 1}")
        return f"page-{page_index}".encode()


class FakeStatusError(Exception):
    """SDK-style error carrying an HTTP status code."""

    def __init__(self, code: int, message: str = "service error", status: str | None = None):
        super().__init__(f"{code} {message}")
        self.code = code
        self.status = status


def product_json(page_index: int, count: int = 1) -> str:
    return json.dumps(
        [
            {
                "code": f"P{page_index + 1}-{i}",
                "name": f"Product {page_index + 1}.{i}",
                "presentation": "ml",
                "content": 50,
                "offerPrice": 9.5,
                "regularPrice": 19.9,
            }
            for i in range(count)
        ]
    )


class ScriptedClient(InferenceClient):
    """Inference stub scripted per page, instrumented for concurrency.

    ``scripts`` maps a page index to a list of responses consumed one per
    call; each entry is either response text or an exception to raise.
    Pages without a script answer with one product. ``delays`` maps a page
    index to seconds spent "in flight".
    """

    def __init__(
        self,
        scripts: dict[int, list] | None = None,
        delays: dict[int, float] | None = None,
        default_delay: float = 0.0,
    ):
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.delays = delays or {}
        self.default_delay = default_delay
        self.calls: list[int] = []
        self.mime_types: list[str] = []
        self.contexts: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def infer(self, image, instruction, response_schema, mime_type="image/jpeg"):
        from catalog_extractor.logger import get_context

        page_index = int(image.decode().split("-")[1])
        with self._lock:
            self.calls.append(page_index)
            self.mime_types.append(mime_type)
            self.contexts.append(get_context())
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            script = self.scripts.get(page_index)
            response = script.pop(0) if script else product_json(page_index)
        try:
            time.sleep(self.delays.get(page_index, self.default_delay))
            if isinstance(response, BaseException):
                raise response
            return response
        finally:
            with self._lock:
                self.in_flight -= 1

    def calls_for(self, page_index: int) -> int:
        return self.calls.count(page_index)


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_retry(recording_sleep) -> RetryPolicy:
    """Retry policy with the default backoff schedule but no real sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, sleep=recording_sleep)


def build_catalog_pdf(path: Path, pages: int) -> Path:
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page()
        page.insert_text((72, 72), f"Catalog page {i + 1}", fontsize=24)
        page.insert_text((72, 120), f"COD {1000 + i}  Perfume 50ml", fontsize=12)
        page.insert_text((72, 140), "Precio regular S/ 59.90  Oferta S/ 39.90", fontsize=12)
    doc.save(path)
    doc.close()
    return path


@pytest.fixture(scope="module")
def catalog_pdf_path(tmp_path_factory) -> Path:
    """Create a three-page catalog PDF."""
    tmp_dir = tmp_path_factory.mktemp("pdfs")
    return build_catalog_pdf(tmp_dir / "catalog.pdf", pages=3)
