"""Caller-facing entry points for catalog extraction runs."""

import queue
import threading
import uuid
from collections.abc import Iterator
from concurrent.futures import Future
from pathlib import Path

from ..config import PipelineConfig
from ..logger import log_context, logger
from .aggregator import ProgressCallback, RecordsCallback
from .inference import InferenceClient
from .models import (
    CompletedEvent,
    ExtractionRecord,
    FailedEvent,
    ProgressEvent,
    ProgressState,
    RecordsEvent,
    RunEvent,
    RunResult,
)
from .prompts import Brand, get_instructions
from .renderer import Document, open_document
from .retry import RetryPolicy
from .scheduler import Scheduler
from .worker import PageWorker


class ExtractionRun:
    """Handle on a run executing in a background thread.

    ``events()`` yields progress and partial-record events as pages finish,
    then exactly one terminal event. ``result()`` blocks for the final
    RunResult. Only one consumer should iterate ``events()``.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.cancel_event = threading.Event()
        self._events: queue.Queue[RunEvent] = queue.Queue()
        self._future: Future[RunResult] = Future()
        self._thread: threading.Thread | None = None

    def _emit_progress(self, state: ProgressState) -> None:
        self._events.put(
            ProgressEvent(
                completed_pages=state.completed_pages,
                total_pages=state.total_pages,
            )
        )

    def _emit_records(self, page_number: int, records: list[ExtractionRecord]) -> None:
        self._events.put(RecordsEvent(page_number=page_number, records=records))

    def _finish(self, result: RunResult) -> None:
        self._events.put(CompletedEvent(result=result))
        self._future.set_result(result)

    def _fail(self, error: BaseException) -> None:
        self._events.put(FailedEvent(error=str(error)))
        self._future.set_exception(error)

    @property
    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        """Stop dispatching new pages; in-flight pages finish normally."""
        self.cancel_event.set()

    def events(self, timeout: float | None = None) -> Iterator[RunEvent]:
        """Yield run events until the terminal completed/failed event.

        Raises:
            queue.Empty: If no event arrives within timeout seconds.
        """
        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if isinstance(event, (CompletedEvent, FailedEvent)):
                return

    def result(self, timeout: float | None = None) -> RunResult:
        """Wait for and return the final result, re-raising a fatal run error."""
        return self._future.result(timeout=timeout)


class CatalogExtractionPipeline:
    """Extracts product records from catalog documents page by page."""

    def __init__(
        self,
        client: InferenceClient,
        config: PipelineConfig | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the pipeline.

        Args:
            client: Inference client used for every page.
            config: Pipeline tunables. Defaults to PipelineConfig().
            retry_policy: Overrides the policy built from config.
        """
        self.client = client
        self.config = config or PipelineConfig()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.base_delay,
            jitter=self.config.retry_jitter,
        )
        self.worker = PageWorker(
            client, retry_policy=self.retry_policy, render_scale=self.config.render_scale
        )

    def run(
        self,
        document: Document,
        brand: str | Brand,
        *,
        campaign: str | None = None,
        concurrency_limit: int | None = None,
        on_progress: ProgressCallback | None = None,
        on_records: RecordsCallback | None = None,
        cancel_event: threading.Event | None = None,
        run_id: str | None = None,
    ) -> RunResult:
        """Run extraction over a document and block until it finishes.

        Raises:
            ValueError: If the brand is unknown.
            RunFatalError: If the document has no pages.
        """
        instructions = get_instructions(brand)
        if concurrency_limit is None:
            concurrency_limit = self.config.concurrency_limit
        scheduler = Scheduler(self.worker, concurrency_limit=concurrency_limit)

        with log_context(run_id=run_id or uuid.uuid4().hex, brand=instructions.brand.value):
            return scheduler.run(
                document,
                instructions,
                campaign=campaign,
                on_progress=on_progress,
                on_records=on_records,
                cancel_event=cancel_event,
            )

    def run_file(self, file_path: str | Path, brand: str | Brand, **kwargs) -> RunResult:
        """Open a PDF, run extraction over it and close it."""
        with open_document(file_path) as document:
            return self.run(document, brand, **kwargs)

    def start(
        self,
        document: Document,
        brand: str | Brand,
        *,
        campaign: str | None = None,
        concurrency_limit: int | None = None,
    ) -> ExtractionRun:
        """Start a run in the background and return its handle immediately.

        The brand is validated before the thread starts, so an unknown brand
        raises ValueError here rather than failing the run.
        """
        get_instructions(brand)
        run = ExtractionRun(run_id=uuid.uuid4().hex)

        def _target() -> None:
            try:
                result = self.run(
                    document,
                    brand,
                    campaign=campaign,
                    concurrency_limit=concurrency_limit,
                    on_progress=run._emit_progress,
                    on_records=run._emit_records,
                    cancel_event=run.cancel_event,
                    run_id=run.run_id,
                )
            except Exception as e:
                logger.error("extraction run failed", run_id=run.run_id, error=str(e))
                run._fail(e)
            else:
                run._finish(result)

        run._thread = threading.Thread(
            target=_target, name=f"extraction-run-{run.run_id[:8]}", daemon=True
        )
        run._thread.start()
        return run
