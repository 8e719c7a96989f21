"""Bounded worker pool that runs page workers over a whole document."""

import contextvars
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from ..config import DEFAULT_CONCURRENCY_LIMIT
from ..logger import logger
from .aggregator import Aggregator, ProgressCallback, RecordsCallback
from .errors import RunFatalError
from .models import PageOutcome, PageTask, RunResult
from .prompts import BrandInstructions
from .renderer import Document
from .worker import PageWorker


class Scheduler:
    """Dispatches one PageTask per page to a fixed-size thread pool.

    At most ``concurrency_limit`` pages are in flight at any moment; a new
    page is submitted as soon as one finishes. Outcomes are handed to the
    Aggregator from the scheduling thread in completion order, which need
    not match page order.
    """

    def __init__(
        self,
        worker: PageWorker,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    ):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self.worker = worker
        self.concurrency_limit = concurrency_limit

    def run(
        self,
        document: Document,
        instructions: BrandInstructions,
        *,
        brand: str | None = None,
        campaign: str | None = None,
        on_progress: ProgressCallback | None = None,
        on_records: RecordsCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunResult:
        """Extract every page of a document.

        Args:
            document: Document to process.
            instructions: Brand instruction set sent with every page.
            brand: Brand stamped on records that lack one. Defaults to the
                instruction set's default brand.
            campaign: Campaign stamped on records that lack one.
            on_progress: Called once per completed page with a ProgressState.
            on_records: Called with (page_number, records) for pages that
                produced records.
            cancel_event: When set, no further pages are dispatched.

        Returns:
            RunResult with records in page order.

        Raises:
            RunFatalError: If the document has no pages.
        """
        total_pages = document.page_count
        if total_pages < 1:
            raise RunFatalError("Document has no pages")

        tasks = [
            PageTask(
                page_index=i,
                brand=brand or instructions.default_brand,
                campaign=campaign or "N/A",
            )
            for i in range(total_pages)
        ]
        aggregator = Aggregator(total_pages, on_progress=on_progress, on_records=on_records)
        cancelled = False

        logger.info(
            "starting extraction run",
            total_pages=total_pages,
            concurrency_limit=self.concurrency_limit,
        )
        start = time.perf_counter()

        with ThreadPoolExecutor(
            max_workers=self.concurrency_limit, thread_name_prefix="page-worker"
        ) as executor:
            next_index = 0
            in_flight: dict[Future, PageTask] = {}

            while True:
                while len(in_flight) < self.concurrency_limit:
                    if next_index >= total_pages:
                        break
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break
                    task = tasks[next_index]
                    next_index += 1
                    # Each task gets its own copy so the run's log context
                    # reaches the worker thread
                    ctx = contextvars.copy_context()
                    future = executor.submit(
                        ctx.run, self.worker.run, document, task, instructions
                    )
                    in_flight[future] = task

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    task = in_flight.pop(future)
                    aggregator.add(self._collect(future, task))

        duration = time.perf_counter() - start
        result = aggregator.build_result(
            brand=instructions.brand.value,
            cancelled=cancelled,
            duration_seconds=duration,
        )
        summary = result.summary

        log = logger.warning if cancelled else logger.info
        log(
            "extraction run cancelled" if cancelled else "extraction run complete",
            total_pages=total_pages,
            pages_with_records=summary.pages_with_records,
            pages_failed=summary.pages_failed,
            pages_skipped=summary.pages_skipped,
            total_records=summary.total_records,
            duration_ms=round(duration * 1000, 2),
        )
        return result

    @staticmethod
    def _collect(future: Future, task: PageTask) -> PageOutcome:
        try:
            return future.result()
        except Exception as e:
            # PageWorker never raises; this only guards against worker bugs
            logger.exception(
                "page worker crashed",
                page_number=task.page_number,
                error=str(e),
            )
            return PageOutcome(
                page_index=task.page_index,
                failed=True,
                error=f"{type(e).__name__}: {e}",
            )
