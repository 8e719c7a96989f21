"""Collects page outcomes, emits progress and partial records, builds the result."""

import threading
from collections.abc import Callable

from .models import ExtractionRecord, PageOutcome, ProgressState, RunResult

ProgressCallback = Callable[[ProgressState], None]
RecordsCallback = Callable[[int, list[ExtractionRecord]], None]


class Aggregator:
    """Single point where page outcomes are recorded.

    Outcomes arrive in completion order. Each one bumps the completed-page
    counter and triggers exactly one progress emission, followed by a
    records emission when the page produced records. Callbacks run under the
    aggregator lock, so emissions are never interleaved.
    """

    def __init__(
        self,
        total_pages: int,
        on_progress: ProgressCallback | None = None,
        on_records: RecordsCallback | None = None,
    ):
        self.total_pages = total_pages
        self._on_progress = on_progress
        self._on_records = on_records
        self._outcomes: dict[int, PageOutcome] = {}
        self._completed = 0
        self._lock = threading.Lock()

    @property
    def progress(self) -> ProgressState:
        with self._lock:
            return ProgressState(
                completed_pages=self._completed, total_pages=self.total_pages
            )

    @property
    def completed_indices(self) -> set[int]:
        with self._lock:
            return set(self._outcomes)

    def add(self, outcome: PageOutcome) -> ProgressState:
        """Record a page outcome and emit progress (and records, if any).

        Raises:
            ValueError: If the page index is out of range or already recorded.
        """
        with self._lock:
            if not 0 <= outcome.page_index < self.total_pages:
                raise ValueError(
                    f"page_index {outcome.page_index} outside 0..{self.total_pages - 1}"
                )
            if outcome.page_index in self._outcomes:
                raise ValueError(f"page_index {outcome.page_index} already recorded")

            self._outcomes[outcome.page_index] = outcome
            self._completed += 1
            state = ProgressState(
                completed_pages=self._completed, total_pages=self.total_pages
            )

            if self._on_progress:
                self._on_progress(state)
            if outcome.records and self._on_records:
                self._on_records(outcome.page_number, list(outcome.records))

            return state

    def build_result(
        self,
        brand: str,
        cancelled: bool = False,
        duration_seconds: float = 0.0,
    ) -> RunResult:
        """Concatenate records in ascending page order into the final result."""
        with self._lock:
            outcomes = [self._outcomes[i] for i in sorted(self._outcomes)]
            skipped = [
                i + 1 for i in range(self.total_pages) if i not in self._outcomes
            ]

        records = [record for outcome in outcomes for record in outcome.records]
        return RunResult(
            brand=brand,
            total_pages=self.total_pages,
            records=records,
            outcomes=outcomes,
            skipped_pages=skipped,
            cancelled=cancelled,
            duration_seconds=round(duration_seconds, 3),
        )
