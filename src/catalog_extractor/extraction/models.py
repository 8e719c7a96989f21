"""Data models for catalog extraction runs."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ExtractionRecord(BaseModel):
    """One product listing extracted from a catalog page."""

    code: str
    name: str
    presentation: str = ""
    content: float = Field(default=0.0, ge=0)
    offer_price: float = Field(default=0.0, ge=0)  # 0 means no offer shown
    regular_price: float = Field(default=0.0, ge=0)
    brand: str
    campaign: str
    page_number: int = Field(ge=1)


class PageTask(BaseModel):
    """A single page scheduled for extraction."""

    model_config = ConfigDict(frozen=True)

    page_index: int = Field(ge=0)
    brand: str = "N/A"
    campaign: str = "N/A"

    @property
    def page_number(self) -> int:
        return self.page_index + 1


class PageOutcome(BaseModel):
    """Failure-tolerant result of processing one page."""

    page_index: int = Field(ge=0)
    records: list[ExtractionRecord] = Field(default_factory=list)
    attempted: bool = True
    failed: bool = False
    error: str | None = None

    @property
    def page_number(self) -> int:
        return self.page_index + 1


class ProgressState(BaseModel):
    """Snapshot of run progress, emitted once per completed page."""

    model_config = ConfigDict(frozen=True)

    completed_pages: int = Field(ge=0)
    total_pages: int = Field(ge=0)


class RunSummary(BaseModel):
    """Counts describing how much of a document yielded data."""

    brand: str
    total_pages: int
    pages_attempted: int
    pages_with_records: int
    pages_failed: int
    pages_skipped: int
    total_records: int
    duration_seconds: float


class RunResult(BaseModel):
    """Final, page-ordered result of an extraction run.

    Pages that were never dispatched (the run was cancelled) are absent from
    ``outcomes`` and listed by page number in ``skipped_pages``.
    """

    brand: str
    total_pages: int
    records: list[ExtractionRecord] = Field(default_factory=list)
    outcomes: list[PageOutcome] = Field(default_factory=list)
    skipped_pages: list[int] = Field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @computed_field
    @property
    def summary(self) -> RunSummary:
        return RunSummary(
            brand=self.brand,
            total_pages=self.total_pages,
            pages_attempted=sum(1 for o in self.outcomes if o.attempted),
            pages_with_records=sum(1 for o in self.outcomes if o.records),
            pages_failed=sum(1 for o in self.outcomes if o.failed),
            pages_skipped=len(self.skipped_pages),
            total_records=len(self.records),
            duration_seconds=self.duration_seconds,
        )


# --- Run events ---


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    completed_pages: int
    total_pages: int


class RecordsEvent(BaseModel):
    type: Literal["records"] = "records"
    page_number: int
    records: list[ExtractionRecord]


class CompletedEvent(BaseModel):
    type: Literal["completed"] = "completed"
    result: RunResult


class FailedEvent(BaseModel):
    type: Literal["failed"] = "failed"
    error: str


RunEvent = ProgressEvent | RecordsEvent | CompletedEvent | FailedEvent
