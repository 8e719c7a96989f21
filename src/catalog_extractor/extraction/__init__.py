from .errors import (
    ExtractionError,
    TransientServiceError,
    PermanentServiceError,
    ParseError,
    RasterizationError,
    RunFatalError,
)
from .classifier import ErrorKind, classify_error, is_transient
from .retry import RetryPolicy
from .models import (
    ExtractionRecord,
    PageTask,
    PageOutcome,
    ProgressState,
    RunResult,
    RunSummary,
    ProgressEvent,
    RecordsEvent,
    CompletedEvent,
    FailedEvent,
    RunEvent,
)
from .prompts import Brand, BrandInstructions, RESPONSE_SCHEMA, get_instructions
from .renderer import Document, PdfDocument, open_document
from .inference import InferenceClient, GeminiClient
from .worker import PageWorker, parse_response, normalize_record
from .aggregator import Aggregator
from .scheduler import Scheduler
from .pipeline import CatalogExtractionPipeline, ExtractionRun

__all__ = [
    # Errors
    "ExtractionError",
    "TransientServiceError",
    "PermanentServiceError",
    "ParseError",
    "RasterizationError",
    "RunFatalError",
    # Classification and retry
    "ErrorKind",
    "classify_error",
    "is_transient",
    "RetryPolicy",
    # Models
    "ExtractionRecord",
    "PageTask",
    "PageOutcome",
    "ProgressState",
    "RunResult",
    "RunSummary",
    "ProgressEvent",
    "RecordsEvent",
    "CompletedEvent",
    "FailedEvent",
    "RunEvent",
    # Brand instructions
    "Brand",
    "BrandInstructions",
    "RESPONSE_SCHEMA",
    "get_instructions",
    # Rendering
    "Document",
    "PdfDocument",
    "open_document",
    # Inference
    "InferenceClient",
    "GeminiClient",
    # Pipeline
    "PageWorker",
    "parse_response",
    "normalize_record",
    "Aggregator",
    "Scheduler",
    "CatalogExtractionPipeline",
    "ExtractionRun",
]
