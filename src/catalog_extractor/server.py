"""FastAPI REST API for catalog extraction runs."""

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from .config import PipelineConfig
from .extraction import (
    Brand,
    CatalogExtractionPipeline,
    ExtractionRecord,
    GeminiClient,
    InferenceClient,
    PageOutcome,
    PdfDocument,
    RunFatalError,
    RunSummary,
    open_document,
)
from .logger import logger

# Maximum file size for uploads (50MB)
MAX_UPLOAD_SIZE = 50 * 1024 * 1024

MAX_CONCURRENCY = 16


# --- Request/Response Models ---


class ExtractResponse(BaseModel):
    records: list[ExtractionRecord]
    outcomes: list[PageOutcome]
    skipped_pages: list[int] = Field(default_factory=list)
    summary: RunSummary


class BrandsResponse(BaseModel):
    brands: list[str]


class HealthResponse(BaseModel):
    status: str
    checks: dict[str, bool] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    code: str
    message: str


# --- App State ---

_config: PipelineConfig | None = None
_inference_client: InferenceClient | None = None


def get_config() -> PipelineConfig:
    """Lazy initialization of pipeline config from the environment."""
    global _config
    if _config is None:
        _config = PipelineConfig.from_env()
    return _config


def get_inference_client() -> InferenceClient:
    """Lazy initialization of the inference client."""
    global _inference_client
    if _inference_client is None:
        _inference_client = GeminiClient()
    return _inference_client


def get_pipeline() -> CatalogExtractionPipeline:
    """Build a pipeline around the shared client.

    Raises:
        HTTPException: 503 if the inference client cannot be configured.
    """
    try:
        client = get_inference_client()
    except ValueError as e:
        logger.error("inference client unavailable", error=str(e))
        raise HTTPException(status_code=503, detail=str(e)) from e
    return CatalogExtractionPipeline(client=client, config=get_config())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    config = get_config()
    logger.info(
        "starting server",
        concurrency_limit=config.concurrency_limit,
        max_attempts=config.max_attempts,
        render_scale=config.render_scale,
    )
    yield
    logger.info("server shutdown")


app = FastAPI(
    title="Catalog Extraction API",
    description="Extracts product listings from PDF catalogs page by page",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Exception Handlers ---


@app.exception_handler(RunFatalError)
async def run_fatal_handler(request, exc: RunFatalError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(code="RUN_FAILED", message=str(exc)).model_dump(),
    )


@app.exception_handler(FileNotFoundError)
async def file_not_found_handler(request, exc: FileNotFoundError):
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(code="FILE_NOT_FOUND", message=str(exc)).model_dump(),
    )


# --- Upload helpers ---


def _parse_brand(brand: str) -> Brand:
    try:
        return Brand.parse(brand)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _check_concurrency(concurrency: int | None) -> None:
    if concurrency is not None and not 1 <= concurrency <= MAX_CONCURRENCY:
        raise HTTPException(
            status_code=400,
            detail=f"concurrency must be between 1 and {MAX_CONCURRENCY}",
        )


def _save_upload(file: UploadFile) -> Path:
    """Validate an uploaded PDF and save it to a temp file.

    Raises:
        HTTPException: 400 if the file is not a PDF or is too large.
    """
    file_name = file.filename or "unknown.pdf"
    if not file_name.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")

    # Check file size
    if file.size and file.size > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
        )

    with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as tmp:
        tmp_path = Path(tmp.name)
        try:
            shutil.copyfileobj(file.file, tmp)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    if tmp_path.stat().st_size > MAX_UPLOAD_SIZE:
        tmp_path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
        )

    with open(tmp_path, "rb") as f:
        header = f.read(5)
    if header != b"%PDF-":
        tmp_path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=400,
            detail="Invalid PDF file. File does not have valid PDF header.",
        )

    return tmp_path


def _open_upload(tmp_path: Path) -> PdfDocument:
    try:
        document = open_document(tmp_path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise
    if document.page_count < 1:
        document.close()
        tmp_path.unlink(missing_ok=True)
        raise RunFatalError("Document has no pages")
    return document


# --- Health Endpoints ---


@app.get("/health", response_model=HealthResponse)
def health():
    """Liveness check."""
    return HealthResponse(status="healthy")


@app.get("/api/v1/brands", response_model=BrandsResponse)
def list_brands():
    """List the brands with dedicated extraction instructions."""
    return BrandsResponse(brands=[b.value for b in Brand])


# --- Extraction Endpoints ---


@app.post("/api/v1/extract")
def extract_stream(
    file: UploadFile = File(...),
    brand: str = Form(...),
    campaign: str | None = Form(default=None),
    concurrency: int | None = Form(default=None),
):
    """Extract a catalog, streaming run events as newline-delimited JSON.

    Emits one "progress" event per completed page, a "records" event for each
    page that yielded products, then a final "completed" or "failed" event.
    """
    parsed_brand = _parse_brand(brand)
    _check_concurrency(concurrency)
    pipeline = get_pipeline()
    tmp_path = _save_upload(file)
    document = _open_upload(tmp_path)

    try:
        run = pipeline.start(
            document,
            parsed_brand,
            campaign=campaign,
            concurrency_limit=concurrency,
        )
    except Exception:
        document.close()
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info(
        "extraction stream started",
        run_id=run.run_id,
        file_name=file.filename,
        total_pages=document.page_count,
    )

    def event_stream() -> Iterator[str]:
        try:
            for event in run.events():
                yield event.model_dump_json() + "\n"
        finally:
            # Client went away mid-stream: stop dispatching and let in-flight
            # pages drain before the document is closed
            run.cancel()
            try:
                run.result()
            except Exception as e:
                # Already reported to the client as a "failed" event
                logger.debug("stream closed after failed run", run_id=run.run_id, error=str(e))
            document.close()
            tmp_path.unlink(missing_ok=True)

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


@app.post("/api/v1/extract/sync", response_model=ExtractResponse)
def extract_sync(
    file: UploadFile = File(...),
    brand: str = Form(...),
    campaign: str | None = Form(default=None),
    concurrency: int | None = Form(default=None),
):
    """Extract a catalog and return all records once the run completes."""
    parsed_brand = _parse_brand(brand)
    _check_concurrency(concurrency)
    pipeline = get_pipeline()
    tmp_path = _save_upload(file)
    document = _open_upload(tmp_path)

    try:
        result = pipeline.run(
            document,
            parsed_brand,
            campaign=campaign,
            concurrency_limit=concurrency,
        )
    finally:
        document.close()
        tmp_path.unlink(missing_ok=True)

    return ExtractResponse(
        records=result.records,
        outcomes=result.outcomes,
        skipped_pages=result.skipped_pages,
        summary=result.summary,
    )
