"""Single-page extraction: render, infer, parse and normalize."""

import json
import math
import re
import time

from ..config import DEFAULT_RENDER_SCALE
from ..logger import log_context, logger
from .errors import ParseError, RasterizationError
from .inference import InferenceClient
from .models import ExtractionRecord, PageOutcome, PageTask
from .prompts import BrandInstructions
from .renderer import IMAGE_MIME_TYPE, Document
from .retry import RetryPolicy

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_NON_NUMERIC_RE = re.compile(r"[^0-9.,\-]")


def parse_response(text: str) -> list[dict]:
    """Parse a model response into a list of raw record dicts.

    The model may answer with a single object or an array of objects; both
    are returned as a list. A surrounding markdown code fence is tolerated.

    Args:
        text: Raw response text.

    Returns:
        List of raw record dictionaries.

    Raises:
        ParseError: If the text is not JSON, or not an object/array.
    """
    body = text.strip()
    fenced = _CODE_FENCE_RE.match(body)
    if fenced:
        body = fenced.group(1)

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        preview = body[:200]
        raise ParseError(f"Response is not valid JSON: {e.msg} (body={preview!r})") from e

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        items = [item for item in data if isinstance(item, dict)]
        if len(items) != len(data):
            logger.warning(
                "ignoring non-object items in response",
                ignored_count=len(data) - len(items),
            )
        return items

    raise ParseError(f"Expected a JSON object or array, got {type(data).__name__}")


def _to_number(value) -> float:
    """Coerce a raw numeric field, returning 0 for missing, invalid or negative values."""
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NON_NUMERIC_RE.sub("", value)
        if "," in cleaned and "." in cleaned:
            # Whichever separator comes last is the decimal point
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
    else:
        return 0.0

    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _pick(raw: dict, *keys: str):
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def normalize_record(raw: dict, task: PageTask) -> ExtractionRecord | None:
    """Turn one raw model record into an ExtractionRecord.

    Returns None when the record has no code or no name.
    """
    code = _to_text(_pick(raw, "code"))
    name = _to_text(_pick(raw, "name"))
    if not code or not name:
        return None

    return ExtractionRecord(
        code=code,
        name=name,
        presentation=_to_text(_pick(raw, "presentation")),
        content=_to_number(_pick(raw, "content")),
        offer_price=_to_number(_pick(raw, "offerPrice", "offer_price")),
        regular_price=_to_number(_pick(raw, "regularPrice", "regular_price")),
        brand=_to_text(_pick(raw, "brand")) or task.brand,
        campaign=_to_text(_pick(raw, "campaign")) or task.campaign,
        page_number=task.page_number,
    )


class PageWorker:
    """Runs the full unit of work for one page and never raises.

    Any failure along the way (rendering, inference after retries, parsing)
    is logged and folded into a failed PageOutcome with no records, so one bad
    page cannot abort a run.
    """

    def __init__(
        self,
        client: InferenceClient,
        retry_policy: RetryPolicy | None = None,
        render_scale: float = DEFAULT_RENDER_SCALE,
    ):
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self.render_scale = render_scale

    def run(
        self,
        document: Document,
        task: PageTask,
        instructions: BrandInstructions,
    ) -> PageOutcome:
        with log_context(page_number=task.page_number):
            start = time.perf_counter()
            try:
                records, raw_count = self._extract(document, task, instructions)
            except Exception as e:
                logger.error(
                    "page extraction failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return PageOutcome(
                    page_index=task.page_index,
                    failed=True,
                    error=f"{type(e).__name__}: {e}",
                )

            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "page extracted",
                records_count=len(records),
                dropped_count=raw_count - len(records),
                duration_ms=round(duration_ms, 2),
            )
            return PageOutcome(page_index=task.page_index, records=records)

    def _extract(
        self,
        document: Document,
        task: PageTask,
        instructions: BrandInstructions,
    ) -> tuple[list[ExtractionRecord], int]:
        try:
            image = document.render_page(task.page_index, self.render_scale)
        except RasterizationError:
            raise
        except Exception as e:
            raise RasterizationError(task.page_index, str(e)) from e

        mime_type = getattr(document, "image_mime_type", IMAGE_MIME_TYPE)
        response_text = self._retry_policy.execute(
            lambda: self._client.infer(
                image,
                instructions.instruction,
                instructions.response_schema,
                mime_type,
            ),
            operation="infer",
        )

        raw_records = parse_response(response_text)
        records = []
        for raw in raw_records:
            record = normalize_record(raw, task)
            if record is not None:
                records.append(record)
        return records, len(raw_records)
