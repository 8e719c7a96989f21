#!/usr/bin/env python3
"""Run catalog extraction on a local PDF.

Usage:
    python scripts/extract_catalog.py <pdf_path> --brand natura [--campaign 202509] [--concurrency 3]

Prints a progress line per completed page to stderr and the final result as
JSON to stdout (or --output). Structured logs also go to stdout, so
use --output when the JSON needs to be machine-read.
"""

import argparse
import sys
from pathlib import Path

from catalog_extractor.config import PipelineConfig
from catalog_extractor.extraction import (
    Brand,
    CatalogExtractionPipeline,
    GeminiClient,
    RunFatalError,
)


def main():
    parser = argparse.ArgumentParser(description="Extract products from a PDF catalog")
    parser.add_argument("pdf_path", help="Path to PDF file")
    parser.add_argument(
        "--brand",
        required=True,
        choices=[b.value for b in Brand],
        help="Brand instruction set to use",
    )
    parser.add_argument("--campaign", default=None, help="Campaign stamped on every record")
    parser.add_argument(
        "--concurrency", type=int, default=None, help="Max pages in flight (default: 3)"
    )
    parser.add_argument(
        "--output", default=None, help="Write the JSON result here instead of stdout"
    )
    args = parser.parse_args()

    pdf_path = Path(args.pdf_path)
    if not pdf_path.exists():
        print(f"Error: File not found: {pdf_path}", file=sys.stderr)
        sys.exit(1)

    pipeline = CatalogExtractionPipeline(
        client=GeminiClient(),
        config=PipelineConfig.from_env(concurrency_limit=args.concurrency),
    )

    def on_progress(state):
        print(
            f"[{state.completed_pages}/{state.total_pages}] pages done",
            file=sys.stderr,
        )

    try:
        result = pipeline.run_file(
            pdf_path,
            args.brand,
            campaign=args.campaign,
            on_progress=on_progress,
        )
    except RunFatalError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    summary = result.summary
    print(
        f"{summary.total_records} products from {summary.pages_with_records}/"
        f"{summary.total_pages} pages ({summary.pages_failed} failed) "
        f"in {summary.duration_seconds:.1f}s",
        file=sys.stderr,
    )
    output = result.model_dump_json(indent=2)
    if args.output:
        Path(args.output).write_text(output)
    else:
        print(output)


if __name__ == "__main__":
    main()
