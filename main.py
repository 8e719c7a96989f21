"""Entry point for the catalog extraction server."""

import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Catalog extraction server")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max pages in flight per run (default: 3). Overrides EXTRACT_CONCURRENCY env var.",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Gemini model name (default: gemini-2.5-flash). Overrides GEMINI_MODEL env var.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    args = parser.parse_args()

    if args.concurrency is not None:
        os.environ["EXTRACT_CONCURRENCY"] = str(args.concurrency)
    if args.model is not None:
        os.environ["GEMINI_MODEL"] = args.model

    from catalog_extractor.server import app

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
