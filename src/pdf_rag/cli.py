"""Command-line entry point: ``pdf-rag ingest`` and ``pdf-rag query``.

Exit status: 0 on success (including a run that found nothing to ingest),
1 on a fatal error, 130 when cancelled by a signal.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from pdf_rag.config import Settings
from pdf_rag.exceptions import ConfigurationError, PdfRagError
from pdf_rag.factory import build_pipeline, build_retriever
from pdf_rag.ingestion.cancellation import CancellationToken
from pdf_rag.ingestion.indexer import ReingestPolicy
from pdf_rag.ingestion.models import RunStatus
from pdf_rag.retrieval.models import MetadataFilter

logger = logging.getLogger("pdf_rag")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdf-rag", description="PDF ingestion and retrieval")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest a directory of PDF files")
    ingest.add_argument("directory", nargs="?", help="Input directory (default: DOCUMENTS_DIR)")
    ingest.add_argument(
        "--replace",
        action="store_true",
        help="Delete previous records of each document before writing",
    )

    query = sub.add_parser("query", help="Run a semantic search")
    query.add_argument("text", help="Query text")
    query.add_argument("-k", type=int, default=None, help="Number of results")
    query.add_argument("--filename-contains", default=None, help="Restrict to matching file names")
    return parser


def _install_signal_handlers(cancel: CancellationToken) -> None:
    def _handler(signum: int, _frame: object) -> None:
        logger.warning("Received %s; finishing in-flight batches", signal.Signals(signum).name)
        cancel.cancel(signal.Signals(signum).name)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _ingest(settings: Settings, args: argparse.Namespace) -> int:
    policy = ReingestPolicy.REPLACE if args.replace else ReingestPolicy.DEDUPLICATE
    pipeline = build_pipeline(settings, policy=policy)
    cancel = CancellationToken()
    _install_signal_handlers(cancel)

    report = pipeline.run(args.directory or settings.documents_dir, cancel=cancel)
    for item in report.skipped + report.failed:
        logger.info("%s %s at %s: %s", item.item, item.status.value, item.stage, item.reason)
    print(report.summary())
    return EXIT_CANCELLED if report.status is RunStatus.CANCELLED else EXIT_OK


def _query(settings: Settings, args: argparse.Namespace) -> int:
    retriever = build_retriever(settings)
    filters = [MetadataFilter.contains("filename", args.filename_contains)] if args.filename_contains else None
    results = retriever.query(args.text, k=args.k, filters=filters)
    if not results:
        print("No matching passages.")
    for r in results:
        print(f"{r.score:.4f} {r.citation.short_ref()} {r.content[:200]!r}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_FATAL

    try:
        if args.command == "ingest":
            return _ingest(settings, args)
        return _query(settings, args)
    except ConfigurationError as exc:
        print(f"error: configuration: {exc}", file=sys.stderr)
    except FileNotFoundError as exc:
        print(f"error: {exc}", file=sys.stderr)
    except PdfRagError as exc:
        logger.debug("Fatal error", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
    return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
