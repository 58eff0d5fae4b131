"""Document extraction — turn a directory of files into :class:`RawDocument` objects.

PDF text extraction goes through LangChain's ``PyPDFLoader``; the parser
is injectable so tests (and other formats) can substitute their own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pdf_rag.ingestion.models import IngestionReport, ItemStatus, RawDocument

logger = logging.getLogger(__name__)

STAGE = "extract"

Parser = Callable[[Path], str]


def load_pdf(path: str | Path) -> str:
    """Extract the text of every page of a PDF, joined by newlines."""
    from langchain_community.document_loaders import PyPDFLoader

    pages = PyPDFLoader(str(path)).load()
    return "\n".join(page.page_content for page in pages)


DEFAULT_PARSERS: dict[str, Parser] = {".pdf": load_pdf}


class DocumentExtractor:
    """Produce :class:`RawDocument` objects from files in a directory.

    Parameters
    ----------
    parsers:
        Mapping of lower-case file extension (``".pdf"``) to a callable
        returning the file's plain text.  Only files whose extension is a
        key are extracted; everything else is skipped with a notice.
    max_workers:
        Upper bound on files extracted concurrently by :meth:`extract_many`.
    """

    def __init__(
        self,
        parsers: dict[str, Parser] | None = None,
        *,
        max_workers: int = 4,
    ) -> None:
        self.parsers = {ext.lower(): fn for ext, fn in (parsers or DEFAULT_PARSERS).items()}
        self.max_workers = max_workers

    @property
    def supported_extensions(self) -> set[str]:
        return set(self.parsers)

    # -- public API -----------------------------------------------------------

    def iter_documents(
        self,
        directory: str | Path,
        report: IngestionReport | None = None,
    ) -> Iterator[RawDocument]:
        """Lazily extract every supported file under *directory* (non-recursive).

        Raises
        ------
        FileNotFoundError
            If *directory* does not exist.
        """
        report = report if report is not None else IngestionReport()
        for path in self._list_files(directory):
            doc = self._extract_one(path, report)
            if doc is not None:
                yield doc

    def extract_many(
        self,
        directory: str | Path,
        report: IngestionReport | None = None,
    ) -> list[RawDocument]:
        """Extract files with bounded parallelism; output keeps directory order."""
        report = report if report is not None else IngestionReport()
        paths = list(self._list_files(directory))
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="extract") as pool:
            results = pool.map(lambda p: self._extract_one(p, report), paths)
            return [doc for doc in results if doc is not None]

    # -- internals ------------------------------------------------------------

    def _list_files(self, directory: str | Path) -> Iterable[Path]:
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {directory}")
        return sorted(p for p in root.iterdir() if p.is_file())

    def _extract_one(self, path: Path, report: IngestionReport) -> RawDocument | None:
        parser = self.parsers.get(path.suffix.lower())
        if parser is None:
            logger.info("Skipping unsupported file: %s", path.name)
            report.record(path.name, STAGE, ItemStatus.SKIPPED, "unsupported extension")
            return None

        try:
            text = parser(path)
        except Exception as exc:  # corrupted, encrypted, unreadable …
            logger.warning("Failed to extract %s: %s", path.name, exc)
            report.record(path.name, STAGE, ItemStatus.FAILED, f"extraction error: {exc}")
            return None

        if not text or not text.strip():
            logger.warning("No extractable text in %s; skipping", path.name)
            report.record(path.name, STAGE, ItemStatus.SKIPPED, "no extractable text")
            return None

        logger.info("Extracted %s (%d chars)", path.name, len(text))
        report.record(path.name, STAGE, ItemStatus.OK)
        return RawDocument(source_id=path.name, text=text, path=str(path))
