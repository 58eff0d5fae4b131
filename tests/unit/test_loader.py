"""Unit tests for document extraction."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pdf_rag.ingestion.loader import DocumentExtractor, load_pdf
from pdf_rag.ingestion.models import IngestionReport, ItemStatus

TWO_HUNDRED_WORDS = " ".join(f"word{i}" for i in range(200))


def fake_pdf_parser(path: Path) -> str:
    """Stand-in for PyPDF: the file content *is* the text, unless marked corrupt."""
    data = path.read_bytes()
    if data.startswith(b"CORRUPT"):
        raise ValueError("EOF marker not found")
    return data.decode()


@pytest.fixture()
def docs_dir(tmp_path: Path) -> Path:
    (tmp_path / "a.pdf").write_text(TWO_HUNDRED_WORDS)
    (tmp_path / "b.pdf").write_bytes(b"CORRUPT\x00\x01")
    (tmp_path / "c.txt").write_text("plain text, ignored")
    return tmp_path


@pytest.fixture()
def extractor() -> DocumentExtractor:
    return DocumentExtractor({".pdf": fake_pdf_parser}, max_workers=2)


def test_mixed_directory_yields_only_good_pdf(
    docs_dir: Path, extractor: DocumentExtractor, caplog: pytest.LogCaptureFixture
) -> None:
    """a.pdf extracted; corrupted b.pdf and c.txt produce notices, not errors."""
    report = IngestionReport()
    with caplog.at_level(logging.INFO, logger="pdf_rag.ingestion.loader"):
        docs = list(extractor.iter_documents(docs_dir, report))

    assert [d.source_id for d in docs] == ["a.pdf"]
    assert len(docs[0].text.split()) == 200

    by_item = {r.item: r for r in report.items}
    assert by_item["a.pdf"].status is ItemStatus.OK
    assert by_item["b.pdf"].status is ItemStatus.FAILED
    assert "EOF marker" in by_item["b.pdf"].reason
    assert by_item["c.txt"].status is ItemStatus.SKIPPED

    assert any("b.pdf" in rec.message and rec.levelno == logging.WARNING for rec in caplog.records)
    assert any("c.txt" in rec.message for rec in caplog.records)


def test_iter_documents_is_lazy(docs_dir: Path) -> None:
    calls: list[str] = []

    def parser(path: Path) -> str:
        calls.append(path.name)
        return "text"

    (docs_dir / "b.pdf").write_text("fine now")
    it = DocumentExtractor({".pdf": parser}).iter_documents(docs_dir)
    assert calls == []
    next(it)
    assert calls == ["a.pdf"]


def test_whitespace_only_text_is_skipped(tmp_path: Path, extractor: DocumentExtractor) -> None:
    (tmp_path / "blank.pdf").write_text("   \n\t  ")
    report = IngestionReport()

    assert extractor.extract_many(tmp_path, report) == []
    assert report.skipped[0].item == "blank.pdf"
    assert report.skipped[0].reason == "no extractable text"


def test_extension_match_is_case_insensitive(tmp_path: Path, extractor: DocumentExtractor) -> None:
    (tmp_path / "UPPER.PDF").write_text("some text")
    docs = extractor.extract_many(tmp_path)
    assert [d.source_id for d in docs] == ["UPPER.PDF"]


def test_extract_many_keeps_directory_order(tmp_path: Path, extractor: DocumentExtractor) -> None:
    for name in ("c.pdf", "a.pdf", "b.pdf"):
        (tmp_path / name).write_text(f"text of {name}")
    docs = extractor.extract_many(tmp_path)
    assert [d.source_id for d in docs] == ["a.pdf", "b.pdf", "c.pdf"]
    assert docs[0].path == str(tmp_path / "a.pdf")


def test_missing_directory_raises(tmp_path: Path, extractor: DocumentExtractor) -> None:
    with pytest.raises(FileNotFoundError, match="Directory not found"):
        extractor.extract_many(tmp_path / "nope")


def test_default_parsers_cover_pdf_only() -> None:
    assert DocumentExtractor().supported_extensions == {".pdf"}


def test_load_pdf_joins_pages(monkeypatch: pytest.MonkeyPatch) -> None:
    from langchain_core.documents import Document

    class FakeLoader:
        def __init__(self, path: str) -> None:
            self.path = path

        def load(self) -> list[Document]:
            return [Document(page_content="page one"), Document(page_content="page two")]

    monkeypatch.setattr("langchain_community.document_loaders.PyPDFLoader", FakeLoader)
    assert load_pdf("x.pdf") == "page one\npage two"
