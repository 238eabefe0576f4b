"""
SmartBrief Backend — File Ingestor Unit Tests
===============================================

What:  Tests for upload validation (presence, extension, size) and text
       extraction from .txt and .docx.
Why:   The upload path must apply exactly the same text rules as typed input,
       and must refuse anything it cannot read before an AI call is made.
How:   .docx fixtures are built in memory with python-docx; no files on disk.
"""

import io

import docx
import pytest

from smartbrief.exceptions import ExtractionError, ValidationError
from smartbrief.services.file_service import MB, FileIngestor, normalize_text

from conftest import FIFTEEN_WORDS, SAMPLE_TEXT


def _docx_bytes(paragraphs, table_rows=None) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, value in enumerate(row):
                table.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestFileValidation:
    """Checks that run before any byte is decoded."""

    def setup_method(self):
        self.service = FileIngestor()

    # ── Extension Validation ──────────────────────────────────────────────

    def test_txt_and_docx_accepted(self):
        assert self.service.validate("notes.txt", 100).extension == ".txt"
        assert self.service.validate("report.docx", 100).extension == ".docx"

    def test_extension_case_insensitive(self):
        """Uppercase extensions are the same type."""
        assert self.service.validate("NOTES.TXT", 100).mime_type == "text/plain"

    def test_pdf_rejected_with_allowed_list(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate("paper.pdf", 100)
        err = exc_info.value
        assert err.message == "File type '.pdf' is not supported. Allowed types: .txt, .docx"
        assert err.context["extension"] == ".pdf"
        assert err.context["allowed"] == [".txt", ".docx"]

    def test_legacy_doc_rejected(self):
        """Old binary .doc is not .docx."""
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate("old.doc", 100)

    def test_no_extension_rejected(self):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate("README", 100)

    def test_missing_file(self):
        with pytest.raises(ValidationError, match="No file uploaded"):
            self.service.validate(None, None)
        with pytest.raises(ValidationError, match="No file uploaded"):
            self.service.validate("notes.txt", None)

    # ── Size Validation ───────────────────────────────────────────────────

    def test_txt_at_limit_accepted(self):
        self.service.validate("big.txt", 5 * MB)

    def test_txt_over_limit(self):
        with pytest.raises(ValidationError, match="5MB limit for .txt"):
            self.service.validate("big.txt", 5 * MB + 1)

    def test_docx_has_larger_limit(self):
        self.service.validate("big.docx", 8 * MB)
        with pytest.raises(ValidationError, match="10MB limit for .docx"):
            self.service.validate("big.docx", 10 * MB + 1)

    def test_content_length_checked_first(self):
        """A declared length over the ceiling is enough to reject."""
        with pytest.raises(ValidationError, match="5MB"):
            self.service.validate("small.txt", 10, content_length=6 * MB)

    def test_supported_types_listing(self):
        types = self.service.get_supported_types()
        assert [t["extension"] for t in types] == [".txt", ".docx"]
        assert types[0]["max_size"] == 5 * MB
        assert types[1]["display_name"] == "Microsoft Word Document"


class TestNormalizeText:

    def test_line_endings_and_blank_runs(self):
        assert normalize_text("a\r\nb\rc\n\n\n\n\nd  ") == "a\nb\nc\n\nd"


class TestExtraction:

    def setup_method(self):
        self.service = FileIngestor()

    # ── Plain text ────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_txt_extraction(self):
        doc = await self.service.extract("article.txt", SAMPLE_TEXT.encode("utf-8"))
        assert doc.text == SAMPLE_TEXT
        assert doc.file_name == "article.txt"
        assert doc.extension == ".txt"
        assert doc.word_count == len(SAMPLE_TEXT.split())
        assert doc.metadata["character_count"] == len(SAMPLE_TEXT)
        assert doc.metadata["size"] == len(SAMPLE_TEXT.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_txt_bom_stripped(self):
        content = b"\xef\xbb\xbf" + FIFTEEN_WORDS.encode("utf-8")
        doc = await self.service.extract("bom.txt", content)
        assert doc.text == FIFTEEN_WORDS
        assert doc.word_count == 15

    @pytest.mark.asyncio
    async def test_txt_invalid_utf8(self):
        with pytest.raises(ExtractionError, match="UTF-8"):
            await self.service.extract("latin1.txt", "café ".encode("latin-1") * 20)

    @pytest.mark.asyncio
    async def test_txt_too_few_words(self):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.extract("short.txt", b"just five words in here")
        assert "at least 10 words" in exc_info.value.message
        assert exc_info.value.field == "file"

    @pytest.mark.asyncio
    async def test_empty_txt(self):
        with pytest.raises(ValidationError, match="empty"):
            await self.service.extract("empty.txt", b"   \n\n ")

    # ── Word documents ────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_docx_paragraphs(self):
        content = _docx_bytes(
            ["First paragraph has five words.", "", "", "", "Second paragraph also has six words."]
        )
        doc = await self.service.extract("memo.docx", content)

        assert doc.text == "First paragraph has five words.\n\nSecond paragraph also has six words."
        assert doc.word_count == 11
        assert doc.mime_type.endswith("wordprocessingml.document")

    @pytest.mark.asyncio
    async def test_docx_tables_included(self):
        content = _docx_bytes(
            ["Quarterly figures by region follow below."],
            table_rows=[["Region", "Revenue"], ["North", "1200"], ["South", "950"]],
        )
        doc = await self.service.extract("figures.docx", content)

        assert "Region\tRevenue" in doc.text
        assert "South\t950" in doc.text
        assert doc.word_count == 12

    @pytest.mark.asyncio
    async def test_corrupt_docx(self):
        with pytest.raises(ExtractionError, match="valid .docx"):
            await self.service.extract("broken.docx", b"this is not a zip archive")

    @pytest.mark.asyncio
    async def test_pdf_never_extracted(self):
        with pytest.raises(ValidationError, match="not supported"):
            await self.service.extract("paper.pdf", b"%PDF-1.7 " + FIFTEEN_WORDS.encode())
