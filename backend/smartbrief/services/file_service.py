"""
SmartBrief Backend — File Ingestion Service
=============================================

What:  Validates an uploaded document and extracts plain text from it.
Why:   Upload-based summaries must pass through exactly the same text rules as
       typed ones; this service is the bridge from bytes to validated text.
How:   Three stages, cheapest first:
        1. Presence + extension check (.txt and .docx only; no bytes are read)
        2. Per-type size ceiling (Content-Length hint, then the actual size)
        3. Decode → normalize → shared text validation

Supported types:
    .txt   UTF-8 text, leading BOM dropped           ≤ 5 MB
    .docx  Word document via python-docx             ≤ 10 MB
           (paragraph text plus table cell text; formatting ignored)

Anything else, including .pdf, is rejected before extraction is attempted.

Failure split:
    wrong/missing file, too large, text fails rules → ValidationError
    bytes cannot be decoded                         → ExtractionError
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import docx

from smartbrief.exceptions import ExtractionError, ValidationError
from smartbrief.text_rules import validate_text

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class FileType:
    extension: str
    mime_type: str
    display_name: str
    max_size: int

    def as_dict(self) -> dict:
        return {
            "extension": self.extension,
            "mime_type": self.mime_type,
            "display_name": self.display_name,
            "max_size": self.max_size,
        }


SUPPORTED_TYPES: Dict[str, FileType] = {
    ".txt": FileType(".txt", "text/plain", "Plain Text File", 5 * MB),
    ".docx": FileType(
        ".docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "Microsoft Word Document",
        10 * MB,
    ),
}

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class ExtractedDocument:
    """Validated text plus what we know about the file it came from."""

    text: str
    file_name: str
    extension: str
    mime_type: str
    size: int
    word_count: int

    @property
    def metadata(self) -> dict:
        return {
            "file_name": self.file_name,
            "extension": self.extension,
            "mime_type": self.mime_type,
            "size": self.size,
            "word_count": self.word_count,
            "character_count": len(self.text),
        }


def normalize_text(text: str) -> str:
    """Unifies line endings, collapses runs of blank lines and trims."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_BLANK_LINES.sub("\n\n", text).strip()


class FileIngestor:
    """Stateless; one instance is shared by every request."""

    def get_supported_types(self) -> List[dict]:
        return [file_type.as_dict() for file_type in SUPPORTED_TYPES.values()]

    def validate(
        self,
        filename: Optional[str],
        size: Optional[int],
        content_length: Optional[int] = None,
    ) -> FileType:
        """
        Checks presence, extension and size without reading the content.

        Returns:
            The matching FileType descriptor.

        Raises:
            ValidationError naming the offending extension or the size ceiling.
        """
        if not filename or size is None:
            raise ValidationError("No file uploaded", field="file")

        ext = Path(filename).suffix.lower()
        file_type = SUPPORTED_TYPES.get(ext)
        if file_type is None:
            shown = ext or "(none)"
            raise ValidationError(
                f"File type '{shown}' is not supported. "
                f"Allowed types: {', '.join(SUPPORTED_TYPES)}",
                field="file",
                context={"extension": shown, "allowed": list(SUPPORTED_TYPES)},
            )

        limit_mb = file_type.max_size // MB
        # Content-Length first: rejects before the body is trusted
        for reported in (content_length, size):
            if reported and reported > file_type.max_size:
                raise ValidationError(
                    f"File size exceeds the {limit_mb}MB limit for {ext} files",
                    field="file",
                    context={"extension": ext, "max_size": file_type.max_size, "size": reported},
                )
        return file_type

    async def extract(self, filename: str, content: bytes) -> ExtractedDocument:
        """
        Decodes and validates an already size-checked file.

        .docx parsing is synchronous zip/XML work, so it runs in a worker
        thread to keep the event loop free.
        """
        file_type = self.validate(filename, len(content))

        if file_type.extension == ".txt":
            raw = self._decode_txt(content)
        else:
            raw = await asyncio.to_thread(self._decode_docx, content)

        text = normalize_text(raw)
        validation = validate_text(text)
        if not validation.valid:
            raise ValidationError(validation.reason, field="file")

        logger.info(
            "Extracted %d words from %s (%d bytes)", validation.word_count, file_type.extension, len(content)
        )
        return ExtractedDocument(
            text=text,
            file_name=Path(filename).name,
            extension=file_type.extension,
            mime_type=file_type.mime_type,
            size=len(content),
            word_count=validation.word_count,
        )

    @staticmethod
    def _decode_txt(content: bytes) -> str:
        try:
            # utf-8-sig drops a leading BOM when present
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ExtractionError(
                "Text file is not valid UTF-8",
                context={"extension": ".txt", "position": e.start},
            )

    @staticmethod
    def _decode_docx(content: bytes) -> str:
        try:
            document = docx.Document(io.BytesIO(content))
        except Exception as e:
            logger.warning("Could not open .docx upload: %s", type(e).__name__)
            raise ExtractionError(
                "Word document could not be read. Is it a valid .docx file?",
                context={"extension": ".docx", "error_type": type(e).__name__},
            )

        parts = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                cells: List[str] = []
                for cell in row.cells:
                    # Merged cells are reported once per grid column
                    if not cells or cells[-1] != cell.text:
                        cells.append(cell.text)
                parts.append("\t".join(cells))
        return "\n".join(parts)
