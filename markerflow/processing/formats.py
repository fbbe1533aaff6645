"""
Format Extractors  —  Raw Upload Bytes → Canonical Text
═══════════════════════════════════════════════════════

Design: Strategy, selected by file extension
────────────────────────────────────────────
The extension stored with the upload decides which extractor runs. Content is
never sniffed, so the same upload always takes the same path.

  .pdf          PdfExtractor          PyMuPDF native text layer, pages joined by "\\n\\n"
  .csv          CsvExtractor          markdown table (header, divider, rows)
  .xlsx         XlsxExtractor         markdown table of the first sheet (openpyxl)
  .xls          XlsExtractor          markdown table of the first sheet (xlrd)

Every extractor is pure: the same bytes always give byte-identical text.
Parsing is blocking, so it runs in the default thread executor.

Failure contract:
  Any exception raised while parsing is wrapped in ExtractionError.
  Callers (the extraction cache) must not persist anything in that case.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import time
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from markerflow.core.errors import ExtractionError

logger = logging.getLogger(__name__)

UNSUPPORTED_TEXT = "Unsupported file type for preview."


# ---------------------------------------------------------------------------
# Table serialisation
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str:
    """Render one spreadsheet / CSV cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def rows_to_markdown(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """
    | h1 | h2 |
    | --- | --- |
    | v1 | v2 |

    Returns "" when there are no data rows.
    """
    body = [
        "| " + " | ".join(cell_text(r[i]) if i < len(r) else "" for i in range(len(headers))) + " |"
        for r in rows
    ]
    if not body:
        return ""
    header  = "| " + " | ".join(headers) + " |"
    divider = "| " + " | ".join("---" for _ in headers) + " |"
    return "\n".join([header, divider, *body])


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(v is None or (isinstance(v, str) and v == "") for v in row)


def _table_from_rows(rows: list[Sequence[Any]]) -> str:
    """First non-blank row is the header; blank data rows are dropped."""
    rows = [r for r in rows if not _is_blank_row(r)]
    if not rows:
        return ""
    headers = [cell_text(h) for h in rows[0]]
    return rows_to_markdown(headers, rows[1:])


# ---------------------------------------------------------------------------
# Abstract strategy
# ---------------------------------------------------------------------------

class BaseFormatExtractor(ABC):
    """
    All implementations:
      - Accept raw upload bytes
      - Return canonical text (str)
      - Are stateless and safe for concurrent use
    """

    extensions: tuple[str, ...] = ()

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    def _extract_sync(self, data: bytes) -> str:
        """Blocking extraction — runs in thread executor."""

    async def extract(self, data: bytes) -> str:
        loop = asyncio.get_running_loop()
        t0 = time.monotonic()
        try:
            text = await loop.run_in_executor(None, self._extract_sync, data)
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning("%s extraction failed: %s", self.format_name, exc)
            raise ExtractionError(
                f"Could not parse {self.format_name} content: {exc}",
            ) from exc

        logger.info(
            "Extraction | format=%s bytes=%d chars=%d elapsed_ms=%.0f",
            self.format_name, len(data), len(text), (time.monotonic() - t0) * 1000,
        )
        return text


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

class PdfExtractor(BaseFormatExtractor):
    """PyMuPDF native text layer. Image-only pages contribute nothing."""

    extensions = (".pdf",)

    @property
    def format_name(self) -> str:
        return "pdf"

    def _extract_sync(self, data: bytes) -> str:
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [(page.get_text("text") or "").strip() for page in doc]
        return "\n\n".join(p for p in pages if p)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

class CsvExtractor(BaseFormatExtractor):
    """First line is the header; missing cells render empty."""

    extensions = (".csv",)

    @property
    def format_name(self) -> str:
        return "csv"

    def _extract_sync(self, data: bytes) -> str:
        text = data.decode("utf-8-sig")
        reader = csv.reader(io.StringIO(text, newline=""), strict=True)
        return _table_from_rows([row for row in reader])


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------

class XlsxExtractor(BaseFormatExtractor):
    """First worksheet only, computed values rather than formulas."""

    extensions = (".xlsx",)

    @property
    def format_name(self) -> str:
        return "xlsx"

    def _extract_sync(self, data: bytes) -> str:
        from openpyxl import load_workbook

        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            if not wb.worksheets:
                return ""
            rows = [list(r) for r in wb.worksheets[0].iter_rows(values_only=True)]
        finally:
            wb.close()
        return _table_from_rows(rows)


class XlsExtractor(BaseFormatExtractor):
    """Legacy BIFF workbooks (.xls), first sheet only."""

    extensions = (".xls",)

    @property
    def format_name(self) -> str:
        return "xls"

    def _extract_sync(self, data: bytes) -> str:
        import xlrd

        book = xlrd.open_workbook(file_contents=data)
        if book.nsheets == 0:
            return ""
        sheet = book.sheet_by_index(0)
        rows = [sheet.row_values(i) for i in range(sheet.nrows)]
        return _table_from_rows(rows)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def default_extractors() -> dict[str, BaseFormatExtractor]:
    """Extension (lowercase, with dot) → extractor."""
    registry: dict[str, BaseFormatExtractor] = {}
    for extractor in (PdfExtractor(), CsvExtractor(), XlsxExtractor(), XlsExtractor()):
        for ext in extractor.extensions:
            registry[ext] = extractor
    return registry


SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(default_extractors())
