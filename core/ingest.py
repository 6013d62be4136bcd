"""
Spreadsheet batch ingestion

Parses an uploaded recipient spreadsheet, validates its shape and issues one
certificate per data row through the ``RowProcessor``.

Validation happens before any side effect, in this order: blank institution
name, unreadable file, no data rows, missing required columns. Rows are then
processed sequentially in sheet order and the batch stops at the first row
that fails. Rows issued before the failure stay persisted.

Example usage:
    from core.ingest import BatchIngestor

    ingestor = BatchIngestor(settings, processor)
    batch = await ingestor.ingest(xlsx_bytes, "Example University")
    print(batch.count)
"""

import zipfile
from datetime import date, datetime, timezone
from io import BytesIO, StringIO
from typing import Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, Field

from core.config import Settings
from core.errors import (
    BatchFailedError,
    EmptySpreadsheetError,
    MissingColumnsError,
    RowProcessingError,
    SpreadsheetError,
    ValidationError,
)
from core.issue import RowProcessor
from core.logging import get_logger
from core.models import REQUIRED_COLUMNS, CertificateRow, IssuanceContext, IssuedBatch

logger = get_logger(__name__)

_XLSX_MAGIC = b"PK\x03\x04"


class Spreadsheet(BaseModel):
    """First sheet of an upload: trimmed header names and string-valued rows."""

    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, str]] = Field(default_factory=list)

    def missing_columns(self, required: List[str] = REQUIRED_COLUMNS) -> List[str]:
        return [c for c in required if c not in self.columns]


def _read_frame(data: bytes) -> pd.DataFrame:
    if data.startswith(_XLSX_MAGIC):
        return pd.read_excel(
            BytesIO(data),
            sheet_name=0,
            dtype=str,
            keep_default_na=False,
            engine="openpyxl",
        )

    text = data.decode("utf-8-sig")
    if not text.strip():
        return pd.DataFrame()
    return pd.read_csv(StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)


def parse_spreadsheet(data: bytes) -> Spreadsheet:
    """
    Parse spreadsheet bytes (xlsx or CSV text) into header-keyed rows.

    Every cell is read as a string; missing cells become ``""``. Fully blank
    rows are dropped and header names are whitespace-trimmed.

    Args:
        data: Raw upload content

    Returns:
        Spreadsheet with columns and rows

    Raises:
        SpreadsheetError: If the content is not a readable spreadsheet
    """
    if not data:
        raise SpreadsheetError("Excel file (file) is required", "EMPTY_UPLOAD")

    try:
        df = _read_frame(data)
    except (ValueError, UnicodeDecodeError, zipfile.BadZipFile, KeyError,
            pd.errors.ParserError, OSError) as e:
        raise SpreadsheetError(f"Could not read spreadsheet: {e}", "UNREADABLE_SPREADSHEET") from e

    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("").astype(str)

    rows = []
    for record in df.to_dict(orient="records"):
        cells = {k: v.strip() for k, v in record.items()}
        if any(cells.values()):
            rows.append(cells)

    return Spreadsheet(columns=list(df.columns), rows=rows)


class BatchIngestor:
    """
    Validates an uploaded spreadsheet and issues its certificates.

    One ingestor can serve many concurrent requests; each call keeps its
    state on the stack.
    """

    def __init__(self, settings: Settings, processor: RowProcessor):
        self.settings = settings
        self.processor = processor

    def validate(self, data: bytes, institution_name: str) -> Spreadsheet:
        """
        Run every pre-issuance check.

        Raises:
            ValidationError: blank institution name
            SpreadsheetError: unreadable upload
            EmptySpreadsheetError: header but no data rows
            MissingColumnsError: a required column is absent
        """
        if not (institution_name or "").strip():
            raise ValidationError("institution_name is required", "INSTITUTION_REQUIRED")

        sheet = parse_spreadsheet(data)
        if not sheet.rows:
            raise EmptySpreadsheetError()
        if sheet.missing_columns():
            raise MissingColumnsError(REQUIRED_COLUMNS, sheet.columns)
        return sheet

    async def ingest(self, data: bytes, institution_name: str, logo_url: str = "",
                     actor_id: Optional[str] = None,
                     issue_date: Optional[date] = None) -> IssuedBatch:
        """
        Issue one certificate per spreadsheet row.

        Args:
            data: Spreadsheet bytes
            institution_name: Institution printed on every certificate
            logo_url: Optional logo reference shared by the batch
            actor_id: Identity recorded as ``created_by``
            issue_date: Batch issue date (defaults to today, UTC)

        Returns:
            IssuedBatch with every issued record in sheet order

        Raises:
            ValidationError: On any pre-issuance check (no side effects)
            BatchFailedError: When a row fails; earlier rows stay issued
        """
        sheet = self.validate(data, institution_name)

        context = IssuanceContext(
            institution_name=institution_name.strip(),
            logo_url=(logo_url or "").strip(),
            issue_date=issue_date or datetime.now(timezone.utc).date(),
            created_by=actor_id,
        )

        total = len(sheet.rows)
        logger.info(
            f"Issuing batch of {total} certificates",
            extra={"institution": context.institution_name, "user": actor_id},
        )

        issued = []
        for row_number, cells in enumerate(sheet.rows, start=1):
            row = CertificateRow.from_sheet_row(cells)
            try:
                issued.append(await self.processor.process(row, context))
            except Exception as e:
                # Any row failure stops the batch with its row number and committed count
                error = BatchFailedError(RowProcessingError(row_number, e), len(issued), total)
                logger.error(
                    error.message,
                    extra={"institution": context.institution_name, **error.details},
                    exc_info=True,
                )
                raise error from e

        logger.info(
            f"Batch complete: {len(issued)} certificates issued",
            extra={"institution": context.institution_name, "user": actor_id},
        )
        return IssuedBatch(count=len(issued), items=issued)
