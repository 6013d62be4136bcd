"""
CertVault Core Models

Pydantic v2 models for spreadsheet rows, render payloads and batch results.
These models give the dynamic shape of spreadsheet data an explicit type:
the required column literals are checked once, then rows become
``CertificateRow`` instances with named fields.

Example usage:
    from core.models import CertificateRow

    row = CertificateRow.from_sheet_row({
        "Full Name": "Ada Lovelace",
        "Program": "Mathematics",
        "Certificate": "BSc",
        "CGPA": "3.9",
    })
    print(row.full_name)
"""

from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models_sql import CertificateRecord


# Spreadsheet header literals
COL_FULL_NAME = "Full Name"
COL_PROGRAM = "Program"
COL_CERTIFICATE = "Certificate"
COL_CGPA = "CGPA"
COL_IMAGE_URL = "Image Url"

REQUIRED_COLUMNS = [COL_FULL_NAME, COL_PROGRAM, COL_CERTIFICATE, COL_CGPA]


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column, "")
    if value is None:
        return ""
    return str(value).strip()


class CertificateRow(BaseModel):
    """One recipient row from an uploaded spreadsheet."""

    full_name: str = ""
    program: str = ""
    certificate: str = ""
    cgpa: str = ""
    image_url: str = ""

    @classmethod
    def from_sheet_row(cls, row: Mapping[str, Any]) -> "CertificateRow":
        """
        Build a row from a header-keyed mapping.

        Missing cells become empty strings; extra columns are ignored.
        """
        return cls(
            full_name=_cell(row, COL_FULL_NAME),
            program=_cell(row, COL_PROGRAM),
            certificate=_cell(row, COL_CERTIFICATE),
            cgpa=_cell(row, COL_CGPA),
            image_url=_cell(row, COL_IMAGE_URL),
        )


class IssuanceContext(BaseModel):
    """Batch-wide values shared by every row."""

    institution_name: str
    logo_url: str = ""
    issue_date: date
    created_by: Optional[str] = None


class CertificateFields(BaseModel):
    """Field payload handed to the document renderer."""

    institution_name: str = ""
    full_name: str = ""
    program: str = ""
    certificate: str = ""
    cgpa: str = ""
    certificate_id: str
    verify_url: str
    issue_date: str = Field(..., description="Issue date as YYYY-MM-DD")
    logo_url: str = ""
    image_url: str = ""


class CertificateAssets(BaseModel):
    """Raw bytes of the optional images placed on a certificate."""

    logo: Optional[bytes] = None
    photo: Optional[bytes] = None


class IssuedBatch(BaseModel):
    """Result of a fully successful batch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    count: int
    items: List[CertificateRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "items": [item.to_public_dict() for item in self.items],
        }
