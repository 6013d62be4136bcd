"""
CertVault Test Helper Utilities

Builders for spreadsheet uploads and images, plus PDF and ZIP readers.

Example usage:
    xlsx = make_xlsx([{"Full Name": "Ada", "Program": "Math", ...}])
    text = pdf_text(pdf_bytes)
"""

import zipfile
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
from PIL import Image
from PyPDF2 import PdfReader

from core.config import Settings

TEST_BASE_URL = "https://certs.example.edu"
TEST_JWT_SECRET = "test-secret-0123456789abcdef0123456789abcdef"

DEFAULT_COLUMNS = ["Full Name", "Program", "Certificate", "CGPA", "Image Url"]


def recipient(full_name: str, program: str = "Computer Science", certificate: str = "BSc",
              cgpa: str = "3.75", image_url: str = "") -> Dict[str, str]:
    """One spreadsheet row keyed by header name."""
    return {
        "Full Name": full_name,
        "Program": program,
        "Certificate": certificate,
        "CGPA": cgpa,
        "Image Url": image_url,
    }


def make_xlsx(rows: List[Dict[str, str]], columns: Optional[List[str]] = None) -> bytes:
    """
    Build an .xlsx workbook with one sheet.

    Args:
        rows: Header-keyed rows
        columns: Header order (defaults to the standard five columns)

    Returns:
        Workbook bytes
    """
    columns = columns or DEFAULT_COLUMNS
    df = pd.DataFrame(rows, columns=columns)
    buffer = BytesIO()
    df.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


def make_csv(rows: List[Dict[str, str]], columns: Optional[List[str]] = None) -> bytes:
    columns = columns or DEFAULT_COLUMNS
    return pd.DataFrame(rows, columns=columns).to_csv(index=False).encode("utf-8")


def make_png(width: int = 64, height: int = 64, color: str = "navy") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def pdf_text(pdf_bytes: bytes) -> str:
    """Extract the text of every page of a PDF."""
    reader = PdfReader(BytesIO(pdf_bytes))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def read_zip(data: bytes) -> Dict[str, bytes]:
    """Map archive member names to their contents."""
    with zipfile.ZipFile(BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


def build_settings(tmp_path, **overrides) -> Settings:
    """
    Settings rooted in ``tmp_path``: SQLite file database, local object
    directory, public store, rate limiting off.
    """
    values = dict(
        public_base_url=TEST_BASE_URL,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'certvault.db'}",
        storage_dir=tmp_path / "objects",
        storage_public=True,
        jwt_secret=TEST_JWT_SECRET,
        asset_fetch_timeout_s=1.0,
        rate_limit_enabled=False,
        log_format="text",
    )
    values.update(overrides)
    return Settings(**values)
