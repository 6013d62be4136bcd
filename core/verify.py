"""
CertVault Public Verification

Resolves a certificate code (the id printed on the certificate and encoded
in its QR code) to an HTML verification page. Unknown codes produce a
404 not-found page that echoes the escaped code.

Pages are rendered with Jinja2 and HTML autoescaping, so every record value
and the requested code are escaped. The storage key of the PDF is never
shown; the page links to the public URL or to a short-lived signed URL.

Example usage:
    from core.verify import VerificationResponder

    responder = VerificationResponder(repository, store, settings)
    page = await responder.verify("6f1c...")
    print(page.status_code, page.found)
"""

from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel

from core.assets import is_remote_reference
from core.config import Settings
from core.errors import StorageError
from core.logging import get_logger
from core.models_sql import CertificateRecord, CertificateStatus
from core.records import CertificateRepository
from core.storage import ObjectStore

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "web" / "templates"

# Longer codes cannot match a stored certificate id
MAX_CODE_LENGTH = 64


def long_date(value: Optional[Any]) -> str:
    """
    Format a date as ``Month D, YYYY``.

    Month names are English only. ``%B`` follows the C locale, which
    Python keeps unless something calls ``locale.setlocale``; CertVault
    never does. There is no per-request locale selection.

    Example:
        >>> long_date(date(2024, 3, 5))
        'March 5, 2024'
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return f"{value.strftime('%B')} {value.day}, {value.year}"
    return str(value)


def create_template_env(directory: Path = TEMPLATES_DIR) -> Environment:
    """Jinja2 environment for verification pages (HTML autoescaping on)."""
    env = Environment(
        loader=FileSystemLoader(str(directory)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["long_date"] = long_date
    return env


class VerificationPage(BaseModel):
    """Rendered verification response."""

    status_code: int
    html: str
    found: bool


class VerificationResponder:
    """Read-only path from a certificate code to its public page."""

    def __init__(self, records: CertificateRepository, store: ObjectStore,
                 settings: Settings, env: Optional[Environment] = None):
        self.records = records
        self.store = store
        self.settings = settings
        self.env = env or create_template_env()

    def download_url(self, record: CertificateRecord) -> Optional[str]:
        """
        Link offered on the verification page.

        The public URL when one was recorded, otherwise a signed URL valid for
        ``signed_url_ttl_s`` seconds. A signing failure yields None, and the
        page then shows the PDF as unavailable.
        """
        if record.pdf_url:
            return record.pdf_url
        if not record.pdf_path:
            return None
        try:
            return self.store.create_signed_url(record.pdf_path, expires_in=self.settings.signed_url_ttl_s)
        except StorageError as e:
            logger.warning(
                f"Could not sign download URL: {e.message}",
                extra={"certificate_id": record.certificate_id},
            )
            return None

    def page_context(self, record: CertificateRecord) -> Dict[str, Any]:
        status = record.status if isinstance(record.status, CertificateStatus) else CertificateStatus(record.status)
        return {
            "institution_name": record.institution_name,
            "logo_url": record.logo_url if is_remote_reference(record.logo_url or "") else None,
            "full_name": record.full_name,
            "program": record.program,
            "certificate": record.certificate,
            "cgpa": record.cgpa,
            "issued_on": record.created_at,
            "certificate_id": record.certificate_id,
            "is_valid": status == CertificateStatus.VALID,
            "status_label": "Valid" if status == CertificateStatus.VALID else "Revoked",
            "download_url": self.download_url(record),
        }

    def not_found(self, code: str) -> VerificationPage:
        html = self.env.get_template("verify_not_found.html").render(code=code)
        return VerificationPage(status_code=404, html=html, found=False)

    async def verify(self, code: str) -> VerificationPage:
        """
        Build the verification page for a certificate code.

        Args:
            code: Certificate code as received (surrounding whitespace ignored)

        Returns:
            VerificationPage with status 200 for a known code, 404 otherwise

        Raises:
            Exception: Store faults other than URL signing propagate to the
                caller, which reports a generic server error
        """
        code = (code or "").strip()
        if not code or len(code) > MAX_CODE_LENGTH:
            return self.not_found(code)

        record = await self.records.get(code)
        if record is None:
            logger.info("Verification for unknown code", extra={"certificate_id": code})
            return self.not_found(code)

        html = self.env.get_template("verify.html").render(**self.page_context(record))
        return VerificationPage(status_code=200, html=html, found=True)
