"""
Certificate issuance for a single spreadsheet row

Turns one recipient row plus the batch context into a stored PDF and a
persisted metadata record:

    new id -> verify URL -> fields -> assets + render -> upload -> record

Example usage:
    from core.issue import RowProcessor

    processor = RowProcessor(settings, store, repository)
    record = await processor.process(row, context)
    print(record.verify_url)
"""

import re
import uuid
from typing import Optional

import httpx

from core.assets import fetch_assets
from core.config import Settings
from core.errors import MetadataError
from core.logging import get_logger
from core.models import CertificateFields, CertificateRow, IssuanceContext
from core.models_sql import CertificateRecord, CertificateStatus
from core.records import CertificateRepository
from core.render_certificate import render_certificate
from core.storage import ObjectStore

logger = get_logger(__name__)

# Characters not allowed in object names, plus ASCII control characters
_UNSAFE_NAME_RE = re.compile(r'[/\\:*?"<>|\x00-\x1f\x7f]')
DEFAULT_OBJECT_NAME = "recipient"


def build_verify_url(public_base_url: str, certificate_id: str) -> str:
    """
    Public verification URL for a certificate.

    Example:
        >>> build_verify_url("https://certs.example.edu/", "abc")
        'https://certs.example.edu/certificates/verify/abc'
    """
    return f"{public_base_url.rstrip('/')}/certificates/verify/{certificate_id}"


def safe_object_name(full_name: str) -> str:
    """
    Recipient name made safe for use as a file/object name.

    Path separators, reserved characters and control characters become
    ``-``; an empty name falls back to ``recipient``.

    Example:
        >>> safe_object_name('A/B: "C"')
        'A-B- -C-'
    """
    cleaned = _UNSAFE_NAME_RE.sub("-", (full_name or "").strip())
    return cleaned or DEFAULT_OBJECT_NAME


def certificate_object_key(certificate_id: str, full_name: str) -> str:
    return f"certificates/{certificate_id}/{safe_object_name(full_name)}.pdf"


class RowProcessor:
    """Issues one certificate per call; holds no per-row state."""

    def __init__(self, settings: Settings, store: ObjectStore,
                 records: CertificateRepository,
                 client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.store = store
        self.records = records
        self.client = client

    def build_fields(self, row: CertificateRow, context: IssuanceContext,
                     certificate_id: str) -> CertificateFields:
        return CertificateFields(
            institution_name=context.institution_name,
            full_name=row.full_name,
            program=row.program,
            certificate=row.certificate,
            cgpa=row.cgpa,
            certificate_id=certificate_id,
            verify_url=build_verify_url(self.settings.public_base_url, certificate_id),
            issue_date=context.issue_date.isoformat(),
            logo_url=context.logo_url,
            image_url=row.image_url,
        )

    async def process(self, row: CertificateRow, context: IssuanceContext) -> CertificateRecord:
        """
        Issue a certificate for one row.

        Args:
            row: Recipient data from the spreadsheet
            context: Batch-wide institution, logo, issue date and actor

        Returns:
            The persisted CertificateRecord

        Raises:
            RenderError: If the PDF cannot be produced (nothing is stored)
            StorageError: If the upload fails (no record is written)
            MetadataError: If the record cannot be written; the uploaded
                PDF is left in the store and logged as orphaned
        """
        certificate_id = str(uuid.uuid4())
        fields = self.build_fields(row, context, certificate_id)

        assets = await fetch_assets(
            fields.logo_url,
            fields.image_url,
            timeout=self.settings.asset_fetch_timeout_s,
            client=self.client,
            local_root=self.settings.local_asset_root,
        )
        pdf_bytes = render_certificate(fields, assets)

        object_key = certificate_object_key(certificate_id, fields.full_name)
        pdf_path = self.store.upload(object_key, pdf_bytes, content_type="application/pdf")

        record = CertificateRecord(
            certificate_id=certificate_id,
            institution_name=fields.institution_name,
            full_name=fields.full_name,
            program=fields.program,
            certificate=fields.certificate,
            cgpa=fields.cgpa,
            image_url=fields.image_url or None,
            logo_url=fields.logo_url or None,
            pdf_path=pdf_path,
            pdf_url=self.store.public_url(pdf_path) if self.store.public else None,
            verify_url=fields.verify_url,
            status=CertificateStatus.VALID,
            created_by=context.created_by,
        )

        try:
            record = await self.records.insert(record)
        except MetadataError:
            logger.error(
                "Orphaned certificate artifact: metadata write failed after upload",
                extra={"certificate_id": certificate_id, "pdf_path": pdf_path},
                exc_info=True,
            )
            raise

        logger.info(
            "Certificate issued",
            extra={"certificate_id": certificate_id, "pdf_path": pdf_path},
        )
        return record
