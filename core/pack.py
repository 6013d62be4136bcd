"""
CertVault Certificate Bundle Packer

Bundles stored certificate PDFs into a single ZIP archive for bulk
download. Each PDF is named after its recipient; duplicate names get a
numeric suffix and objects missing from the store are skipped.

Example usage:
    from core.pack import build_certificates_zip

    records = await repository.recent(limit=1000)
    zip_bytes = build_certificates_zip(records, store)
"""

import zipfile
from io import BytesIO
from typing import Iterable, Set

from core.errors import ObjectNotFoundError
from core.issue import safe_object_name
from core.logging import get_logger
from core.models_sql import CertificateRecord
from core.storage import ObjectStore

logger = get_logger(__name__)

ZIP_FILENAME = "certificates.zip"


def unique_archive_name(full_name: str, used: Set[str]) -> str:
    """
    Archive member name for a recipient, unique within ``used``.

    Example:
        >>> used = set()
        >>> unique_archive_name("Ada", used), unique_archive_name("Ada", used)
        ('Ada.pdf', 'Ada (2).pdf')
    """
    base = safe_object_name(full_name)
    name = f"{base}.pdf"
    counter = 2
    while name.lower() in used:
        name = f"{base} ({counter}).pdf"
        counter += 1
    used.add(name.lower())
    return name


def build_certificates_zip(records: Iterable[CertificateRecord], store: ObjectStore) -> bytes:
    """
    Create a ZIP archive of certificate PDFs.

    Args:
        records: Certificates to include, in archive order
        store: Object store holding the PDFs

    Returns:
        ZIP archive content as bytes

    Raises:
        StorageError: If an existing object cannot be read
    """
    buffer = BytesIO()
    used: Set[str] = set()
    included = 0
    skipped = 0

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for record in records:
            try:
                data = store.download(record.pdf_path)
            except ObjectNotFoundError:
                skipped += 1
                logger.warning(
                    "Skipping certificate with missing PDF",
                    extra={"certificate_id": record.certificate_id, "pdf_path": record.pdf_path},
                )
                continue

            zf.writestr(unique_archive_name(record.full_name, used), data)
            included += 1

    logger.info(f"Built certificate bundle: {included} included, {skipped} skipped")
    return buffer.getvalue()
