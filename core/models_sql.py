"""
SQLModel database models for CertVault

Defines the persisted certificate metadata record.
Uses SQLModel for type-safe ORM with async PostgreSQL (or SQLite) support.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import Field, SQLModel


class CertificateStatus(str, Enum):
    VALID = "valid"
    REVOKED = "revoked"


class CertificateRecord(SQLModel, table=True):
    __tablename__ = "certificates"

    certificate_id: str = Field(primary_key=True, max_length=36)
    institution_name: str = Field(default="", index=True)
    full_name: str = Field(default="", index=True)
    program: str = ""
    certificate: str = ""
    cgpa: str = ""
    image_url: Optional[str] = None
    logo_url: Optional[str] = None
    pdf_path: str
    pdf_url: Optional[str] = None  # None when the object store is private
    verify_url: str
    status: CertificateStatus = Field(default=CertificateStatus.VALID, index=True)
    created_by: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    @property
    def is_valid(self) -> bool:
        return self.status == CertificateStatus.VALID

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        status = self.status.value if isinstance(self.status, CertificateStatus) else self.status
        return {
            "certificate_id": self.certificate_id,
            "institution_name": self.institution_name,
            "full_name": self.full_name,
            "program": self.program,
            "certificate": self.certificate,
            "cgpa": self.cgpa,
            "image_url": self.image_url,
            "logo_url": self.logo_url,
            "pdf_path": self.pdf_path,
            "pdf_url": self.pdf_url,
            "verify_url": self.verify_url,
            "status": status,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
