"""
Authentication models for CertVault.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActorRole(str, Enum):
    """Roles carried in access tokens."""
    ADMIN = "admin"
    REGISTRAR = "registrar"
    USER = "user"


class Actor(BaseModel):
    """Authenticated caller, decoded from a bearer token."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    role: str
    institution: Optional[str] = None

