"""
Authentication module for CertVault.

Bearer-token verification and role guarding for the issuance routes.
Tokens are minted by operators with ``certvault token``.
"""

from .models import Actor, ActorRole
from .tokens import (
    AuthError,
    allow_roles,
    create_access_token,
    decode_access_token,
    require_actor,
    require_issuer,
)

__all__ = [
    "Actor",
    "ActorRole",
    "AuthError",
    "allow_roles",
    "create_access_token",
    "decode_access_token",
    "require_actor",
    "require_issuer",
]
