"""
Access tokens and role guards

HS256 JWTs carry the actor id (``sub``), role and institution. Route
dependencies decode the bearer token from the ``Authorization`` header and
check the actor's role.

Example usage:
    from fastapi import Depends
    from auth.tokens import require_issuer

    @router.get("/certificates")
    async def list_certificates(actor: Actor = Depends(require_issuer)):
        ...
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Request

from auth.models import Actor
from core.config import Settings
from core.errors import CertVaultError
from core.logging import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


class AuthError(CertVaultError):
    """Authentication or authorization failure, reported as ``{"error": message}``."""

    def __init__(self, message: str, status_code: int = 401):
        self.status_code = status_code
        super().__init__(message, "AUTH_FAILED" if status_code == 401 else "FORBIDDEN")


def create_access_token(settings: Settings, subject: str, role: str,
                        institution: Optional[str] = None,
                        expires_in: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        settings: Provides the signing secret and default lifetime
        subject: Actor id stored as ``sub``
        role: Actor role, e.g. ``registrar``
        institution: Institution the actor belongs to
        expires_in: Token lifetime (defaults to ``jwt_expiry_hours``)

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(hours=settings.jwt_expiry_hours)
    payload: Dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + lifetime,
    }
    if institution:
        payload["institution_name"] = institution
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> Actor:
    """
    Verify a token and return its actor.

    Raises:
        AuthError: If the token is expired, tampered with or lacks a subject
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise AuthError("Invalid token")
    except jwt.InvalidTokenError:
        logger.warning("Invalid JWT token")
        raise AuthError("Invalid token")

    if not payload.get("sub"):
        raise AuthError("Invalid token")

    return Actor(
        id=str(payload["sub"]),
        role=str(payload.get("role") or ""),
        institution=payload.get("institution_name"),
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def require_actor(request: Request) -> Actor:
    """Require a valid bearer token; raises 401 otherwise."""
    token = _bearer_token(request)
    if not token:
        raise AuthError("Missing token")

    actor = decode_access_token(request.app.state.settings, token)
    request.state.actor = actor
    return actor


def allow_roles(*roles: str) -> Callable[[Request], Actor]:
    """
    Dependency factory requiring one of ``roles``.

    With no roles given, the configured issuer roles apply.
    """
    def dependency(request: Request) -> Actor:
        actor = require_actor(request)
        allowed = roles or tuple(request.app.state.settings.issuer_roles)
        if not actor.role:
            raise AuthError("Forbidden", status_code=403)
        if actor.role not in allowed:
            raise AuthError("Insufficient role", status_code=403)
        return actor
    return dependency


require_issuer = allow_roles()
