"""
CertVault Object Storage

Durable binary storage for rendered certificate PDFs, keyed by path.
Supports upload, download, public URL retrieval and short-lived signed
URLs for private stores.

Example usage:
    from core.storage import LocalObjectStore

    store = LocalObjectStore(Path("storage/objects"), public=False,
                             base_url="https://certs.example.edu",
                             signing_secret="...")
    store.upload("certificates/abc/Ada.pdf", pdf_bytes)
    url = store.create_signed_url("certificates/abc/Ada.pdf", expires_in=60)
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import quote

import jwt

from core.config import Settings
from core.errors import ObjectNotFoundError, StorageError
from core.logging import get_logger

logger = get_logger(__name__)

SIGNED_URL_ALGORITHM = "HS256"
SIGNED_URL_PURPOSE = "object-download"


class ObjectStore:
    """
    Interface for the artifact store.

    Implementations must be safe to share between concurrent requests.
    """

    public: bool = False

    def upload(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        raise NotImplementedError

    def download(self, key: str) -> bytes:
        raise NotImplementedError

    def public_url(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def create_signed_url(self, key: str, expires_in: int = 60) -> str:
        raise NotImplementedError


def validate_key(key: str) -> str:
    """
    Validate an object key and return it in normalized form.

    Keys are relative POSIX paths without ``..`` or empty segments.

    Raises:
        StorageError: If the key could escape the store root
    """
    if not key or "\x00" in key or "\\" in key:
        raise StorageError(f"Invalid object key: {key!r}", "INVALID_KEY")

    path = PurePosixPath(key)
    if path.is_absolute() or any(part in ("", ".", "..") for part in key.split("/")):
        raise StorageError(f"Invalid object key: {key!r}", "INVALID_KEY")

    return str(path)


class LocalObjectStore(ObjectStore):
    """
    Filesystem-backed object store.

    Public stores expose ``<base_url>/storage/public/<key>``; private stores
    only hand out signed URLs ``<base_url>/storage/signed/<token>`` whose
    token is an HS256 JWT naming the key and its expiry.
    """

    def __init__(self, root: Path, public: bool, base_url: str, signing_secret: str):
        self.root = Path(root)
        self.public = public
        self.base_url = base_url.rstrip("/")
        self.signing_secret = signing_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalObjectStore":
        return cls(
            root=settings.storage_dir,
            public=settings.storage_public,
            base_url=settings.public_base_url,
            signing_secret=settings.jwt_secret,
        )

    def _path_for(self, key: str) -> Path:
        key = validate_key(key)
        root = self.root.resolve()
        path = (root / key).resolve()
        # Security check: ensure file is within storage directory
        if root not in path.parents:
            raise StorageError(f"Object key escapes storage root: {key!r}", "INVALID_KEY")
        return path

    def upload(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        """
        Write (or overwrite) an object atomically.

        Args:
            key: Object key
            data: Object content
            content_type: Stored for parity with remote stores; unused locally

        Returns:
            The normalized key

        Raises:
            StorageError: If the object cannot be written
        """
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix=".part")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Upload failed for {key}: {e}", "UPLOAD_FAILED", {"key": key}) from e

        logger.debug(f"Stored object {key} ({len(data)} bytes)")
        return validate_key(key)

    def download(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}", "OBJECT_NOT_FOUND", {"key": key})
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Download failed for {key}: {e}", "DOWNLOAD_FAILED", {"key": key}) from e

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def public_url(self, key: str) -> Optional[str]:
        """Direct URL for a public store; None when the store is private."""
        if not self.public:
            return None
        return f"{self.base_url}/storage/public/{quote(validate_key(key))}"

    def create_signed_url(self, key: str, expires_in: int = 60) -> str:
        """
        Create a time-limited URL granting read access to one object.

        Args:
            key: Object key
            expires_in: Validity window in seconds

        Returns:
            Absolute signed URL

        Raises:
            StorageError: If the object is missing or the token cannot be signed
        """
        if not self.exists(key):
            raise ObjectNotFoundError(f"Object not found: {key}", "OBJECT_NOT_FOUND", {"key": key})

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        payload = {
            "key": validate_key(key),
            "purpose": SIGNED_URL_PURPOSE,
            "exp": int(expires_at.timestamp()),
        }
        try:
            token = jwt.encode(payload, self.signing_secret, algorithm=SIGNED_URL_ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise StorageError(f"Signing failed for {key}: {e}", "SIGNING_FAILED", {"key": key}) from e

        return f"{self.base_url}/storage/signed/{token}"

    def resolve_signed_token(self, token: str) -> str:
        """
        Return the object key named by a signed URL token.

        Raises:
            StorageError: If the token is expired, tampered with or malformed
        """
        try:
            payload = jwt.decode(token, self.signing_secret, algorithms=[SIGNED_URL_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise StorageError("Signed URL has expired", "SIGNED_URL_EXPIRED") from e
        except jwt.PyJWTError as e:
            raise StorageError("Invalid signed URL", "SIGNED_URL_INVALID") from e

        if payload.get("purpose") != SIGNED_URL_PURPOSE or not payload.get("key"):
            raise StorageError("Invalid signed URL", "SIGNED_URL_INVALID")

        return validate_key(payload["key"])
