"""
Certificate asset fetching

Retrieves the optional logo and recipient photo placed on a certificate.
References are either ``http(s)://`` URLs or local filesystem paths. Every
failure (bad status, network error, timeout, unreadable file) yields
``None`` so rendering can degrade gracefully; nothing here raises.

Example usage:
    from core.assets import fetch_assets

    assets = await fetch_assets(context.logo_url, row.image_url, timeout=8.0)
    if assets.photo is None:
        print("no photo; the photo section will be skipped")
"""

import asyncio
import re
from pathlib import Path
from typing import Optional

import httpx

from core.logging import get_logger
from core.models import CertificateAssets

logger = get_logger(__name__)

_REMOTE_RE = re.compile(r"^https?://", re.IGNORECASE)


def is_remote_reference(reference: str) -> bool:
    """True when ``reference`` is an http(s) URL."""
    return bool(_REMOTE_RE.match(reference or ""))


async def _fetch_remote(url: str, client: httpx.AsyncClient) -> Optional[bytes]:
    response = await client.get(url, follow_redirects=True)
    if not response.is_success:
        logger.info(f"Asset fetch returned {response.status_code}", extra={"asset": url})
        return None
    return response.content


def _read_local(reference: str, local_root: Optional[Path]) -> Optional[bytes]:
    # Malformed paths (unknown ~user, NUL bytes) are unavailable, not errors
    try:
        path = Path(reference).expanduser()
        if local_root is not None:
            root = Path(local_root).resolve()
            resolved = path.resolve() if path.is_absolute() else (root / path).resolve()
            if resolved != root and root not in resolved.parents:
                logger.warning("Local asset outside allowed root", extra={"asset": reference})
                return None
            path = resolved
        return path.read_bytes()
    except (OSError, ValueError, RuntimeError) as e:
        logger.info(f"Local asset unreadable: {e}", extra={"asset": reference})
        return None


async def fetch_asset(
    reference: Optional[str],
    timeout: float = 8.0,
    client: Optional[httpx.AsyncClient] = None,
    local_root: Optional[Path] = None,
) -> Optional[bytes]:
    """
    Fetch one asset as raw bytes.

    Args:
        reference: http(s) URL or local path; empty means no asset
        timeout: Upper bound in seconds for the whole remote fetch
        client: Shared HTTP client (a short-lived one is created otherwise)
        local_root: If given, local paths must resolve inside it

    Returns:
        Asset bytes, or None when absent or unavailable

    Example:
        >>> await fetch_asset("")
        None
    """
    reference = (reference or "").strip()
    if not reference:
        return None

    if not is_remote_reference(reference):
        return _read_local(reference, local_root)

    try:
        if client is not None:
            return await asyncio.wait_for(_fetch_remote(reference, client), timeout)
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            return await asyncio.wait_for(_fetch_remote(reference, own_client), timeout)
    except asyncio.TimeoutError:
        logger.info(f"Asset fetch timed out after {timeout}s", extra={"asset": reference})
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info(f"Asset fetch failed: {e}", extra={"asset": reference})
        return None


async def fetch_assets(
    logo_reference: Optional[str],
    photo_reference: Optional[str],
    timeout: float = 8.0,
    client: Optional[httpx.AsyncClient] = None,
    local_root: Optional[Path] = None,
) -> CertificateAssets:
    """
    Fetch the logo and photo for one certificate concurrently.

    Each fetch is bounded independently by ``timeout``; a slow or broken
    source only removes that image from the document.
    """
    logo, photo = await asyncio.gather(
        fetch_asset(logo_reference, timeout, client, local_root),
        fetch_asset(photo_reference, timeout, client, local_root),
    )
    return CertificateAssets(logo=logo, photo=photo)
