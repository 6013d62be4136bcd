"""
Object download routes

Serves stored certificate PDFs through the two URL forms the object store
hands out: direct public URLs and short-lived signed URLs.
"""

from pathlib import PurePosixPath
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import Response

from core.errors import ObjectNotFoundError, StorageError, error_response
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/storage", tags=["storage"])


def _object_response(key: str, data: bytes) -> Response:
    filename = PurePosixPath(key).name
    media_type = "application/pdf" if filename.lower().endswith(".pdf") else "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(filename)}",
            "Cache-Control": "private, max-age=60",
        },
    )


@router.get("/public/{key:path}")
async def public_object(key: str, request: Request):
    """Object from a public store; private stores answer 404."""
    store = request.app.state.store
    if not store.public:
        return error_response("Not found", 404)

    try:
        data = store.download(key)
    except ObjectNotFoundError:
        return error_response("Not found", 404)
    except StorageError as e:
        if e.error_code == "INVALID_KEY":
            return error_response("Not found", 404)
        raise

    return _object_response(key, data)


@router.get("/signed/{token}")
async def signed_object(token: str, request: Request):
    """Object named by a signed URL token; invalid or expired tokens get 403."""
    store = request.app.state.store
    try:
        key = store.resolve_signed_token(token)
    except StorageError as e:
        logger.info(f"Rejected signed URL: {e.message}")
        return error_response("Invalid or expired link", 403)

    try:
        data = store.download(key)
    except ObjectNotFoundError:
        return error_response("Not found", 404)

    return _object_response(key, data)
