"""
Certificate API routes

Issuance, listing, download and dashboard endpoints for staff (issuer
roles), plus the public verification page.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from slowapi import Limiter
from starlette.concurrency import run_in_threadpool

from api.routes.limits import verify_rate_limit
from auth.models import Actor
from auth.tokens import require_issuer
from core.config import Settings
from core.errors import (
    BatchFailedError,
    CertVaultError,
    StorageError,
    ValidationError,
    error_response,
    validation_error_response,
)
from core.logging import get_logger, log_with_context
from core.pack import ZIP_FILENAME, build_certificates_zip

logger = get_logger(__name__)

router = APIRouter(prefix="/certificates", tags=["certificates"])

DOWNLOAD_ALL_LIMIT = 1000


@router.post("/generate")
async def generate_certificates(
    request: Request,
    institution_name: str = Form(""),
    logo_url: str = Form(""),
    file: Optional[UploadFile] = File(None),
    actor: Actor = Depends(require_issuer),
):
    """
    Issue one certificate per spreadsheet row.

    Returns ``{count, items}``; validation problems are 400s and any row
    failure aborts the batch with a generic 500.
    """
    state = request.app.state

    if not institution_name.strip():
        return error_response("institution_name is required", 400)
    if file is None:
        return error_response("Excel file (file) is required", 400)

    content = await file.read()
    if len(content) > state.settings.max_upload_size_bytes:
        return error_response(
            f"File too large. Maximum size: {state.settings.max_upload_size_mb}MB", 413
        )

    try:
        batch = await state.ingestor.ingest(
            content,
            institution_name,
            logo_url=logo_url,
            actor_id=actor.id,
        )
    except ValidationError as e:
        logger.info(f"Rejected upload: {e.message}", extra={"upload_filename": file.filename})
        return validation_error_response(e)
    except BatchFailedError:
        return error_response("Generation failed", 500)
    except CertVaultError as e:
        logger.error(f"Generation failed: {e.message}", extra=e.details, exc_info=True)
        return error_response("Generation failed", 500)
    except Exception as e:
        logger.error(f"Generation failed: {e}", exc_info=True)
        return error_response("Generation failed", 500)

    log_with_context(logger, "info", "Batch issued", request=request, count=batch.count, user=actor.id)
    return batch.to_dict()


@router.get("")
async def list_certificates(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    q: str = "",
    actor: Actor = Depends(require_issuer),
):
    """List certificates, newest first, optionally filtered by name or code."""
    records, total = await request.app.state.repository.list_page(page, page_size, q.strip())
    return {
        "page": page,
        "pageSize": page_size,
        "count": total,
        "items": [record.to_public_dict() for record in records],
    }


@router.get("/home")
async def home_summary(request: Request, actor: Actor = Depends(require_issuer)):
    """Totals and latest certificates for the caller's institution."""
    return await request.app.state.repository.summary(actor.institution or "")


@router.get("/download-all")
async def download_all(request: Request, actor: Actor = Depends(require_issuer)):
    """ZIP of the most recently issued certificates."""
    state = request.app.state
    records = await state.repository.recent(limit=DOWNLOAD_ALL_LIMIT)
    content = await run_in_threadpool(build_certificates_zip, records, state.store)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ZIP_FILENAME}"'},
    )


@router.get("/download/{certificate_id}")
async def download_certificate(
    certificate_id: str,
    request: Request,
    actor: Actor = Depends(require_issuer),
):
    """Redirect to the certificate PDF (public URL or a 60s signed URL)."""
    state = request.app.state
    record = await state.repository.get(certificate_id.strip())
    if record is None:
        return error_response("Not found", 404)

    if record.pdf_url:
        return RedirectResponse(record.pdf_url, status_code=302)

    try:
        url = state.store.create_signed_url(record.pdf_path, expires_in=state.settings.signed_url_ttl_s)
    except StorageError as e:
        logger.error(f"Signing failed: {e.message}", extra={"certificate_id": record.certificate_id})
        return error_response("Signing failed", 500)

    return RedirectResponse(url, status_code=302)


async def verify_certificate(certificate_id: str, request: Request):
    """
    Public verification page for a certificate code.

    Unknown codes get a 404 page; unexpected faults a bare 500 page.
    """
    try:
        page = await request.app.state.responder.verify(certificate_id)
    except Exception:
        logger.exception("Verification failed", extra={"certificate_id": certificate_id})
        return HTMLResponse("<h1>Server error</h1>", status_code=500)

    return HTMLResponse(page.html, status_code=page.status_code)


def verify_router(limiter: Limiter, settings: Settings) -> APIRouter:
    """
    Router for the public verification page, rate limited by ``limiter``.

    Built per app so each app's limit comes from its own settings.
    """
    public = APIRouter(prefix="/certificates", tags=["verification"])
    public.add_api_route(
        "/verify/{certificate_id}",
        limiter.limit(verify_rate_limit(settings))(verify_certificate),
        methods=["GET"],
        response_class=HTMLResponse,
    )
    return public
