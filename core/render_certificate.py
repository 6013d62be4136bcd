"""
CertVault Certificate Renderer

Draws the single fixed certificate layout on an A4 landscape page:
optional logo, institution heading, title, optional circular photo,
recipient details, issue date and code, verification QR code and two
signature lines.

All text goes through canvas string primitives, so recipient data is never
interpreted as markup.

Example usage:
    from core.models import CertificateAssets, CertificateFields
    from core.render_certificate import render_certificate

    pdf_bytes = render_certificate(fields, CertificateAssets())
"""

from io import BytesIO
from typing import Optional

import qrcode
from PIL import Image as PILImage
from PIL import ImageOps
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from core.errors import RenderError
from core.logging import get_logger
from core.models import CertificateAssets, CertificateFields

logger = get_logger(__name__)

# A4 landscape dimensions and layout constants (points)
PAGE_WIDTH, PAGE_HEIGHT = landscape(A4)
MARGIN = 50
TEXT_WIDTH = PAGE_WIDTH - 2 * MARGIN

LOGO_WIDTH = 110
LOGO_TOP = 28
LOGO_MAX_HEIGHT = 90

PHOTO_SIZE = 140
PHOTO_X = 70

QR_SIZE = 120
QR_OFFSET = 60

SIGNATURE_Y = 110

TITLE = "Certificate of Completion"
INSTITUTION_PLACEHOLDER = "Institution"
RECIPIENT_PLACEHOLDER = "Recipient Name"

COLOR_TEXT = colors.black
COLOR_RULE = colors.HexColor("#333333")
COLOR_PHOTO_RING = colors.HexColor("#999999")
COLOR_CAPTION = colors.HexColor("#666666")


def _fit_font_size(c: canvas.Canvas, text: str, font: str, size: float,
                   min_size: float, max_width: float = TEXT_WIDTH) -> float:
    """Largest size between ``min_size`` and ``size`` at which ``text`` fits."""
    while size > min_size and c.stringWidth(text, font, size) > max_width:
        size -= 1
    return size


def _draw_centred(c: canvas.Canvas, text: str, font: str, size: float, y: float,
                  min_size: Optional[float] = None) -> float:
    if min_size is not None:
        size = _fit_font_size(c, text, font, size, min_size)
    c.setFont(font, size)
    c.drawCentredString(PAGE_WIDTH / 2, y, text)
    return size


def _decode_image(data: Optional[bytes]) -> Optional[PILImage.Image]:
    """
    Decode image bytes with Pillow.

    Undecodable data is treated the same as a missing image.
    """
    if not data:
        return None
    try:
        img = PILImage.open(BytesIO(data))
        img.load()
    except (OSError, ValueError, PILImage.DecompressionBombError) as e:
        logger.info(f"Skipping undecodable image: {e}")
        return None
    if img.mode not in ("RGB", "RGBA", "L"):
        img = img.convert("RGBA")
    return img


def create_qr_code(data: str) -> ImageReader:
    """
    Create QR code image for verification.

    Args:
        data: Verification URL, encoded literally

    Returns:
        ReportLab ImageReader with the PNG-encoded code
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    qr_img = qr.make_image(fill_color="black", back_color="white")
    img_buffer = BytesIO()
    qr_img.save(img_buffer, format="PNG")
    img_buffer.seek(0)

    return ImageReader(img_buffer)


def draw_logo(c: canvas.Canvas, logo: PILImage.Image) -> float:
    """Draw the logo centred at the top; returns the distance from the top it occupies."""
    img_w, img_h = logo.size
    height = LOGO_WIDTH * img_h / img_w if img_w else LOGO_WIDTH
    width = LOGO_WIDTH
    if height > LOGO_MAX_HEIGHT:
        width = width * LOGO_MAX_HEIGHT / height
        height = LOGO_MAX_HEIGHT

    x = (PAGE_WIDTH - width) / 2
    y = PAGE_HEIGHT - LOGO_TOP - height
    c.drawImage(ImageReader(logo), x, y, width=width, height=height, mask="auto")
    return LOGO_TOP + height


def draw_photo(c: canvas.Canvas, photo: PILImage.Image, top: float) -> None:
    """Draw the recipient photo clipped to a circle with a grey ring."""
    square = ImageOps.fit(photo, (min(photo.size),) * 2)
    y = PAGE_HEIGHT - top - PHOTO_SIZE
    radius = PHOTO_SIZE / 2
    cx, cy = PHOTO_X + radius, y + radius

    c.saveState()
    clip = c.beginPath()
    clip.circle(cx, cy, radius)
    c.clipPath(clip, stroke=0, fill=0)
    c.drawImage(ImageReader(square), PHOTO_X, y, width=PHOTO_SIZE, height=PHOTO_SIZE, mask="auto")
    c.restoreState()

    c.setStrokeColor(COLOR_PHOTO_RING)
    c.setLineWidth(2)
    c.circle(cx, cy, radius, stroke=1, fill=0)


def draw_qr_block(c: canvas.Canvas, verify_url: str) -> None:
    """QR code bottom-right with its caption above it."""
    x = PAGE_WIDTH - QR_SIZE - QR_OFFSET
    y = QR_OFFSET
    c.drawImage(create_qr_code(verify_url), x, y, width=QR_SIZE, height=QR_SIZE)

    c.setFillColor(COLOR_CAPTION)
    c.setFont("Helvetica", 10)
    c.drawCentredString(x + QR_SIZE / 2, y + QR_SIZE + 6, "Scan to verify")
    c.setFillColor(COLOR_TEXT)


def draw_signatures(c: canvas.Canvas) -> None:
    """Signature lines labelled Dean and Registrar."""
    c.setFont("Helvetica", 12)
    line = "_" * 21
    baseline = SIGNATURE_Y - 12

    c.drawString(120, baseline, line)
    c.drawString(170, baseline - 18, "Dean")

    c.drawString(PAGE_WIDTH / 2, baseline, line)
    c.drawString(PAGE_WIDTH / 2 + 45, baseline - 18, "Registrar")


def render_certificate(fields: CertificateFields, assets: CertificateAssets) -> bytes:
    """
    Render one certificate as PDF bytes.

    Args:
        fields: Text payload for the certificate
        assets: Optional logo and photo bytes; missing or undecodable
            images are skipped together with their layout space

    Returns:
        PDF content as bytes

    Raises:
        RenderError: If the document cannot be composed or encoded
    """
    try:
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
        c.setTitle(f"Certificate {fields.certificate_id}")
        c.setAuthor(fields.institution_name or INSTITUTION_PLACEHOLDER)
        c.setSubject(fields.verify_url)
        c.setCreator("CertVault")
        c.setFillColor(COLOR_TEXT)

        # Distance from the top edge of the next element
        top = MARGIN

        logo = _decode_image(assets.logo)
        if logo is not None:
            top = draw_logo(c, logo) + 20

        heading_size = _draw_centred(
            c, fields.institution_name or INSTITUTION_PLACEHOLDER,
            "Helvetica-Bold", 32, PAGE_HEIGHT - top - 32, min_size=16,
        )
        top += heading_size + 8

        line_top = top + 8
        c.setStrokeColor(COLOR_RULE)
        c.setLineWidth(1)
        c.line(100, PAGE_HEIGHT - line_top, PAGE_WIDTH - 100, PAGE_HEIGHT - line_top)

        top = line_top + 24
        _draw_centred(c, TITLE, "Helvetica-Bold", 24, PAGE_HEIGHT - top - 24)
        top += 24

        photo = _decode_image(assets.photo)
        if photo is not None:
            draw_photo(c, photo, line_top + 50)

        top += 44
        _draw_centred(
            c, fields.full_name or RECIPIENT_PLACEHOLDER,
            "Helvetica-Bold", 28, PAGE_HEIGHT - top - 28, min_size=14,
        )
        top += 28 + 12

        detail_lines = []
        if fields.program:
            detail_lines.append(f"has successfully completed the program: {fields.program}")
        if fields.certificate:
            detail_lines.append(f"Awarded: {fields.certificate}")
        if fields.cgpa:
            detail_lines.append(f"CGPA: {fields.cgpa}")

        for text in detail_lines:
            _draw_centred(c, text, "Helvetica", 18, PAGE_HEIGHT - top - 18, min_size=10)
            top += 18 + 8

        top += 16
        _draw_centred(c, f"Issued on: {fields.issue_date}", "Helvetica-Oblique", 14, PAGE_HEIGHT - top - 14)
        top += 14 + 4
        _draw_centred(c, f"Certificate ID: {fields.certificate_id}", "Helvetica-Oblique", 14,
                      PAGE_HEIGHT - top - 14, min_size=9)

        draw_qr_block(c, fields.verify_url)
        draw_signatures(c)

        c.showPage()
        c.save()
        return buffer.getvalue()
    except Exception as e:
        raise RenderError(
            f"Failed to render certificate {fields.certificate_id}: {e}",
            "RENDER_FAILED",
            {"certificate_id": fields.certificate_id},
        ) from e
