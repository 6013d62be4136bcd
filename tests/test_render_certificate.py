"""
Certificate renderer tests

PDF output is inspected with PyPDF2 text extraction.
"""

from io import BytesIO
from unittest.mock import patch

import pytest
from PyPDF2 import PdfReader

from core.errors import RenderError
from core.models import CertificateAssets, CertificateFields
from core.render_certificate import render_certificate
from helpers import make_png, pdf_text


@pytest.fixture
def fields() -> CertificateFields:
    return CertificateFields(
        institution_name="Example University",
        full_name="Ada Lovelace",
        program="Mathematics",
        certificate="BSc",
        cgpa="3.9",
        certificate_id="6f1c0c2e-1111-4222-8333-444455556666",
        verify_url="https://certs.example.edu/certificates/verify/6f1c0c2e-1111-4222-8333-444455556666",
        issue_date="2024-05-01",
    )


class TestLayout:
    """Text blocks present on the page."""

    def test_pdf_structure(self, fields):
        pdf = render_certificate(fields, CertificateAssets())

        assert pdf.startswith(b"%PDF")
        reader = PdfReader(BytesIO(pdf))
        assert len(reader.pages) == 1
        box = reader.pages[0].mediabox
        assert float(box.width) > float(box.height)

    def test_all_text_blocks(self, fields):
        text = pdf_text(render_certificate(fields, CertificateAssets()))

        for expected in [
            "Example University",
            "Certificate of Completion",
            "Ada Lovelace",
            "has successfully completed the program: Mathematics",
            "Awarded: BSc",
            "CGPA: 3.9",
            "Issued on: 2024-05-01",
            "Certificate ID: 6f1c0c2e-1111-4222-8333-444455556666",
            "Scan to verify",
            "Dean",
            "Registrar",
        ]:
            assert expected in text

    def test_placeholders_and_skipped_lines(self, fields):
        empty = fields.model_copy(update={
            "institution_name": "", "full_name": "", "program": "", "certificate": "", "cgpa": "",
        })
        text = pdf_text(render_certificate(empty, CertificateAssets()))

        assert "Institution" in text
        assert "Recipient Name" in text
        assert "has successfully completed" not in text
        assert "Awarded:" not in text
        assert "CGPA:" not in text
        assert "Issued on: 2024-05-01" in text

    def test_markup_is_drawn_literally(self, fields):
        tricky = fields.model_copy(update={"full_name": "<b>Bobby</b> & Co"})
        text = pdf_text(render_certificate(tricky, CertificateAssets()))

        assert "<b>Bobby</b> & Co" in text

    def test_long_name_still_rendered(self, fields):
        long_name = "Maximilian Alexander Bartholomew Fitzgerald-Montgomery of Upper Wotton"
        text = pdf_text(render_certificate(fields.model_copy(update={"full_name": long_name}),
                                           CertificateAssets()))

        assert "Fitzgerald-Montgomery" in text


class TestImages:
    """Logo and photo handling."""

    def test_with_logo_and_photo(self, fields):
        assets = CertificateAssets(logo=make_png(200, 80), photo=make_png(120, 160, "gray"))
        pdf = render_certificate(fields, assets)

        assert "Ada Lovelace" in pdf_text(pdf)
        assert len(pdf) > len(render_certificate(fields, CertificateAssets()))

    def test_undecodable_images_are_skipped(self, fields):
        assets = CertificateAssets(logo=b"not an image", photo=b"\x89PNG broken")
        pdf = render_certificate(fields, assets)

        assert "Certificate of Completion" in pdf_text(pdf)


class TestFailures:
    """Composition failures surface as RenderError."""

    def test_qr_failure_raises_render_error(self, fields):
        with patch("core.render_certificate.create_qr_code", side_effect=ValueError("boom")):
            with pytest.raises(RenderError) as exc_info:
                render_certificate(fields, CertificateAssets())

        assert exc_info.value.details["certificate_id"] == fields.certificate_id
