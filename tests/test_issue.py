"""
Row processor tests

One row in, one stored PDF and one metadata record out.
"""

import logging
from unittest.mock import patch

import pytest

from core.errors import MetadataError, RenderError
from core.issue import RowProcessor, build_verify_url, certificate_object_key, safe_object_name
from core.models import CertificateRow
from core.records import CertificateRepository
from core.storage import LocalObjectStore
from helpers import TEST_BASE_URL, pdf_text


class FailingRepository:
    """Repository whose writes always fail."""

    def __init__(self):
        self.attempts = 0

    async def insert(self, record):
        self.attempts += 1
        raise MetadataError("database unavailable", "METADATA_WRITE_FAILED")


def _stored_keys(store: LocalObjectStore):
    if not store.root.exists():
        return []
    return sorted(p.relative_to(store.root).as_posix() for p in store.root.rglob("*.pdf"))


class TestNames:
    """Object names and verification URLs."""

    @pytest.mark.parametrize("name,expected", [
        ("Ada Lovelace", "Ada Lovelace"),
        ("  Grace Hopper  ", "Grace Hopper"),
        ("A/B\\C", "A-B-C"),
        ('Tom "T" <O\'Neil>', "Tom -T- -O'Neil-"),
        ("Line\nBreak", "Line-Break"),
        ("", "recipient"),
        ("   ", "recipient"),
    ])
    def test_safe_object_name(self, name, expected):
        assert safe_object_name(name) == expected

    def test_object_key_is_namespaced_by_id(self):
        assert certificate_object_key("abc", "Ada Lovelace") == "certificates/abc/Ada Lovelace.pdf"

    def test_verify_url(self):
        assert build_verify_url("https://certs.example.edu/", "abc") == \
            "https://certs.example.edu/certificates/verify/abc"


class TestProcess:
    """Happy path and failure semantics."""

    @pytest.mark.asyncio
    async def test_issues_stored_certificate(self, processor, store, repository, issuance_context):
        row = CertificateRow(full_name="Ada Lovelace", program="Mathematics", certificate="BSc", cgpa="3.9")

        record = await processor.process(row, issuance_context)

        assert record.pdf_path == f"certificates/{record.certificate_id}/Ada Lovelace.pdf"
        assert record.verify_url == f"{TEST_BASE_URL}/certificates/verify/{record.certificate_id}"
        assert record.pdf_url == store.public_url(record.pdf_path)
        assert record.created_by == "registrar-1"
        assert record.image_url is None
        assert record.logo_url is None

        text = pdf_text(store.download(record.pdf_path))
        assert "Ada Lovelace" in text
        assert f"Certificate ID: {record.certificate_id}" in text
        assert "Issued on: 2024-05-01" in text

        stored = await repository.get(record.certificate_id)
        assert stored is not None
        assert stored.full_name == "Ada Lovelace"
        assert stored.is_valid

    @pytest.mark.asyncio
    async def test_same_name_twice_gets_distinct_objects(self, processor, store, issuance_context):
        row = CertificateRow(full_name="Sam Lee")

        first = await processor.process(row, issuance_context)
        second = await processor.process(row, issuance_context)

        assert first.certificate_id != second.certificate_id
        assert first.pdf_path != second.pdf_path
        assert len(_stored_keys(store)) == 2

    @pytest.mark.asyncio
    async def test_private_store_records_no_public_url(self, private_settings, database, issuance_context):
        store = LocalObjectStore.from_settings(private_settings)
        processor = RowProcessor(private_settings, store, CertificateRepository(database))

        record = await processor.process(CertificateRow(full_name="Ada"), issuance_context)

        assert record.pdf_url is None
        assert store.exists(record.pdf_path)

    @pytest.mark.asyncio
    async def test_render_failure_stores_nothing(self, processor, store, repository, issuance_context):
        with patch("core.issue.render_certificate", side_effect=RenderError("bad font", "RENDER_FAILED")):
            with pytest.raises(RenderError):
                await processor.process(CertificateRow(full_name="Ada"), issuance_context)

        assert _stored_keys(store) == []
        _, total = await repository.list_page()
        assert total == 0

    @pytest.mark.asyncio
    async def test_metadata_failure_leaves_logged_orphan(self, settings, store, issuance_context, caplog):
        processor = RowProcessor(settings, store, FailingRepository())

        with caplog.at_level(logging.ERROR, logger="core.issue"):
            with pytest.raises(MetadataError):
                await processor.process(CertificateRow(full_name="Ada"), issuance_context)

        keys = _stored_keys(store)
        assert len(keys) == 1

        orphan_logs = [r for r in caplog.records if r.getMessage().startswith("Orphaned certificate artifact")]
        assert len(orphan_logs) == 1
        assert orphan_logs[0].pdf_path == keys[0]
