"""
CertVault Test Configuration and Shared Fixtures

Provides settings pointing at a temporary SQLite database and object
directory, plus the service objects built on them.

Example usage:
    @pytest.mark.asyncio
    async def test_issue(processor, issuance_context):
        record = await processor.process(row, issuance_context)
"""

from datetime import date

import pytest
import pytest_asyncio

from core.config import Settings
from core.db import Database
from core.ingest import BatchIngestor
from core.issue import RowProcessor
from core.models import IssuanceContext
from core.records import CertificateRepository
from core.storage import LocalObjectStore
from helpers import build_settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    """
    Provide settings isolated to the test's temporary directory.

    Returns:
        Settings: Public store, SQLite database, rate limiting off
    """
    return build_settings(tmp_path)


@pytest.fixture
def private_settings(tmp_path) -> Settings:
    """Settings for a private object store (signed URLs only)."""
    return build_settings(tmp_path, storage_public=False)


@pytest.fixture
def store(settings) -> LocalObjectStore:
    return LocalObjectStore.from_settings(settings)


@pytest_asyncio.fixture
async def database(settings):
    """
    Provide an initialized SQLite database that is disposed after the test.

    Yields:
        Database: Tables created
    """
    db = Database.from_settings(settings)
    await db.init()
    yield db
    await db.close()


@pytest.fixture
def repository(database) -> CertificateRepository:
    return CertificateRepository(database)


@pytest.fixture
def processor(settings, store, repository) -> RowProcessor:
    return RowProcessor(settings, store, repository)


@pytest.fixture
def ingestor(settings, processor) -> BatchIngestor:
    return BatchIngestor(settings, processor)


@pytest.fixture
def issuance_context() -> IssuanceContext:
    """Batch context with no logo and a fixed issue date."""
    return IssuanceContext(
        institution_name="Example University",
        logo_url="",
        issue_date=date(2024, 5, 1),
        created_by="registrar-1",
    )
