"""
Certificate repository tests

Insert, lookup, pagination, search and the institution summary.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import MetadataError
from core.models_sql import CertificateRecord

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _record(n: int, full_name: str, institution: str = "Example University",
            created_at: datetime = None) -> CertificateRecord:
    certificate_id = f"00000000-0000-4000-8000-{n:012d}"
    return CertificateRecord(
        certificate_id=certificate_id,
        institution_name=institution,
        full_name=full_name,
        pdf_path=f"certificates/{certificate_id}/{full_name}.pdf",
        verify_url=f"https://certs.example.edu/certificates/verify/{certificate_id}",
        created_at=created_at or BASE_TIME + timedelta(minutes=n),
    )


async def _seed(repository, names):
    for n, name in enumerate(names, start=1):
        await repository.insert(_record(n, name))


class TestInsertAndGet:
    """Writes and exact-key lookups."""

    @pytest.mark.asyncio
    async def test_round_trip(self, repository):
        await repository.insert(_record(1, "Ada Lovelace"))

        record = await repository.get("00000000-0000-4000-8000-000000000001")

        assert record.full_name == "Ada Lovelace"
        assert record.is_valid

    @pytest.mark.asyncio
    async def test_unknown_code(self, repository):
        assert await repository.get("00000000-0000-4000-8000-999999999999") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_is_metadata_error(self, repository):
        await repository.insert(_record(1, "Ada Lovelace"))

        with pytest.raises(MetadataError) as exc_info:
            await repository.insert(_record(1, "Someone Else"))

        assert exc_info.value.error_code == "METADATA_WRITE_FAILED"

    @pytest.mark.asyncio
    async def test_database_failure_is_metadata_error(self, repository, monkeypatch):
        def broken_session():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(repository.database, "session", broken_session)

        with pytest.raises(MetadataError):
            await repository.insert(_record(1, "Ada Lovelace"))


class TestListPage:
    """Newest-first pagination with optional search."""

    @pytest.mark.asyncio
    async def test_pages_newest_first(self, repository):
        await _seed(repository, ["Ada", "Alan", "Grace", "Linus", "Margaret"])

        first, total = await repository.list_page(page=1, page_size=2)
        second, _ = await repository.list_page(page=2, page_size=2)
        last, _ = await repository.list_page(page=3, page_size=2)

        assert total == 5
        assert [r.full_name for r in first] == ["Margaret", "Linus"]
        assert [r.full_name for r in second] == ["Grace", "Alan"]
        assert [r.full_name for r in last] == ["Ada"]

    @pytest.mark.asyncio
    async def test_search_by_name_case_insensitive(self, repository):
        await _seed(repository, ["Ada Lovelace", "Alan Turing", "Ada Yonath"])

        records, total = await repository.list_page(q="ada")

        assert total == 2
        assert {r.full_name for r in records} == {"Ada Lovelace", "Ada Yonath"}

    @pytest.mark.asyncio
    async def test_search_by_code(self, repository):
        await _seed(repository, ["Ada", "Alan"])

        records, total = await repository.list_page(q="000000000002")

        assert total == 1
        assert records[0].full_name == "Alan"

    @pytest.mark.asyncio
    async def test_page_size_capped(self, repository):
        await _seed(repository, ["Ada"])

        records, total = await repository.list_page(page=0, page_size=10000)

        assert total == 1
        assert len(records) == 1


class TestRecentAndSummary:
    """Bulk download selection and dashboard counters."""

    @pytest.mark.asyncio
    async def test_recent_limit(self, repository):
        await _seed(repository, ["Ada", "Alan", "Grace"])

        records = await repository.recent(limit=2)

        assert [r.full_name for r in records] == ["Grace", "Alan"]

    @pytest.mark.asyncio
    async def test_summary_scoped_to_institution(self, repository):
        await repository.insert(_record(1, "Ada", created_at=datetime(2024, 4, 30, 23, 0, tzinfo=timezone.utc)))
        await repository.insert(_record(2, "Alan", created_at=datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)))
        await repository.insert(_record(3, "Grace", institution="Other College",
                                        created_at=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)))

        summary = await repository.summary("Example University", today=date(2024, 5, 1))

        assert summary["totalCount"] == 2
        assert summary["todayCount"] == 1
        assert [item["full_name"] for item in summary["latest"]] == ["Alan", "Ada"]

    @pytest.mark.asyncio
    async def test_summary_for_unknown_institution(self, repository):
        await _seed(repository, ["Ada"])

        summary = await repository.summary("Nowhere")

        assert summary == {"totalCount": 0, "todayCount": 0, "latest": []}
