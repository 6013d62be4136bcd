"""
Certificate metadata repository

Insert, exact-key lookup, filtered pagination and per-institution summary
over the ``certificates`` table.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.db import Database
from core.errors import MetadataError
from core.models_sql import CertificateRecord


MAX_PAGE_SIZE = 100


class CertificateRepository:
    """Data access for ``CertificateRecord`` rows."""

    def __init__(self, database: Database):
        self.database = database

    async def insert(self, record: CertificateRecord) -> CertificateRecord:
        """
        Persist a new certificate record.

        Raises:
            MetadataError: If the write fails for any reason
        """
        try:
            async with self.database.session() as session:
                session.add(record)
                await session.flush()
                await session.refresh(record)
        except (SQLAlchemyError, OSError) as e:
            raise MetadataError(
                f"Failed to store certificate {record.certificate_id}: {e}",
                "METADATA_WRITE_FAILED",
                {"certificate_id": record.certificate_id},
            ) from e
        return record

    async def get(self, certificate_id: str) -> Optional[CertificateRecord]:
        """Look up a certificate by its exact public code."""
        async with self.database.session() as session:
            return await session.get(CertificateRecord, certificate_id)

    async def list_page(self, page: int = 1, page_size: int = 20,
                        q: str = "") -> Tuple[List[CertificateRecord], int]:
        """
        Return one page of certificates, newest first, plus the total count.

        Args:
            page: 1-based page number
            page_size: Rows per page (capped at MAX_PAGE_SIZE)
            q: Optional case-insensitive filter on full name or certificate id

        Returns:
            Tuple of (records, total matching count)
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        conditions = []
        if q:
            pattern = f"%{q.lower()}%"
            conditions.append(or_(
                func.lower(CertificateRecord.full_name).like(pattern),
                func.lower(CertificateRecord.certificate_id).like(pattern),
            ))

        async with self.database.session() as session:
            count_stmt = select(func.count()).select_from(CertificateRecord).where(*conditions)
            total = (await session.execute(count_stmt)).scalar_one()

            stmt = (
                select(CertificateRecord)
                .where(*conditions)
                .order_by(desc(CertificateRecord.created_at))
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            records = (await session.execute(stmt)).scalars().all()

        return list(records), total

    async def recent(self, limit: int = 1000) -> List[CertificateRecord]:
        """Most recently issued certificates across all institutions."""
        async with self.database.session() as session:
            stmt = (
                select(CertificateRecord)
                .order_by(desc(CertificateRecord.created_at))
                .limit(limit)
            )
            return list((await session.execute(stmt)).scalars().all())

    async def summary(self, institution_name: str,
                      today: Optional[date] = None) -> Dict[str, Any]:
        """
        Home dashboard counters scoped to one institution.

        Returns:
            Dict with totalCount, todayCount and latest (newest first)
        """
        today = today or datetime.now(timezone.utc).date()
        start_of_day = datetime.combine(today, time.min, tzinfo=timezone.utc)
        scoped = CertificateRecord.institution_name == institution_name

        async with self.database.session() as session:
            total = (await session.execute(
                select(func.count()).select_from(CertificateRecord).where(scoped)
            )).scalar_one()
            today_count = (await session.execute(
                select(func.count()).select_from(CertificateRecord).where(
                    scoped, CertificateRecord.created_at >= start_of_day
                )
            )).scalar_one()
            latest = (await session.execute(
                select(CertificateRecord)
                .where(scoped)
                .order_by(desc(CertificateRecord.created_at))
            )).scalars().all()

        return {
            "totalCount": total,
            "todayCount": today_count,
            "latest": [record.to_public_dict() for record in latest],
        }
