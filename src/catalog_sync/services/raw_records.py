"""Raw feed record persistence.

Every state change is a single UPDATE keyed by an id list and committed on
its own, so a crash between statements never leaves a half-applied change.
"""

from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.infrastructure.database.models import RawFeedRecord, RecordStatus
from shared.clock import utcnow

logger = structlog.get_logger()


class RawRecordStore:
    """Reads and updates raw feed records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add(
        self,
        wholesaler_name: str,
        sku: str,
        raw_payload: Any,
        brand: str | None = None,
        status: RecordStatus = RecordStatus.PENDING,
    ) -> RawFeedRecord:
        """Insert one raw record, as the feed fetchers do."""
        record = RawFeedRecord(
            wholesaler_name=wholesaler_name,
            sku=sku,
            brand=brand,
            raw_payload=raw_payload,
            status=status.value,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        return record

    async def fetch_pending(self, limit: int, after_id: int = 0) -> list[RawFeedRecord]:
        """Up to ``limit`` Pending records with an id above ``after_id``, oldest first."""
        if limit <= 0:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(RawFeedRecord)
                .where(
                    RawFeedRecord.status == RecordStatus.PENDING.value,
                    RawFeedRecord.id > after_id,
                )
                .order_by(RawFeedRecord.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def mark_status(self, ids: Sequence[int], status: RecordStatus) -> int:
        """Move those of ``ids`` that are still Pending to ``status`` in one statement."""
        if not ids:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(
                update(RawFeedRecord)
                .where(
                    RawFeedRecord.id.in_(list(ids)),
                    RawFeedRecord.status == RecordStatus.PENDING.value,
                )
                .values(status=status.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        logger.debug("Marked raw records", status=status.value, count=result.rowcount)
        return result.rowcount

    async def record_failures(self, ids: Sequence[int], error: str) -> int:
        """Count a failed catalog pass against records that stay Pending."""
        if not ids:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(
                update(RawFeedRecord)
                .where(RawFeedRecord.id.in_(list(ids)))
                .values(
                    attempts=RawFeedRecord.attempts + 1,
                    error_message=error[:2000],
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount

    async def fail_exhausted(self, max_attempts: int) -> int:
        """Move Pending records that reached ``max_attempts`` failures to Failed.

        A cap of zero or less leaves failing records Pending indefinitely.
        """
        if max_attempts <= 0:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(
                update(RawFeedRecord)
                .where(
                    RawFeedRecord.status == RecordStatus.PENDING.value,
                    RawFeedRecord.attempts >= max_attempts,
                )
                .values(status=RecordStatus.FAILED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount:
            logger.warning("Raw records exhausted retries", count=result.rowcount, max_attempts=max_attempts)
        return result.rowcount

    async def reset_to_pending(self, ids: Sequence[int] | None = None) -> int:
        """Manually return records to Pending.

        With no ids every Failed record is reset. Attempts and error are cleared.
        """
        statement = update(RawFeedRecord)
        if ids is None:
            statement = statement.where(RawFeedRecord.status == RecordStatus.FAILED.value)
        elif not ids:
            return 0
        else:
            statement = statement.where(RawFeedRecord.id.in_(list(ids)))

        async with self.session_factory() as session:
            result = await session.execute(
                statement.values(
                    status=RecordStatus.PENDING.value,
                    attempts=0,
                    error_message=None,
                    updated_at=utcnow(),
                ).execution_options(synchronize_session=False)
            )
            await session.commit()
        logger.info("Reset raw records to pending", count=result.rowcount)
        return result.rowcount

    async def statistics(self) -> dict[str, int]:
        """Record counts per status, plus a total."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(RawFeedRecord.status, func.count(RawFeedRecord.id)).group_by(
                    RawFeedRecord.status
                )
            )
            counts = {row[0]: row[1] for row in result.all()}

        stats = {status.value.lower(): counts.get(status.value, 0) for status in RecordStatus}
        stats["total"] = sum(counts.values())
        return stats
