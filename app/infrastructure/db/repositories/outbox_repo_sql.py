import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Sequence

from sqlalchemy import insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.infrastructure.db.tables import as_db_datetime, from_db_datetime, outbox_events, utcnow

logger = logging.getLogger(__name__)

# IN_PROGRESS is claimable again only after its lock expired
CLAIMABLE = ("NEW", "RETRY", "IN_PROGRESS")


class OutboxRepoSQL(OutboxRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_code: str,
        payload: dict[str, Any],
        next_attempt_at: datetime | None = None,
    ) -> OutboxEvent:
        now = utcnow()
        due = as_db_datetime(next_attempt_at) or now
        stmt = insert(outbox_events).values(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status="NEW",
            attempts=0,
            next_attempt_at=due,
            created_at=now,
            updated_at=now,
        )
        result = await self._session.execute(stmt)
        event_id = result.inserted_primary_key[0]
        return OutboxEvent(
            id=event_id,
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status="NEW",
            attempts=0,
            next_attempt_at=from_db_datetime(due),
        )

    @staticmethod
    def _ready_clauses(now: datetime) -> tuple:
        return (
            outbox_events.c.status.in_(CLAIMABLE),
            or_(
                outbox_events.c.next_attempt_at.is_(None),
                outbox_events.c.next_attempt_at <= now,
            ),
            or_(
                outbox_events.c.lock_expires_at.is_(None),
                outbox_events.c.lock_expires_at <= now,
            ),
        )

    async def claim(
        self,
        aggregate_code: str,
        event_type: str,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 30,
    ) -> OutboxEvent | None:
        db_now = as_db_datetime(now)
        candidate = await self._session.execute(
            select(outbox_events.c.id)
            .where(
                outbox_events.c.aggregate_code == aggregate_code,
                outbox_events.c.event_type == event_type,
                *self._ready_clauses(db_now),
            )
            .order_by(outbox_events.c.id.desc())
            .limit(1)
        )
        event_id = candidate.scalar()
        if event_id is None:
            return None

        # Same readiness conditions again: only one worker wins the row
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id, *self._ready_clauses(db_now))
            .values(
                locked_by=locked_by,
                locked_at=db_now,
                lock_expires_at=db_now + timedelta(seconds=lock_ttl_seconds),
                updated_at=db_now,
                status="IN_PROGRESS",
            )
            .returning(outbox_events)
        )
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        if not row:
            logger.info(
                "Outbox event claimed by another worker",
                extra={"event_id": event_id, "aggregate_code": aggregate_code},
            )
            return None
        return self._to_event(row)

    async def list_due(
        self,
        event_type: str,
        now: datetime,
        limit: int = 10,
    ) -> Sequence[OutboxEvent]:
        stmt = (
            select(outbox_events)
            .where(
                outbox_events.c.event_type == event_type,
                *self._ready_clauses(as_db_datetime(now)),
            )
            .order_by(outbox_events.c.id)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._to_event(row) for row in rows]

    async def get_latest(self, aggregate_code: str, event_type: str) -> OutboxEvent | None:
        stmt = (
            select(outbox_events)
            .where(
                outbox_events.c.aggregate_code == aggregate_code,
                outbox_events.c.event_type == event_type,
            )
            .order_by(outbox_events.c.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).mappings().first()
        return self._to_event(row) if row else None

    async def mark_done(self, event_id: int) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(status="DONE", locked_by=None, lock_expires_at=None, updated_at=utcnow())
        )
        await self._session.execute(stmt)

    async def mark_failed(
        self,
        event_id: int,
        attempts: int,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status="FAILED",
                attempts=attempts,
                error_code=error_code,
                error_message=(error_message or "")[:255] or None,
                locked_by=None,
                lock_expires_at=None,
                updated_at=utcnow(),
            )
        )
        await self._session.execute(stmt)
        logger.warning(
            "Outbox event failed permanently - requires manual intervention",
            extra={"event_id": event_id, "attempts": attempts, "error_code": error_code},
        )

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status="RETRY",
                attempts=attempts,
                next_attempt_at=as_db_datetime(next_attempt_at),
                error_code=error_code,
                error_message=(error_message or "")[:255] or None,
                locked_by=None,
                lock_expires_at=None,
                updated_at=utcnow(),
            )
        )
        await self._session.execute(stmt)

    @staticmethod
    def _to_event(data: Mapping[str, Any]) -> OutboxEvent:
        return OutboxEvent(
            id=data["id"],
            event_type=data["event_type"],
            aggregate_type=data["aggregate_type"],
            aggregate_code=data["aggregate_code"],
            payload=data["payload"],
            status=data["status"],
            attempts=data.get("attempts", 0),
            next_attempt_at=from_db_datetime(data.get("next_attempt_at")),
            locked_by=data.get("locked_by"),
            lock_expires_at=from_db_datetime(data.get("lock_expires_at")),
            error_code=data.get("error_code"),
            error_message=data.get("error_message"),
        )
