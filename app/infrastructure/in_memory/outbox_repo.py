from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo

# IN_PROGRESS is claimable again only after its lock expired
CLAIMABLE = {"NEW", "RETRY", "IN_PROGRESS"}


class InMemoryOutboxRepo(OutboxRepo):
    def __init__(self) -> None:
        self.events: dict[int, OutboxEvent] = {}
        self._by_aggregate_event: dict[tuple[str, str], int] = {}
        self._next_id = 1

    async def enqueue(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_code: str,
        payload: dict[str, Any],
        next_attempt_at: datetime | None = None,
    ) -> OutboxEvent:
        event = OutboxEvent(
            id=self._next_id,
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status="NEW",
            attempts=0,
            next_attempt_at=next_attempt_at or datetime.now(timezone.utc),
        )
        self.events[event.id] = event
        self._by_aggregate_event[(aggregate_code, event_type)] = event.id
        self._next_id += 1
        return event

    @staticmethod
    def _is_ready(event: OutboxEvent, now: datetime) -> bool:
        if event.status not in CLAIMABLE:
            return False
        if event.next_attempt_at and event.next_attempt_at > now:
            return False
        if event.lock_expires_at and event.lock_expires_at > now:
            return False
        return True

    async def claim(
        self,
        aggregate_code: str,
        event_type: str,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 30,
    ) -> OutboxEvent | None:
        event_id = self._by_aggregate_event.get((aggregate_code, event_type))
        if not event_id:
            return None
        event = self.events[event_id]
        if not self._is_ready(event, now):
            return None

        event.locked_by = locked_by
        event.lock_expires_at = now + timedelta(seconds=lock_ttl_seconds)
        event.status = "IN_PROGRESS"
        return event

    async def list_due(
        self,
        event_type: str,
        now: datetime,
        limit: int = 10,
    ) -> Sequence[OutboxEvent]:
        due = [
            event
            for event in sorted(self.events.values(), key=lambda e: e.id)
            if event.event_type == event_type and self._is_ready(event, now)
        ]
        return due[:limit]

    async def get_latest(self, aggregate_code: str, event_type: str) -> OutboxEvent | None:
        event_id = self._by_aggregate_event.get((aggregate_code, event_type))
        return self.events.get(event_id) if event_id else None

    async def mark_done(self, event_id: int) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = "DONE"
        event.locked_by = None
        event.lock_expires_at = None

    async def mark_failed(
        self,
        event_id: int,
        attempts: int,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = "FAILED"
        event.attempts = attempts
        event.error_code = error_code
        event.error_message = error_message
        event.locked_by = None
        event.lock_expires_at = None

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = "RETRY"
        event.attempts = attempts
        event.next_attempt_at = next_attempt_at
        event.error_code = error_code
        event.error_message = error_message
        event.locked_by = None
        event.lock_expires_at = None
