from datetime import datetime
from typing import Any, Mapping, Sequence

from sqlalchemy import and_, case, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.booking_repo import (
    BookingDraft,
    BookingRepo,
    PaymentSessionInfo,
    TransitionResult,
)
from app.domain.entities.booking import (
    Booking,
    BookingStatus,
    Passenger,
    PaxType,
    PaymentMethod,
    PaymentStatus,
    SupplierStatus,
    TourLineItem,
)
from app.domain.errors import AlreadyCompletedError, BookingNotFoundError, ReferenceInUseError
from app.domain.value_objects.supplier_response import (
    SupplierResponse,
    supplier_response_from_dict,
)
from app.infrastructure.db.tables import (
    as_db_datetime,
    booking_passengers,
    booking_tour_items,
    bookings,
    from_db_datetime,
    utcnow,
)

STATUS_FOR_PAYMENT = {
    PaymentStatus.PAID: BookingStatus.PENDING,
    PaymentStatus.FAILED: BookingStatus.FAILED,
    PaymentStatus.CANCELLED: BookingStatus.CANCELLED,
}


class BookingRepoSQL(BookingRepo):
    """
    Every payment transition is a conditional UPDATE; the affected row count
    decides which concurrent caller won.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, booking_id: int) -> Booking | None:
        return await self._fetch_one(bookings.c.id == booking_id)

    async def get_by_reference(self, reference: str) -> Booking | None:
        return await self._fetch_one(bookings.c.reference == reference)

    async def get_by_payment_intent(self, payment_intent_id: str) -> Booking | None:
        return await self._fetch_one(bookings.c.payment_intent_id == payment_intent_id)

    async def list_for_user(self, user_id: str) -> Sequence[Booking]:
        stmt = select(bookings).where(bookings.c.user_id == user_id).order_by(bookings.c.id.desc())
        rows = (await self._session.execute(stmt)).mappings().all()
        return [await self._to_entity(row) for row in rows]

    async def create_or_reuse(self, reference: str, draft: BookingDraft) -> Booking:
        existing = await self.get_by_reference(reference)
        if existing is None:
            return await self._insert(reference, draft)

        if existing.user_id != draft.user_id:
            raise ReferenceInUseError(reference)

        now = utcnow()
        stmt = (
            update(bookings)
            .where(
                bookings.c.id == existing.id,
                bookings.c.user_id == draft.user_id,
                bookings.c.payment_status != PaymentStatus.PAID.value,
                bookings.c.status != BookingStatus.CONFIRMED.value,
                bookings.c.paid_at.is_(None),
            )
            .values(
                **self._draft_values(draft),
                lock_version=bookings.c.lock_version + 1,
                updated_at=now,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            current = await self.get_by_id(existing.id)
            if current and current.user_id != draft.user_id:
                raise ReferenceInUseError(reference)
            raise AlreadyCompletedError(
                reference,
                (current or existing).status.value,
                (current or existing).payment_status.value,
            )

        await self._session.execute(
            delete(booking_passengers).where(booking_passengers.c.booking_id == existing.id)
        )
        await self._session.execute(
            delete(booking_tour_items).where(booking_tour_items.c.booking_id == existing.id)
        )
        await self._insert_children(existing.id, draft)
        return await self._require(existing.id)

    async def _insert(self, reference: str, draft: BookingDraft) -> Booking:
        now = utcnow()
        stmt = insert(bookings).values(
            reference=reference,
            **self._draft_values(draft),
            lock_version=0,
            created_at=now,
            updated_at=now,
        )
        try:
            result = await self._session.execute(stmt)
        except IntegrityError as exc:
            # Lost a race on the unique reference
            raise ReferenceInUseError(reference) from exc
        booking_id = result.inserted_primary_key[0]
        await self._insert_children(booking_id, draft)
        return await self._require(booking_id)

    @staticmethod
    def _draft_values(draft: BookingDraft) -> dict[str, Any]:
        return {
            "user_id": draft.user_id,
            "b2b_account_id": draft.b2b_account_id,
            "client_reference_no": draft.client_reference_no,
            "currency": draft.currency,
            "payment_method": draft.payment_method.value,
            "total_net": draft.total_net,
            "total_markup": draft.total_markup,
            "total_gross": draft.total_gross,
            "payment_status": PaymentStatus.PENDING.value,
            "status": BookingStatus.AWAITING_PAYMENT.value,
            "payment_intent_id": None,
            "payment_gateway": None,
            "gateway_reference": None,
            "supplier_booking_id": None,
            "supplier_status": SupplierStatus.NOT_SUBMITTED.value,
            "supplier_response": None,
            "synced_at": None,
        }

    async def _insert_children(self, booking_id: int, draft: BookingDraft) -> None:
        if draft.passengers:
            await self._session.execute(
                insert(booking_passengers),
                [
                    {
                        "booking_id": booking_id,
                        "position": position,
                        "prefix": passenger.prefix,
                        "first_name": passenger.first_name,
                        "last_name": passenger.last_name,
                        "email": passenger.email,
                        "mobile": passenger.mobile,
                        "nationality": passenger.nationality,
                        "pax_type": passenger.pax_type.value,
                        "lead_passenger": passenger.lead_passenger,
                        "message": passenger.message,
                        "service_type": passenger.service_type,
                    }
                    for position, passenger in enumerate(draft.passengers)
                ],
            )
        if draft.tour_items:
            await self._session.execute(
                insert(booking_tour_items),
                [
                    {
                        "booking_id": booking_id,
                        "position": position,
                        "service_unique_id": item.service_unique_id,
                        "tour_id": item.tour_id,
                        "option_id": item.option_id,
                        "tour_date": item.tour_date,
                        "time_slot_id": item.time_slot_id,
                        "start_time": item.start_time,
                        "transfer_id": item.transfer_id,
                        "pickup": item.pickup,
                        "adult": item.adult,
                        "child": item.child,
                        "infant": item.infant,
                        "adult_rate": item.adult_rate,
                        "child_rate": item.child_rate,
                        "infant_rate": item.infant_rate,
                        "line_net": item.line_net,
                        "line_markup": item.line_markup,
                        "line_gross": item.line_gross,
                    }
                    for position, item in enumerate(draft.tour_items)
                ],
            )

    async def attach_payment_session(
        self, booking_id: int, session: PaymentSessionInfo
    ) -> Booking:
        values: dict[str, Any] = {
            "payment_intent_id": session.payment_intent_id,
            "payment_gateway": session.gateway,
            "payment_method": session.payment_method.value,
            "lock_version": bookings.c.lock_version + 1,
            "updated_at": utcnow(),
        }
        if session.gateway_reference:
            values["gateway_reference"] = session.gateway_reference
        result = await self._session.execute(
            update(bookings).where(bookings.c.id == booking_id).values(**values)
        )
        if result.rowcount == 0:
            raise BookingNotFoundError(booking_id=booking_id)
        return await self._require(booking_id)

    async def transition_payment(
        self,
        booking_id: int,
        new_status: PaymentStatus,
        gateway_reference: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        stamp = as_db_datetime(now) or utcnow()
        values: dict[str, Any] = {
            "payment_status": new_status.value,
            "lock_version": bookings.c.lock_version + 1,
            "updated_at": stamp,
        }
        if new_status in STATUS_FOR_PAYMENT:
            values["status"] = STATUS_FOR_PAYMENT[new_status].value
        if new_status == PaymentStatus.PAID:
            values["paid_at"] = stamp
        if gateway_reference:
            values["gateway_reference"] = gateway_reference

        stmt = (
            update(bookings)
            .where(
                bookings.c.id == booking_id,
                bookings.c.payment_status == PaymentStatus.PENDING.value,
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        booking = await self._require(booking_id)
        return TransitionResult(applied=result.rowcount == 1, booking=booking)

    async def record_supplier_outcome(
        self,
        booking_id: int,
        supplier_status: SupplierStatus,
        supplier_booking_id: str | None,
        response: SupplierResponse | None,
        synced_at: datetime | None = None,
    ) -> TransitionResult:
        stamp = as_db_datetime(synced_at) or utcnow()
        values: dict[str, Any] = {
            "supplier_status": supplier_status.value,
            "supplier_response": response.to_dict() if response else None,
            "synced_at": stamp,
            "lock_version": bookings.c.lock_version + 1,
            "updated_at": stamp,
        }
        if supplier_booking_id:
            values["supplier_booking_id"] = supplier_booking_id
        if supplier_status == SupplierStatus.CONFIRMED:
            values["status"] = case(
                (
                    bookings.c.payment_status == PaymentStatus.PAID.value,
                    BookingStatus.CONFIRMED.value,
                ),
                else_=bookings.c.status,
            )
        stmt = (
            update(bookings)
            .where(
                bookings.c.id == booking_id,
                bookings.c.status != BookingStatus.CANCELLED.value,
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        booking = await self._require(booking_id)
        return TransitionResult(applied=result.rowcount == 1, booking=booking)

    async def mark_cancelled(self, booking_id: int, now: datetime | None = None) -> Booking:
        stmt = (
            update(bookings)
            .where(
                and_(
                    bookings.c.id == booking_id,
                    bookings.c.status != BookingStatus.CANCELLED.value,
                )
            )
            .values(
                status=BookingStatus.CANCELLED.value,
                payment_status=PaymentStatus.CANCELLED.value,
                supplier_status=SupplierStatus.CANCELLED.value,
                lock_version=bookings.c.lock_version + 1,
                updated_at=as_db_datetime(now) or utcnow(),
            )
        )
        await self._session.execute(stmt)
        return await self._require(booking_id)

    async def _require(self, booking_id: int) -> Booking:
        booking = await self.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id=booking_id)
        return booking

    async def _fetch_one(self, condition) -> Booking | None:
        result = await self._session.execute(select(bookings).where(condition).limit(1))
        row = result.mappings().first()
        if not row:
            return None
        return await self._to_entity(row)

    async def _to_entity(self, row: Mapping[str, Any]) -> Booking:
        booking_id = row["id"]
        passenger_rows = (
            await self._session.execute(
                select(booking_passengers)
                .where(booking_passengers.c.booking_id == booking_id)
                .order_by(booking_passengers.c.position)
            )
        ).mappings().all()
        item_rows = (
            await self._session.execute(
                select(booking_tour_items)
                .where(booking_tour_items.c.booking_id == booking_id)
                .order_by(booking_tour_items.c.position)
            )
        ).mappings().all()

        return Booking(
            id=booking_id,
            reference=row["reference"],
            client_reference_no=row["client_reference_no"],
            user_id=row["user_id"],
            b2b_account_id=row["b2b_account_id"],
            total_net=row["total_net"],
            total_markup=row["total_markup"],
            total_gross=row["total_gross"],
            currency=row["currency"],
            payment_method=PaymentMethod(row["payment_method"]),
            payment_intent_id=row["payment_intent_id"],
            payment_gateway=row["payment_gateway"],
            payment_status=PaymentStatus(row["payment_status"]),
            gateway_reference=row["gateway_reference"],
            paid_at=from_db_datetime(row["paid_at"]),
            status=BookingStatus(row["status"]),
            supplier_booking_id=row["supplier_booking_id"],
            supplier_status=SupplierStatus(row["supplier_status"]),
            supplier_response=supplier_response_from_dict(row["supplier_response"]),
            synced_at=from_db_datetime(row["synced_at"]),
            passengers=[
                Passenger(
                    first_name=p["first_name"],
                    last_name=p["last_name"],
                    prefix=p["prefix"],
                    email=p["email"],
                    mobile=p["mobile"],
                    nationality=p["nationality"],
                    pax_type=PaxType(p["pax_type"]),
                    lead_passenger=bool(p["lead_passenger"]),
                    message=p["message"],
                    service_type=p["service_type"] or "Tour",
                )
                for p in passenger_rows
            ],
            tour_items=[
                TourLineItem(
                    tour_id=i["tour_id"],
                    option_id=i["option_id"],
                    tour_date=i["tour_date"],
                    adult=i["adult"],
                    child=i["child"],
                    infant=i["infant"],
                    adult_rate=i["adult_rate"],
                    child_rate=i["child_rate"],
                    infant_rate=i["infant_rate"],
                    service_unique_id=i["service_unique_id"],
                    time_slot_id=i["time_slot_id"],
                    start_time=i["start_time"],
                    transfer_id=i["transfer_id"],
                    pickup=i["pickup"],
                    line_net=i["line_net"],
                    line_markup=i["line_markup"],
                    line_gross=i["line_gross"],
                )
                for i in item_rows
            ],
            lock_version=row["lock_version"],
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
