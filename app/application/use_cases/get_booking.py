from app.api.schemas.bookings import BookingDetailResponse, BookingSummary
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.booking_repo import BookingRepo
from app.domain.entities.booking import Booking
from app.domain.errors import BookingNotFoundError


async def load_owned_booking(
    booking_repo: BookingRepo, booking_id: int, caller: CallerIdentity
) -> Booking:
    """Bookings owned by someone else are reported as missing."""
    booking = await booking_repo.get_by_id(booking_id)
    if not booking or booking.user_id != caller.user_id:
        raise BookingNotFoundError(booking_id=booking_id)
    return booking


class GetBookingUseCase:
    def __init__(self, booking_repo: BookingRepo) -> None:
        self._booking_repo = booking_repo

    async def execute(self, booking_id: int, caller: CallerIdentity) -> BookingDetailResponse:
        booking = await load_owned_booking(self._booking_repo, booking_id, caller)
        return BookingDetailResponse.from_booking(booking)


class ListUserBookingsUseCase:
    def __init__(self, booking_repo: BookingRepo) -> None:
        self._booking_repo = booking_repo

    async def execute(self, caller: CallerIdentity) -> list[BookingSummary]:
        bookings = await self._booking_repo.list_for_user(caller.user_id)
        return [BookingSummary.from_booking(booking) for booking in bookings]
