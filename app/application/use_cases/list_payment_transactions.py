from app.api.schemas.bookings import PaymentTransactionOut
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.domain.errors import PaymentTransactionNotFoundError


class ListPaymentTransactionsUseCase:
    """
    Payment attempts of the caller's bookings, newest first. Transactions of
    bookings owned by someone else are reported as missing.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo

    async def execute(self, caller: CallerIdentity) -> list[PaymentTransactionOut]:
        bookings = await self._booking_repo.list_for_user(caller.user_id)
        transactions = await self._payment_transaction_repo.list_for_bookings(
            [booking.id for booking in bookings]
        )
        return [PaymentTransactionOut.from_transaction(t) for t in transactions]

    async def get(self, transaction_id: int, caller: CallerIdentity) -> PaymentTransactionOut:
        transaction = await self._payment_transaction_repo.get_by_id(transaction_id)
        if not transaction:
            raise PaymentTransactionNotFoundError(transaction_id)
        booking = await self._booking_repo.get_by_id(transaction.booking_id)
        if not booking or booking.user_id != caller.user_id:
            raise PaymentTransactionNotFoundError(transaction_id)
        return PaymentTransactionOut.from_transaction(transaction)
