from fastapi import APIRouter, Depends

from app.api.dependencies import get_caller, get_use_cases
from app.api.schemas.bookings import PaymentTransactionOut
from app.application.dtos.booking_dto import CallerIdentity

router = APIRouter(prefix="/payments")


@router.get("/transactions", response_model=list[PaymentTransactionOut])
async def list_transactions(
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> list[PaymentTransactionOut]:
    return await use_cases["list_transactions"].execute(caller)


@router.get("/transactions/{transaction_id}", response_model=PaymentTransactionOut)
async def get_transaction(
    transaction_id: int,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> PaymentTransactionOut:
    return await use_cases["list_transactions"].get(transaction_id, caller)
