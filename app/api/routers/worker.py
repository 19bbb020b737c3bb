from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_use_cases
from app.api.schemas.bookings import SupplierRetryResponse
from app.infrastructure.db.retry import retry_on_deadlock

router = APIRouter()


@router.post(
    "/workers/outbox/submit-supplier/{booking_id}",
    response_model=SupplierRetryResponse,
    status_code=status.HTTP_200_OK,
)
async def process_supplier_retry(
    booking_id: int,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    worker_id: str | None = Query(default=None, alias="worker-id"),
) -> SupplierRetryResponse:
    """
    Claim and run the SUBMIT_SUPPLIER outbox event of one booking.

    Lock conflicts on the claim are retried; a missing or locked event is 409.
    """

    async def execute_retry():
        return await use_cases["process_supplier_retry"].execute(
            booking_id=booking_id, worker_id=worker_id or "worker-1"
        )

    return await retry_on_deadlock(execute_retry, max_attempts=3, base_delay=0.1)


@router.post(
    "/workers/outbox/submit-supplier",
    response_model=list[SupplierRetryResponse],
    status_code=status.HTTP_200_OK,
)
async def process_due_supplier_retries(
    use_cases: Annotated[dict, Depends(get_use_cases)],
    worker_id: str | None = Query(default=None, alias="worker-id"),
    limit: int = Query(default=10, ge=1, le=100),
) -> list[SupplierRetryResponse]:
    """Run every SUBMIT_SUPPLIER event whose next attempt is due."""
    return await use_cases["process_supplier_retry"].process_due(
        worker_id=worker_id or "worker-1", limit=limit
    )
