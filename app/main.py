import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import close_gateways, get_gateways, run_supplier_retries
from app.api.deps import dispose_engine, get_engine
from app.api.routers.bookings import router as bookings_router
from app.api.routers.health import router as health_router
from app.api.routers.markup_rules import router as markup_rules_router
from app.api.routers.payments import router as payments_router
from app.api.routers.worker import router as worker_router
from app.config import get_settings
from app.domain.errors import (
    AlreadyCompletedError,
    BookingNotFoundError,
    BookingValidationError,
    DomainError,
    InvalidBookingStatusError,
    InvalidMarkupRuleError,
    ManualConfirmationNotAllowedError,
    MarkupRuleNotFoundError,
    OutboxEventNotReadyError,
    PaymentNotFoundError,
    PaymentNotVerifiedError,
    PaymentSessionError,
    PaymentSupersededError,
    PaymentTransactionNotFoundError,
    ReferenceInUseError,
    SupplierNotSubmittedError,
    SupplierUnavailableError,
)
from app.infrastructure.db.engine import create_schema
from app.infrastructure.messaging.outbox_worker import OutboxWorker

settings = get_settings()

# Configure structured logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# First match wins, subclasses before their bases
ERROR_STATUS = (
    (BookingValidationError, 422),
    (InvalidMarkupRuleError, 422),
    (BookingNotFoundError, 404),
    (PaymentNotFoundError, 404),
    (PaymentTransactionNotFoundError, 404),
    (MarkupRuleNotFoundError, 404),
    (AlreadyCompletedError, 409),
    (ReferenceInUseError, 409),
    (InvalidBookingStatusError, 409),
    (PaymentNotVerifiedError, 409),
    (PaymentSupersededError, 409),
    (ManualConfirmationNotAllowedError, 409),
    (SupplierNotSubmittedError, 409),
    (OutboxEventNotReadyError, 409),
    (PaymentSessionError, 502),
    (SupplierUnavailableError, 502),
)


def status_for(exc: DomainError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.use_in_memory:
        # Create tables for dev/demo; production schemas are managed outside the app
        await create_schema(get_engine())
    get_gateways()

    worker = None
    if settings.outbox_worker_enabled:
        worker = OutboxWorker(
            run_batch=run_supplier_retries,
            poll_interval_seconds=settings.outbox_worker_poll_seconds,
            batch_size=settings.outbox_worker_batch_size,
        )
        worker.start_background()
    yield
    if worker:
        await worker.stop()
    await close_gateways()
    if not settings.use_in_memory:
        await dispose_engine()


app = FastAPI(
    title="Tour Bookings API",
    version="0.1.0",
    lifespan=lifespan
)


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    status_code = status_for(exc)
    log = logger.warning if status_code >= 500 else logger.info
    log(
        "Domain error",
        extra={
            "code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists."
        }
    )


app.include_router(health_router, tags=["Health"])
app.include_router(bookings_router, prefix="/api/v1", tags=["Bookings"])
app.include_router(payments_router, prefix="/api/v1", tags=["Payments"])
app.include_router(markup_rules_router, prefix="/api/v1", tags=["Pricing"])
app.include_router(worker_router, prefix="/api/v1", tags=["Worker"])
