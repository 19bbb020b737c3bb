from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)

metadata = MetaData()

bookings = Table(
    "bookings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference", String(64), nullable=False, unique=True),
    Column("client_reference_no", String(100)),
    Column("user_id", String(64), nullable=False),
    Column("b2b_account_id", Integer),
    Column("total_net", Numeric(12, 2), nullable=False),
    Column("total_markup", Numeric(12, 2), nullable=False),
    Column("total_gross", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("payment_method", String(32), nullable=False),
    Column("payment_intent_id", String(128), index=True),
    Column("payment_gateway", String(32)),
    Column("payment_status", String(16), nullable=False),
    Column("gateway_reference", String(128)),
    Column("paid_at", DateTime),
    Column("status", String(32), nullable=False),
    Column("supplier_booking_id", String(64)),
    Column("supplier_status", String(16), nullable=False),
    Column("supplier_response", JSON),
    Column("synced_at", DateTime),
    Column("lock_version", Integer, nullable=False, default=0),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

booking_passengers = Table(
    "booking_passengers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("prefix", String(8), nullable=False),
    Column("first_name", String(150), nullable=False),
    Column("last_name", String(150), nullable=False),
    Column("email", String(255)),
    Column("mobile", String(50)),
    Column("nationality", String(64)),
    Column("pax_type", String(16), nullable=False),
    Column("lead_passenger", Boolean, nullable=False, default=False),
    Column("message", String(500)),
    Column("service_type", String(32)),
)

booking_tour_items = Table(
    "booking_tour_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("service_unique_id", String(64)),
    Column("tour_id", Integer, nullable=False),
    Column("option_id", Integer, nullable=False),
    Column("tour_date", Date, nullable=False),
    Column("time_slot_id", String(64)),
    Column("start_time", String(16)),
    Column("transfer_id", Integer, nullable=False, default=0),
    Column("pickup", String(255)),
    Column("adult", Integer, nullable=False, default=0),
    Column("child", Integer, nullable=False, default=0),
    Column("infant", Integer, nullable=False, default=0),
    Column("adult_rate", Numeric(12, 2), nullable=False),
    Column("child_rate", Numeric(12, 2), nullable=False),
    Column("infant_rate", Numeric(12, 2), nullable=False),
    Column("line_net", Numeric(12, 2), nullable=False),
    Column("line_markup", Numeric(12, 2), nullable=False),
    Column("line_gross", Numeric(12, 2), nullable=False),
)

payment_transactions = Table(
    "payment_transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, nullable=False, index=True),
    Column("payment_intent_id", String(128), index=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("gateway", String(32), nullable=False),
    Column("status", String(16), nullable=False),
    Column("raw_response", JSON),
    Column("error_code", String(64)),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

markup_rules = Table(
    "markup_rules",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("b2b_account_id", Integer),
    Column("product_id", Integer),
    Column("percentage", Numeric(7, 2), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime),
    Index("ix_markup_rules_scope", "b2b_account_id", "product_id"),
)

b2b_accounts = Table(
    "b2b_accounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(150), nullable=False),
    Column("default_markup", Numeric(7, 2)),
    Column("is_active", Boolean, nullable=False, default=True),
)

user_markups = Table(
    "user_markups",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("markup_type", String(16), nullable=False),
    Column("value", Numeric(12, 2), nullable=False),
)

outbox_events = Table(
    "outbox_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False),
    Column("aggregate_type", String(32), nullable=False),
    Column("aggregate_code", String(64)),
    Column("payload", JSON, nullable=False),
    Column("status", String(16), nullable=False, default="NEW"),
    Column("attempts", Integer, nullable=False, default=0),
    Column("next_attempt_at", DateTime),
    Column("locked_by", String(64)),
    Column("locked_at", DateTime),
    Column("lock_expires_at", DateTime),
    Column("error_code", String(64)),
    Column("error_message", String(255)),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

supplier_requests = Table(
    "supplier_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, nullable=False, index=True),
    Column("reference", String(64)),
    Column("request_type", String(16), nullable=False),
    Column("attempt", Integer, nullable=False, default=0),
    Column("status", String(16), nullable=False),
    Column("failure_kind", String(16)),
    Column("http_status", Integer),
    Column("error_code", String(64)),
    Column("error_message", String(255)),
    Column("request_payload", JSON),
    Column("response_payload", JSON),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)


def utcnow() -> datetime:
    """Naive UTC timestamp; DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_db_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
