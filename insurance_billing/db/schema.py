"""
Table definitions for the policy store and the SQL message queue.

Only the tables the billing pipeline reads or writes are declared here; the
CRUD services own the rest of the schema.
"""

from uuid import UUID as PyUUID

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36) for cross-database portability."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


MONEY = Numeric(18, 2, asdecimal=True)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("customer_id", UUIDString(), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("email", String(256), nullable=False, unique=True),
    Column("phone_number", String(20), nullable=False, default=""),
    Column("address", String(500), nullable=False, default=""),
)

policies = Table(
    "policies",
    metadata,
    Column("policy_id", UUIDString(), primary_key=True),
    Column("customer_id", UUIDString(), ForeignKey("customers.customer_id"), nullable=False),
    Column("policy_number", String(100), unique=True),
    Column("status", String(20), nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("renewal_date", Date, nullable=False),
    Column("total_premium", MONEY, nullable=False, default=0),
    Index("ix_policies_status", "status"),
)

coverages = Table(
    "coverages",
    metadata,
    Column("coverage_id", UUIDString(), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("price", MONEY, nullable=False),
    Column("status", String(20), nullable=False),
)

policy_coverages = Table(
    "policy_coverages",
    metadata,
    Column("link_id", UUIDString(), primary_key=True),
    Column("policy_id", UUIDString(), ForeignKey("policies.policy_id"), nullable=False),
    Column("coverage_id", UUIDString(), ForeignKey("coverages.coverage_id"), nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("status", String(20), nullable=False),
    Column("premium_amount", MONEY, nullable=False, default=0),
    UniqueConstraint("policy_id", "coverage_id", name="uq_policy_coverage"),
    Index("ix_policy_coverages_policy", "policy_id"),
)

invoices = Table(
    "invoices",
    metadata,
    Column("invoice_id", UUIDString(), primary_key=True),
    Column("invoice_number", String(50), nullable=False, unique=True),
    Column("policy_id", UUIDString(), ForeignKey("policies.policy_id"), nullable=False),
    Column("status", String(20), nullable=False),
    Column("amount", MONEY, nullable=False),
    Column("paid_amount", MONEY, nullable=False, default=0),
    Column("issued_date", DateTime(timezone=True), nullable=False),
    Column("due_date", DateTime(timezone=True), nullable=False),
    Column("period_start", Date, nullable=False),
    Column("period_end", Date, nullable=False),
    Column("notes", String(1000)),
    Column("document_url", String(500)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    # One invoice per policy and billing period
    UniqueConstraint("policy_id", "period_start", "period_end", name="uq_invoice_policy_period"),
    Index("ix_invoices_due_date", "due_date"),
)

message_queue = Table(
    "message_queue",
    metadata,
    Column("message_id", String(64), primary_key=True),
    Column("destination", String(260), nullable=False),
    Column("message_type", String(100), nullable=False),
    Column("schema_version", Integer, nullable=False),
    Column("subject", String(260)),
    Column("body", Text, nullable=False),
    Column("state", String(20), nullable=False),
    Column("delivery_count", Integer, nullable=False, default=0),
    Column("created_at", DateTime, nullable=False),
    Column("visible_after", DateTime, nullable=False),
    Column("lock_token", String(36)),
    Column("dead_letter_reason", String(1000)),
    Index("ix_message_queue_receive", "destination", "state", "visible_after"),
)
