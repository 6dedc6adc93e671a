"""
SQL transport: a durable queue table shared by producers and workers.

Receivers claim a row by bumping its delivery count with a compare-and-set
update, so concurrent workers never receive the same delivery twice. A
claimed row stays invisible for lock_duration_seconds; if the worker dies,
the row becomes receivable again when the lock expires.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from insurance_billing.db.schema import message_queue
from insurance_billing.errors import TransientInfrastructureError
from insurance_billing.transport.envelope import MessageEnvelope, dead_letter_destination

logger = structlog.get_logger()

STATE_PENDING = "pending"
STATE_LOCKED = "locked"


def _utcnow() -> datetime:
    # Stored naive, in UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlTransport:
    """
    Queue backed by the message_queue table.

    Message ids are the primary key: re-sending an id that is already
    queued is ignored, which gives broker-style duplicate detection for
    notifications keyed by invoice id.
    """

    def __init__(self, engine: Engine, lock_duration_seconds: float = 300.0) -> None:
        self.engine = engine
        self._lock_duration = timedelta(seconds=lock_duration_seconds)
        self._sent = 0
        self._duplicates = 0
        self._received = 0
        self._completed = 0
        self._abandoned = 0
        self._dead_lettered = 0

    def _row(self, envelope: MessageEnvelope) -> dict:
        created = _as_naive_utc(envelope.created_at)
        return {
            "message_id": envelope.message_id,
            "destination": envelope.destination,
            "message_type": envelope.message_type,
            "schema_version": envelope.schema_version,
            "subject": envelope.subject,
            "body": envelope.body,
            "state": STATE_PENDING,
            "delivery_count": envelope.delivery_count,
            "created_at": created,
            "visible_after": created,
            "lock_token": None,
        }

    def send(self, envelope: MessageEnvelope) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(message_queue).values(**self._row(envelope)))
        except IntegrityError:
            self._duplicates += 1
            logger.info(
                "duplicate_message_ignored",
                message_id=envelope.message_id,
                destination=envelope.destination,
            )
            return
        except SQLAlchemyError as e:
            raise TransientInfrastructureError(
                "Transport unavailable",
                operation="send",
                destination=envelope.destination,
            ) from e
        self._sent += 1

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        for envelope in envelopes:
            self.send(envelope)

    def receive(self, destination: str, max_messages: int = 1) -> list[MessageEnvelope]:
        now = _utcnow()
        candidates = (
            select(message_queue)
            .where(
                and_(
                    message_queue.c.destination == destination,
                    message_queue.c.state.in_([STATE_PENDING, STATE_LOCKED]),
                    message_queue.c.visible_after <= now,
                )
            )
            .order_by(message_queue.c.created_at, message_queue.c.message_id)
            .limit(max_messages)
        )
        received = []
        try:
            with self.engine.begin() as conn:
                for row in conn.execute(candidates).mappings().all():
                    token = uuid4().hex
                    claim = (
                        update(message_queue)
                        .where(
                            and_(
                                message_queue.c.message_id == row["message_id"],
                                message_queue.c.delivery_count == row["delivery_count"],
                            )
                        )
                        .values(
                            state=STATE_LOCKED,
                            lock_token=token,
                            delivery_count=row["delivery_count"] + 1,
                            visible_after=now + self._lock_duration,
                        )
                    )
                    if conn.execute(claim).rowcount != 1:
                        continue
                    received.append(
                        MessageEnvelope(
                            message_id=row["message_id"],
                            message_type=row["message_type"],
                            schema_version=row["schema_version"],
                            destination=row["destination"],
                            body=row["body"],
                            created_at=row["created_at"].replace(tzinfo=timezone.utc),
                            subject=row["subject"],
                            delivery_count=row["delivery_count"] + 1,
                            lock_token=token,
                        )
                    )
        except SQLAlchemyError as e:
            raise TransientInfrastructureError(
                "Transport unavailable",
                operation="receive",
                destination=destination,
            ) from e
        self._received += len(received)
        return received

    def _settle(self, envelope: MessageEnvelope, stmt, operation: str) -> None:
        try:
            with self.engine.begin() as conn:
                rowcount = conn.execute(stmt).rowcount
        except SQLAlchemyError as e:
            raise TransientInfrastructureError(
                "Transport unavailable",
                operation=operation,
                message_id=envelope.message_id,
            ) from e
        if rowcount != 1:
            raise TransientInfrastructureError(
                "Message lock lost",
                operation=operation,
                message_id=envelope.message_id,
                destination=envelope.destination,
            )

    def _locked(self, envelope: MessageEnvelope):
        return and_(
            message_queue.c.message_id == envelope.message_id,
            message_queue.c.lock_token == envelope.lock_token,
        )

    def complete(self, envelope: MessageEnvelope) -> None:
        self._settle(envelope, delete(message_queue).where(self._locked(envelope)), "complete")
        self._completed += 1

    def abandon(self, envelope: MessageEnvelope) -> None:
        stmt = (
            update(message_queue)
            .where(self._locked(envelope))
            .values(state=STATE_PENDING, lock_token=None, visible_after=_utcnow())
        )
        self._settle(envelope, stmt, "abandon")
        self._abandoned += 1

    def dead_letter(self, envelope: MessageEnvelope, reason: str) -> None:
        stmt = (
            update(message_queue)
            .where(self._locked(envelope))
            .values(
                destination=dead_letter_destination(envelope.destination),
                state=STATE_PENDING,
                lock_token=None,
                visible_after=_utcnow(),
                dead_letter_reason=reason[:1000],
            )
        )
        self._settle(envelope, stmt, "dead_letter")
        self._dead_lettered += 1

    def count(self, destination: str) -> int:
        """Messages currently stored for a destination."""
        stmt = select(message_queue.c.message_id).where(message_queue.c.destination == destination)
        try:
            with self.engine.connect() as conn:
                return len(conn.execute(stmt).all())
        except SQLAlchemyError as e:
            raise TransientInfrastructureError(
                "Transport unavailable",
                operation="count",
                destination=destination,
            ) from e

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    @property
    def stats(self) -> dict[str, int]:
        return {
            "sent": self._sent,
            "duplicates": self._duplicates,
            "received": self._received,
            "completed": self._completed,
            "abandoned": self._abandoned,
            "dead_lettered": self._dead_lettered,
        }
