"""
Shared test fixtures for the insurance billing pipeline tests.
"""

import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable
from uuid import uuid4

import numpy as np
import pytest
import structlog
from structlog._config import BoundLoggerLazyProxy

from insurance_billing.billing.invoice_generator import InvoiceGenerator
from insurance_billing.billing.orchestrator import BillingOrchestrator
from insurance_billing.config.models import (
    BillingServiceConfig,
    DatabaseConfig,
    DocumentStoreConfig,
    TransportConfig,
)
from insurance_billing.db.connection import create_engine_from_config
from insurance_billing.db.initialize import init_database
from insurance_billing.db.memory import InMemoryPolicyStore
from insurance_billing.documents.implementations.memory import InMemoryDocumentStore
from insurance_billing.domain.enums import CoverageLinkStatus, CoverageStatus, PolicyStatus
from insurance_billing.domain.policy import Coverage, CoverageLink, Customer, Policy
from insurance_billing.generators.id_generator import IDGenerator
from insurance_billing.transport.client import MessageTransport
from insurance_billing.transport.implementations.memory import InMemoryTransport
from insurance_billing.utils.clock import FixedClock


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any structlog configuration a test applied (e.g. via the CLI).

    configure_logging() enables cache_logger_on_first_use, which pins
    module-level logger proxies to that configuration and hides them from
    capture_logs() in later tests.
    """
    yield
    structlog.reset_defaults()
    for name, module in list(sys.modules.items()):
        if not name.startswith("insurance_billing"):
            continue
        for value in list(vars(module).values()):
            if isinstance(value, BoundLoggerLazyProxy):
                vars(value).pop("bind", None)


# =============================================================================
# RNG / Clock Fixtures
# =============================================================================


@pytest.fixture
def test_seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def test_rng(test_seed: int) -> np.random.Generator:
    """Deterministic random number generator."""
    return np.random.default_rng(test_seed)


@pytest.fixture
def id_generator(test_rng: np.random.Generator) -> IDGenerator:
    """Deterministic ID generator."""
    return IDGenerator(test_rng)


@pytest.fixture
def fixed_clock() -> FixedClock:
    """Clock frozen at 2025-06-10 09:30 UTC."""
    return FixedClock(datetime(2025, 6, 10, 9, 30, tzinfo=timezone.utc))


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> BillingServiceConfig:
    """In-process configuration: SQLite store, memory documents and transport."""
    return BillingServiceConfig(
        database=DatabaseConfig(url="sqlite://"),
        documents=DocumentStoreConfig(backend="memory"),
        transport=TransportConfig(backend="memory", max_delivery_attempts=3),
        seed=42,
    )


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryPolicyStore:
    return InMemoryPolicyStore()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the billing schema."""
    engine = create_engine_from_config(DatabaseConfig(url="sqlite://"))
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_policy() -> Callable[..., Policy]:
    """
    Factory adding a customer, a policy and its coverages to a store.

    Usage:
        policy = make_policy(store, prices=("100.00", "200.00"))
    """

    def _make(
        store,
        prices=("100.00", "200.00"),
        status: PolicyStatus = PolicyStatus.ACTIVE,
        start_date: date = date(2025, 1, 1),
        end_date: date = date(2025, 12, 31),
        customer_name: str = "Jane Doe",
    ) -> Policy:
        customer = Customer(
            customer_id=uuid4(),
            name=customer_name,
            email=f"{uuid4().hex[:8]}@example.com",
            phone_number="555-0100",
            address="1 Main Street, Springfield",
        )
        store.add_customer(customer)

        policy = Policy(
            policy_id=uuid4(),
            customer_id=customer.customer_id,
            policy_number=f"POL-{uuid4().hex[:8].upper()}",
            status=status,
            start_date=start_date,
            end_date=end_date,
            renewal_date=end_date,
            total_premium=sum((Decimal(p) for p in prices), Decimal("0")),
        )
        store.add_policy(policy)

        for i, price in enumerate(prices):
            coverage = Coverage(
                coverage_id=uuid4(),
                name=f"Coverage {i + 1}",
                price=Decimal(price),
                status=CoverageStatus.ACTIVE,
            )
            store.add_coverage(coverage)
            store.add_coverage_link(
                CoverageLink(
                    link_id=uuid4(),
                    policy_id=policy.policy_id,
                    coverage_id=coverage.coverage_id,
                    start_date=start_date,
                    end_date=end_date,
                    status=CoverageLinkStatus.ACTIVE,
                    premium_amount=Decimal(price),
                )
            )
        return policy

    return _make


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def generator(memory_store, documents, id_generator, fixed_clock) -> InvoiceGenerator:
    return InvoiceGenerator(
        store=memory_store,
        documents=documents,
        id_generator=id_generator,
        clock=fixed_clock,
    )


@pytest.fixture
def orchestrator(memory_store, generator, fixed_clock) -> BillingOrchestrator:
    return BillingOrchestrator(memory_store, generator, fixed_clock)


@pytest.fixture
def memory_transport():
    """Open transport over in-memory queues."""
    transport = MessageTransport(InMemoryTransport())
    transport.open()
    yield transport
    transport.close()
