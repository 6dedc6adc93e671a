"""
Database layer for the billing pipeline.

Provides the policy store protocol with SQL and in-memory implementations.
"""

from insurance_billing.db.connection import create_engine_from_config, get_connection_string
from insurance_billing.db.initialize import init_database
from insurance_billing.db.memory import InMemoryPolicyStore
from insurance_billing.db.protocol import PolicyStore
from insurance_billing.db.store import SqlPolicyStore

__all__ = [
    "InMemoryPolicyStore",
    "PolicyStore",
    "SqlPolicyStore",
    "create_engine_from_config",
    "get_connection_string",
    "init_database",
]
