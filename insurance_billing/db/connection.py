"""
Database connection management for the billing pipeline.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from insurance_billing.config.models import DatabaseConfig


def get_connection_string(config: DatabaseConfig) -> str:
    """
    Build the connection string.

    Args:
        config: Database configuration

    Returns:
        SQLAlchemy URL (psycopg3 for PostgreSQL unless a full URL is configured)
    """
    return config.connection_string


def create_engine_from_config(config: DatabaseConfig, application_name: str = "insurance_billing") -> Engine:
    """
    Create SQLAlchemy engine from configuration.

    In-memory SQLite shares one connection so every session sees the same
    database.

    Args:
        config: Database configuration
        application_name: Label attached to PostgreSQL connections

    Returns:
        SQLAlchemy Engine instance
    """
    connection_string = get_connection_string(config)

    if connection_string.startswith("sqlite"):
        if connection_string in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                connection_string,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(connection_string, connect_args={"check_same_thread": False})

    return create_engine(
        connection_string,
        pool_size=config.pool_size,
        pool_pre_ping=True,
        connect_args={"application_name": application_name},
    )
