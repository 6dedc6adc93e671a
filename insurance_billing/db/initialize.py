"""
Schema creation for the policy store and the SQL message queue.
"""

import structlog
from sqlalchemy.engine import Engine

from insurance_billing.db.schema import metadata

logger = structlog.get_logger()


def init_database(engine: Engine, drop_existing: bool = False) -> list[str]:
    """
    Create the billing tables.

    Args:
        engine: SQLAlchemy engine
        drop_existing: Drop the tables first

    Returns:
        Names of the tables managed by this package
    """
    if drop_existing:
        logger.warning("dropping_tables", tables=len(metadata.tables))
        metadata.drop_all(engine)

    metadata.create_all(engine)

    table_names = sorted(metadata.tables)
    logger.info("database_initialized", tables=table_names)
    return table_names
