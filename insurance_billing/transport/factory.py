"""
Factory for creating transport instances from configuration.
"""

from sqlalchemy.engine import Engine

from insurance_billing.config.models import TransportConfig
from insurance_billing.config.validation import ConfigurationError
from insurance_billing.transport.backend import TransportBackend
from insurance_billing.transport.client import MessageTransport


def create_backend(config: TransportConfig, engine: Engine | None = None) -> TransportBackend:
    """
    Create a transport backend based on configuration.

    Args:
        config: Transport configuration
        engine: Database engine (required by the sql backend)

    Returns:
        A TransportBackend implementation

    Raises:
        ConfigurationError: If the backend name is not recognised
    """
    backend = config.backend.lower()

    if backend == "sql":
        if engine is None:
            raise ValueError("The sql transport backend requires a database engine")
        from insurance_billing.transport.implementations.sql import SqlTransport

        return SqlTransport(engine)

    elif backend == "memory":
        from insurance_billing.transport.implementations.memory import InMemoryTransport

        return InMemoryTransport()

    elif backend == "json_file":
        from insurance_billing.transport.implementations.json_file import JsonFileTransport

        return JsonFileTransport(output_dir=config.json_file_output_dir)

    elif backend == "log":
        from insurance_billing.transport.implementations.log import LogTransport

        return LogTransport(level=config.log_level)

    elif backend == "noop":
        from insurance_billing.transport.implementations.noop import NoopTransport

        return NoopTransport()

    raise ConfigurationError(
        f"Unknown transport backend: {config.backend!r} "
        "(expected memory, sql, json_file, log or noop)"
    )


def create_transport(config: TransportConfig, engine: Engine | None = None) -> MessageTransport:
    """Create an unopened MessageTransport for the configured backend."""
    return MessageTransport(create_backend(config, engine))
