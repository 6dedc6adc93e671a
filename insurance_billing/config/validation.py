"""
Configuration validation for the billing pipeline.

Provides cross-field checks beyond what the Pydantic models enforce.
"""

import structlog

from insurance_billing.config.models import BillingServiceConfig

logger = structlog.get_logger()

DOCUMENT_BACKENDS = {"filesystem", "memory"}
TRANSPORT_BACKENDS = {"memory", "sql", "json_file", "log", "noop"}
RECEIVING_TRANSPORT_BACKENDS = {"memory", "sql"}


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


def validate_config(
    config: BillingServiceConfig,
    require_receiver: bool = False,
) -> list[str]:
    """
    Validate service configuration.

    Args:
        config: BillingServiceConfig to validate
        require_receiver: If True, the transport backend must support receiving
                         (queue workers need this)

    Returns:
        List of warning messages (non-fatal issues)

    Raises:
        ConfigurationError: If configuration has fatal issues
    """
    warnings: list[str] = []
    errors: list[str] = []

    transport = config.transport

    if transport.backend not in TRANSPORT_BACKENDS:
        errors.append(
            f"Unknown transport backend '{transport.backend}'. "
            f"Expected one of: {', '.join(sorted(TRANSPORT_BACKENDS))}"
        )
    elif require_receiver and transport.backend not in RECEIVING_TRANSPORT_BACKENDS:
        errors.append(
            f"Transport backend '{transport.backend}' cannot receive messages; "
            "workers need 'sql' or 'memory'"
        )

    if transport.invoice_generation_queue == transport.invoice_notification_queue:
        errors.append(
            "invoice_generation_queue and invoice_notification_queue must differ"
        )

    if config.documents.backend not in DOCUMENT_BACKENDS:
        errors.append(
            f"Unknown document store backend '{config.documents.backend}'. "
            f"Expected one of: {', '.join(sorted(DOCUMENT_BACKENDS))}"
        )

    if transport.backend in ("noop", "log"):
        warnings.append(
            f"Transport backend '{transport.backend}' does not deliver messages; "
            "notifications will not reach a queue"
        )

    if config.documents.backend == "memory":
        warnings.append("Document store backend 'memory' keeps PDFs only for the process lifetime")

    if config.database.connection_string.startswith("sqlite") and transport.backend == "sql":
        warnings.append("SQLite-backed queue is suitable for local runs only")

    if config.seed is not None:
        warnings.append("A fixed seed makes invoice numbers repeat across runs")

    if errors:
        for error in errors:
            logger.error("config_validation_error", error=error)
        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    for warning in warnings:
        logger.warning("config_validation_warning", warning=warning)

    return warnings
