"""
Configuration module for the billing pipeline.

This module provides:
- Pydantic configuration models
- YAML configuration loading
- Configuration validation
"""

from insurance_billing.config.models import (
    BillingServiceConfig,
    BillingConfig,
    DatabaseConfig,
    DocumentStoreConfig,
    ScheduleConfig,
    TransportConfig,
)
from insurance_billing.config.loader import load_config
from insurance_billing.config.validation import ConfigurationError, validate_config

__all__ = [
    "BillingServiceConfig",
    "BillingConfig",
    "DatabaseConfig",
    "DocumentStoreConfig",
    "ScheduleConfig",
    "TransportConfig",
    "ConfigurationError",
    "load_config",
    "validate_config",
]
