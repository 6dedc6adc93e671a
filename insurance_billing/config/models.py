"""
Pydantic configuration models for the billing pipeline.

These models define the structure and validation for service configuration.
"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseModel):
    """Policy store connection settings."""

    url: str = Field(
        default="",
        description="Full SQLAlchemy URL; overrides the individual fields when set",
    )
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="insurance", description="Database name")
    username: str = Field(default="billing", description="Database username")
    password: str = Field(default="", description="Database password")
    pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Connection pool size per process",
    )

    @property
    def connection_string(self) -> str:
        """Build the SQLAlchemy connection string."""
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg://{self.username}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class DocumentStoreConfig(BaseModel):
    """Where rendered invoice PDFs are stored."""

    backend: str = Field(
        default="filesystem",
        description="Document store backend: filesystem | memory",
    )
    output_dir: str = Field(
        default="data/documents",
        description="Root directory for the filesystem backend",
    )
    container_name: str = Field(
        default="invoices",
        description="Container (sub-directory) holding invoice documents",
    )
    base_url: str = Field(
        default="",
        description="Public base URL for documents; file:// URIs are used when empty",
    )


class TransportConfig(BaseModel):
    """Message transport settings."""

    backend: str = Field(
        default="sql",
        description="Transport backend: memory | sql | json_file | log | noop",
    )
    invoice_generation_queue: str = Field(
        default="invoice-generation",
        description="Queue carrying on-demand invoice generation requests",
    )
    invoice_notification_queue: str = Field(
        default="invoice-email",
        description="Queue receiving invoice notification messages",
    )
    max_delivery_attempts: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Deliveries before a failing message is dead-lettered",
    )
    receive_batch_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum messages fetched per receive call",
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        ge=0.1,
        le=300.0,
        description="Idle wait between empty receive calls",
    )
    json_file_output_dir: str = Field(
        default="data/messages",
        description="Output directory for the json_file backend (NDJSON files)",
    )
    log_level: str = Field(
        default="info",
        description="Log level for the log backend",
    )


class BillingConfig(BaseModel):
    """Invoice parameters."""

    payment_terms_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Days between invoice issue and due date",
    )
    currency_symbol: str = Field(default="$", max_length=3)
    sender_name: str = Field(
        default="Insurance Management Team",
        description="Signature used in notification bodies",
    )


class ScheduleConfig(BaseModel):
    """Monthly batch trigger (UTC)."""

    day_of_month: int = Field(default=27, ge=1, le=28)
    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


class BillingServiceConfig(BaseSettings):
    """
    Root service configuration.

    Values can be loaded from YAML files and overridden via environment
    variables (e.g. INSURANCE_BILLING_DATABASE__URL).
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    documents: DocumentStoreConfig = Field(default_factory=DocumentStoreConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    seed: int | None = Field(
        default=None,
        description="Seed for identifier generation; leave unset outside tests",
    )

    model_config = {
        "env_prefix": "INSURANCE_BILLING_",
        "env_nested_delimiter": "__",
    }

    @field_validator("seed")
    @classmethod
    def seed_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("seed must be non-negative")
        return v
