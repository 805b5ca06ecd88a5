"""Configuration management for lendbook."""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from lendbook.exceptions import ConfigurationError
from lendbook.models.lending.enums import PaymentMode


@dataclass
class KafkaConfig:
    """Kafka producer configuration for the event sink."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3
    topic_prefix: str = "lendbook"

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "lendbook"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class OutputConfig:
    """Output configuration."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class EngineConfig:
    """Payment handling policy applied by the payment service."""

    credit_excess_to_advance: bool = True
    default_payment_mode: PaymentMode = PaymentMode.CASH
    event_source: str = "lendbook.payments"


@dataclass
class ScenarioConfig:
    """Configuration for sample portfolio generation."""

    name: str
    num_customers: int = 20
    num_mahajans: int = 5
    num_bill_customers: int = 5
    instruments_per_counterparty: int = 2
    payments_per_counterparty: int = 4
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class LendbookConfig:
    """Main configuration for lendbook."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LendbookConfig":
        """Create config from environment variables."""
        import os

        try:
            kafka = KafkaConfig(
                bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
                acks=os.getenv("KAFKA_ACKS", "all"),
                topic_prefix=os.getenv("TOPIC_PREFIX", "lendbook"),
            )

            postgres = PostgresConfig(
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "lendbook"),
                user=os.getenv("POSTGRES_USER", "postgres"),
                password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            )

            output = OutputConfig(
                json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
                pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
            )

            engine = EngineConfig(
                credit_excess_to_advance=(
                    os.getenv("CREDIT_EXCESS_TO_ADVANCE", "true").lower() == "true"
                ),
                default_payment_mode=PaymentMode(os.getenv("DEFAULT_PAYMENT_MODE", "cash")),
            )

            seed = int(os.getenv("SEED")) if os.getenv("SEED") else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e

        return cls(
            kafka=kafka,
            postgres=postgres,
            output=output,
            engine=engine,
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
