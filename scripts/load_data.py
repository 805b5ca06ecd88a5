#!/usr/bin/env python3
"""Load a generated lending book to PostgreSQL and Kafka.

This script generates a lending portfolio and loads it to:
- PostgreSQL: counterparties, instruments, transactions, advance entries
- Kafka (optional): every event published while replaying payments,
  one topic per event type under the configured prefix

The portfolio is generated in memory first, then copied row by row.
Instruments are inserted open and unlocked so their transactions can be
written, then their final flags are applied through the version check.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from lendbook.config import LendbookConfig, ScenarioConfig
from lendbook.events import EVENT_TYPES, EventChannel
from lendbook.logging import setup_logging
from lendbook.scenarios import LendingPortfolioScenario
from lendbook.sinks import KafkaSink
from lendbook.store import LendingDataStore, LendingStore
from lendbook.store.postgres import PostgresLendingStore

logger = logging.getLogger(__name__)


def copy_store(source: LendingDataStore, target: LendingStore) -> dict[str, int]:
    """Copy every entity from an in-memory store into ``target``.

    Parameters
    ----------
    source : LendingDataStore
        Generated portfolio.
    target : LendingStore
        Destination store (normally PostgreSQL).

    Returns
    -------
    dict[str, int]
        Rows written per entity type.
    """
    for counterparty in source.counterparties.values():
        target.add_counterparty(counterparty)

    for instrument in source.instruments.values():
        target.add_instrument(replace(instrument, is_active=True, locked=False, version=0))

    for transaction in source.transactions.values():
        target.add_transaction(transaction)

    for entry in source.advance_entries:
        target.add_advance_entry(entry)

    flagged = 0
    for instrument in source.instruments.values():
        if instrument.is_active and not instrument.locked:
            continue
        stored = target.get_instrument(instrument.instrument_id)
        target.update_instrument(
            replace(stored, is_active=instrument.is_active, locked=instrument.locked),
            stored.version,
        )
        flagged += 1

    return {
        "counterparties": len(source.counterparties),
        "instruments": len(source.instruments),
        "transactions": len(source.transactions),
        "advance_payment_entries": len(source.advance_entries),
        "closed_or_locked": flagged,
    }


def create_topics(
    bootstrap_servers: str,
    topic_prefix: str,
    retention_hours: int = 168,
    replication_factor: int = 1,
) -> list[str]:
    """Create one Kafka topic per event type if missing.

    Parameters
    ----------
    bootstrap_servers : str
        Kafka bootstrap servers.
    topic_prefix : str
        Prefix shared with ``EventChannel.topic_prefix``.
    retention_hours : int
        Per-topic retention in hours (default: 168 = 7 days).
    replication_factor : int
        Topic replication factor (default: 1, use 3 for multi-broker clusters).

    Returns
    -------
    list[str]
        Names of the topics that were created.
    """
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    topic_config = {"retention.ms": str(retention_hours * 3600 * 1000)}

    # Events are keyed by instrument or counterparty, so a few partitions keep per-key order
    topics = [
        NewTopic(
            f"{topic_prefix}.{event_type}",
            num_partitions=3,
            replication_factor=replication_factor,
            config=topic_config,
        )
        for event_type in EVENT_TYPES
    ]

    existing = admin.list_topics(timeout=10).topics
    topics_to_create = [t for t in topics if t.topic not in existing]
    if not topics_to_create:
        logger.info("All topics already exist")
        return []

    created = []
    for topic, future in admin.create_topics(topics_to_create).items():
        try:
            future.result()
            logger.info("Created topic: %s", topic)
            created.append(topic)
        except KafkaException as e:
            logger.warning("Failed to create topic %s: %s", topic, e)
    return created


def main() -> None:
    """Main entry point."""
    env = LendbookConfig.from_env()

    parser = argparse.ArgumentParser(description="Load a generated lending book to PostgreSQL and Kafka")
    parser.add_argument(
        "--customers",
        type=int,
        default=100,
        help="Number of loan customers to generate (default: 100)",
    )
    parser.add_argument("--mahajans", type=int, default=20, help="Number of mahajans (default: 20)")
    parser.add_argument(
        "--bill-customers",
        type=int,
        default=20,
        help="Number of bill customers (default: 20)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=env.seed if env.seed is not None else 42,
        help="Random seed for reproducibility (default: SEED or 42)",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=env.postgres.connection_string,
        help="PostgreSQL connection string",
    )
    parser.add_argument(
        "--kafka-bootstrap",
        type=str,
        default=env.kafka.bootstrap_servers,
        help="Kafka bootstrap servers",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create PostgreSQL tables before loading",
    )
    parser.add_argument(
        "--skip-postgres",
        action="store_true",
        help="Skip PostgreSQL loading",
    )
    parser.add_argument(
        "--kafka",
        action="store_true",
        help="Publish payment events to Kafka",
    )
    parser.add_argument(
        "--create-topics",
        action="store_true",
        help="Create Kafka topics for every event type before publishing",
    )
    args = parser.parse_args()

    setup_logging(env.log_level)

    sinks = []
    kafka_sink = None
    if args.kafka:
        if args.create_topics:
            create_topics(args.kafka_bootstrap, env.kafka.topic_prefix)
        kafka_sink = KafkaSink(replace(env.kafka, bootstrap_servers=args.kafka_bootstrap))
        sinks.append(kafka_sink)
    events = EventChannel(
        source=env.engine.event_source,
        topic_prefix=env.kafka.topic_prefix,
        sinks=sinks,
    )

    t0 = time.perf_counter()
    scenario = LendingPortfolioScenario(
        ScenarioConfig(
            name="load",
            num_customers=args.customers,
            num_mahajans=args.mahajans,
            num_bill_customers=args.bill_customers,
        ),
        seed=args.seed,
        engine_config=env.engine,
        events=events,
    )
    store = scenario.generate()
    logger.info("Generated portfolio in %.1fs", time.perf_counter() - t0)

    if kafka_sink is not None:
        kafka_sink.flush()
        logger.info(
            "Kafka: %d sent, %d delivered, %d failed",
            kafka_sink.stats.sent,
            kafka_sink.stats.delivered,
            kafka_sink.stats.failed,
        )

    if not args.skip_postgres:
        target = PostgresLendingStore(args.postgres_url)
        try:
            if args.create_schema:
                target.create_schema()
            t0 = time.perf_counter()
            counts = copy_store(store, target)
            logger.info("Loaded to PostgreSQL in %.1fs: %s", time.perf_counter() - t0, counts)
        finally:
            target.close()

    events.close()
    for key, value in scenario.get_portfolio_summary().items():
        logger.info("%s: %s", key, value)


if __name__ == "__main__":
    main()
