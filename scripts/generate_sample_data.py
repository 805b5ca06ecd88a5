#!/usr/bin/env python3
"""Generate a sample lending book as JSON files.

Runs ``LendingPortfolioScenario`` and writes one ``<entity>.json`` file per
entity type plus ``summary.json`` into the output folder. With ``--events``
every event published while replaying payments is also written as JSON
Lines, one file per event type.
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lendbook.config import ScenarioConfig
from lendbook.events import EventChannel
from lendbook.logging import setup_logging
from lendbook.scenarios import LendingPortfolioScenario
from lendbook.sinks import JsonFileSink


def print_summary(summary: dict, output_dir: Path) -> None:
    """Print generation summary."""
    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    for name, value in summary.items():
        print(f"{name + ':':32}{value}")
    print(f"\nAll files saved to: {output_dir}")
    print("=" * 60)


def main() -> None:
    """Generate all sample data files."""
    parser = argparse.ArgumentParser(description="Generate a sample lending book")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=project_root / "local",
        help="Directory for JSON output (default: ./local)",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--customers", type=int, default=10, help="Loan customers (default: 10)")
    parser.add_argument("--mahajans", type=int, default=3, help="Mahajans (default: 3)")
    parser.add_argument(
        "--bill-customers", type=int, default=3, help="Bill customers (default: 3)"
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference date, YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--events",
        action="store_true",
        help="Also write published events as JSON Lines",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    args = parser.parse_args()

    setup_logging(args.log_level)

    sink = JsonFileSink(args.output_dir, pretty=True)
    events = EventChannel(sinks=[sink] if args.events else None)
    config = ScenarioConfig(
        name="sample",
        num_customers=args.customers,
        num_mahajans=args.mahajans,
        num_bill_customers=args.bill_customers,
        end_date=args.as_of,
    )

    print("=" * 60)
    print("Generating Sample Lending Book")
    print("=" * 60)

    scenario = LendingPortfolioScenario(config, seed=args.seed, events=events)
    store = scenario.generate()

    sink.write_snapshot("counterparties", list(store.counterparties.values()))
    sink.write_snapshot("instruments", list(store.instruments.values()))
    sink.write_snapshot("transactions", list(store.transactions.values()))
    sink.write_snapshot("advance_payment_entries", store.advance_entries)

    summary = scenario.get_portfolio_summary()
    with open(args.output_dir / "summary.json", "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    sink.close()
    print_summary(summary, args.output_dir)


if __name__ == "__main__":
    main()
