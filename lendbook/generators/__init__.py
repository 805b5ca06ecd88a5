"""Sample data generators for the lending domain."""

from lendbook.generators.lending import (
    CounterpartyGenerator,
    InstrumentGenerator,
    PaymentGenerator,
)

__all__ = [
    "CounterpartyGenerator",
    "InstrumentGenerator",
    "PaymentGenerator",
]
