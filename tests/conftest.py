"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest

from lendbook.engine import Payment
from lendbook.models.lending import (
    Counterparty,
    CounterpartyKind,
    CreditInstrument,
    InstrumentKind,
    InterestType,
    PaymentMode,
    Transaction,
    TransactionType,
)
from lendbook.store.memory import LendingDataStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def now() -> date:
    """Fixed evaluation date."""
    return date(2024, 6, 15)


@pytest.fixture
def customer() -> Counterparty:
    """Sample loan customer."""
    return Counterparty(
        counterparty_id="cust-001",
        kind=CounterpartyKind.CUSTOMER,
        name="Ramesh Kumar",
        phone="+91 98765 43210",
        payment_day="monday",
    )


@pytest.fixture
def make_instrument() -> Callable[..., CreditInstrument]:
    """Factory for instruments with sensible defaults."""

    def _make(instrument_id: str = "loan-001", **overrides: Any) -> CreditInstrument:
        fields: dict[str, Any] = {
            "instrument_id": instrument_id,
            "counterparty_id": "cust-001",
            "kind": InstrumentKind.LOAN,
            "principal_amount": Decimal("1000"),
            "interest_rate": Decimal("12"),
            "interest_type": InterestType.MONTHLY,
            "instrument_date": date(2024, 4, 15),
        }
        fields.update(overrides)
        return CreditInstrument(**fields)

    return _make


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """Factory for recorded transactions."""
    counter = {"n": 0}

    def _make(
        instrument_id: str,
        amount: str | Decimal,
        transaction_type: TransactionType = TransactionType.PRINCIPAL,
        payment_date: date = date(2024, 5, 1),
    ) -> Transaction:
        counter["n"] += 1
        return Transaction(
            transaction_id=f"txn-{counter['n']:03d}",
            instrument_id=instrument_id,
            amount=Decimal(amount),
            transaction_type=transaction_type,
            payment_mode=PaymentMode.CASH,
            payment_date=payment_date,
        )

    return _make


@pytest.fixture
def make_payment(now: date) -> Callable[..., Payment]:
    """Factory for cash payments dated ``now``."""

    def _make(amount: Any, notes: str | None = None) -> Payment:
        if isinstance(amount, str):
            amount = Decimal(amount)
        return Payment(amount=amount, mode=PaymentMode.CASH, date=now, notes=notes)

    return _make


@pytest.fixture
def store(customer: Counterparty) -> LendingDataStore:
    """Fresh in-memory store holding the sample customer."""
    data_store = LendingDataStore()
    data_store.add_counterparty(customer)
    return data_store
