"""Counterparty models for lending domain."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from lendbook.models.lending.enums import CounterpartyKind, PaymentMode


@dataclass
class Counterparty:
    """Customer, mahajan or bill customer holding credit instruments."""

    counterparty_id: str
    kind: CounterpartyKind
    name: str
    phone: str | None = None
    address: str | None = None
    payment_day: str | None = None  # Weekday name for daywise collection
    advance_payment: Decimal = Decimal("0")
    created_at: datetime | None = None


@dataclass
class AdvancePaymentEntry:
    """Audit row for excess payment credited to a counterparty."""

    entry_id: str
    counterparty_id: str
    amount: Decimal
    payment_date: date
    payment_mode: PaymentMode
    notes: str | None = None
    created_at: datetime | None = None
