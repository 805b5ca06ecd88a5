"""Transaction models for lending domain."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from lendbook.models.lending.enums import PaymentMode, TransactionType


@dataclass
class Transaction:
    """Recorded payment, interest collection or refund against one instrument."""

    transaction_id: str
    instrument_id: str
    amount: Decimal
    transaction_type: TransactionType
    payment_mode: PaymentMode
    payment_date: date
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class TransactionInsert:
    """Unsaved transaction row produced by the payment allocator."""

    instrument_id: str
    amount: Decimal
    transaction_type: TransactionType
    payment_mode: PaymentMode
    payment_date: date
    notes: str | None = None

    def to_transaction(self, transaction_id: str) -> Transaction:
        """Materialize the insert with a store-assigned id."""
        return Transaction(
            transaction_id=transaction_id,
            instrument_id=self.instrument_id,
            amount=self.amount,
            transaction_type=self.transaction_type,
            payment_mode=self.payment_mode,
            payment_date=self.payment_date,
            notes=self.notes,
        )
