"""Credit instrument model (loan, bill or sale)."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from lendbook.models.lending.enums import (
    BaseAmountSource,
    EmiFrequency,
    InstrumentKind,
    InterestType,
    TransactionType,
)


@dataclass
class CreditInstrument:
    """A single credit extension with its own principal and interest policy.

    Loans, bills and sales share this shape. ``instrument_date`` anchors
    interest accrual and never changes after creation. ``total_outstanding``
    is the amount owed at inception (principal plus fees) when the row
    carries one.
    """

    instrument_id: str
    counterparty_id: str
    kind: InstrumentKind
    principal_amount: Decimal
    interest_rate: Decimal  # Percent per period (e.g., 2 for 2%)
    interest_type: InterestType
    instrument_date: date | None
    is_active: bool = True
    locked: bool = False
    processing_fee: Decimal | None = None
    total_outstanding: Decimal | None = None
    emi_amount: Decimal | None = None
    emi_frequency: EmiFrequency = EmiFrequency.WEEKLY
    due_date: date | None = None
    description: str = ""
    version: int = 0  # Bumped on every row update
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def base_amount_source(self) -> BaseAmountSource:
        """Field the principal balance is computed from."""
        if self.total_outstanding is not None:
            return BaseAmountSource.SNAPSHOT
        return BaseAmountSource.PRINCIPAL

    @property
    def base_amount(self) -> Decimal:
        """Amount owed before any transaction."""
        if self.base_amount_source is BaseAmountSource.SNAPSHOT:
            return self.total_outstanding
        return self.principal_amount

    @property
    def repayment_type(self) -> TransactionType:
        """Transaction type recorded when principal is repaid."""
        if self.kind == InstrumentKind.SALE:
            return TransactionType.PAYMENT
        return TransactionType.PRINCIPAL

    @property
    def is_open(self) -> bool:
        """True when the instrument accepts new payments and edits."""
        return self.is_active and not self.locked
