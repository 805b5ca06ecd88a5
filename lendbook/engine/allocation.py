"""Payment allocator: split one payment into transaction inserts.

Two strategies are supported:

``SEQUENTIAL``
    Spread the payment over every open instrument of a counterparty,
    oldest ``instrument_date`` first (ties by id). Each instrument takes
    interest first, then principal. Whatever cannot be placed is
    returned as ``remainder`` for the caller to credit or report.

``SINGLE``
    Pay one user-selected instrument: interest first, the rest as
    principal. The caller validates the amount against the outstanding
    beforehand; a locked or closed target is rejected.

Failures are returned on the result (``error``), never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from lendbook.engine.balance import compute_outstanding
from lendbook.engine.money import ZERO, is_positive, money, to_decimal
from lendbook.models.lending import (
    AllocationErrorKind,
    AllocationStrategy,
    CreditInstrument,
    PaymentMode,
    Transaction,
    TransactionInsert,
    TransactionType,
)

logger = logging.getLogger(__name__)

# Split rows are labelled so statements can tell them apart
PORTION_LABELS = {
    TransactionType.INTEREST: "Interest portion",
    TransactionType.PRINCIPAL: "Principal portion",
}


@dataclass(frozen=True)
class Payment:
    """A payment as submitted by the user."""

    amount: Any  # Decimal, or raw user input that may not be numeric
    mode: PaymentMode | None  # None: PaymentService fills in its configured default
    date: date
    notes: str | None = None


def portion_notes(notes: str | None, transaction_type: TransactionType) -> str | None:
    """Append the portion label for ``transaction_type`` to user notes."""
    label = PORTION_LABELS.get(transaction_type)
    if label is None:
        return notes
    return f"{notes} ({label})" if notes else label


def strip_portion_label(notes: str | None) -> str | None:
    """Recover the user notes from a labelled split row."""
    if notes is None:
        return None
    for label in PORTION_LABELS.values():
        if notes == label:
            return None
        suffix = f" ({label})"
        if notes.endswith(suffix):
            return notes[: -len(suffix)]
    return notes


def _sort_key(instrument: CreditInstrument) -> tuple[bool, date, str]:
    anchor = instrument.instrument_date
    if isinstance(anchor, datetime):
        anchor = anchor.date()
    return (anchor is None, anchor or date.max, instrument.instrument_id)


@dataclass
class AllocationResult:
    """Transaction inserts produced for one payment."""

    entries: list[TransactionInsert] = field(default_factory=list)
    remainder: Decimal = ZERO
    error: AllocationErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def allocated(self) -> Decimal:
        """Total amount placed on instruments."""
        return sum((entry.amount for entry in self.entries), ZERO)

    @property
    def has_excess(self) -> bool:
        """True when part of an accepted payment could not be placed."""
        return self.ok and self.remainder > ZERO


def _validated_amount(payment: Payment) -> Decimal | None:
    amount = to_decimal(payment.amount)
    if not amount.is_finite():
        return None
    amount = money(amount)
    return amount if is_positive(amount) else None


def _entry(
    instrument: CreditInstrument,
    amount: Decimal,
    transaction_type: TransactionType,
    payment: Payment,
) -> TransactionInsert:
    return TransactionInsert(
        instrument_id=instrument.instrument_id,
        amount=amount,
        transaction_type=transaction_type,
        payment_mode=payment.mode,
        payment_date=payment.date,
        notes=portion_notes(payment.notes, transaction_type),
    )


def allocate_sequential(
    payment: Payment,
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    now: date | datetime | None = None,
) -> AllocationResult:
    """Distribute ``payment`` over open instruments, oldest first.

    Parameters
    ----------
    payment : Payment
        Amount, mode, date and notes to record.
    instruments : Iterable[CreditInstrument]
        Candidate instruments of one counterparty. Inactive and locked
        instruments are skipped.
    transactions_by_instrument : Mapping[str, list[Transaction]]
        Recorded transactions keyed by instrument id.
    now : date | datetime | None
        Evaluation time for interest accrual.

    Returns
    -------
    AllocationResult
        Inserts in application order and the unallocated remainder.
    """
    amount = _validated_amount(payment)
    if amount is None:
        logger.debug("Rejected payment amount %r", payment.amount)
        return AllocationResult(error=AllocationErrorKind.INVALID_AMOUNT)

    open_items: list[tuple[CreditInstrument, Decimal, Decimal]] = []
    for instrument in instruments:
        if not instrument.is_active or instrument.locked:
            continue
        outstanding = compute_outstanding(
            instrument,
            transactions_by_instrument.get(instrument.instrument_id, []),
            now,
        )
        # Negative accrued interest can close an instrument that still has a balance
        if outstanding.is_closed or outstanding.payable <= ZERO:
            continue
        open_items.append(
            (instrument, outstanding.payable_interest, outstanding.payable_balance)
        )

    if not open_items:
        return AllocationResult(
            remainder=amount,
            error=AllocationErrorKind.NO_OUTSTANDING_BALANCE,
        )

    open_items.sort(key=lambda item: _sort_key(item[0]))

    result = AllocationResult()
    remainder = amount
    for instrument, interest, balance in open_items:
        if remainder <= ZERO:
            break
        if interest > ZERO:
            portion = min(remainder, interest)
            result.entries.append(_entry(instrument, portion, TransactionType.INTEREST, payment))
            remainder -= portion
        if balance > ZERO and remainder > ZERO:
            portion = min(remainder, balance)
            result.entries.append(_entry(instrument, portion, instrument.repayment_type, payment))
            remainder -= portion

    result.remainder = remainder
    if remainder > ZERO:
        logger.info("Payment exceeds outstanding by %s; remainder left unallocated", remainder)
    return result


def allocate_single(
    payment: Payment,
    instrument: CreditInstrument,
    transactions: Iterable[Transaction],
    now: date | datetime | None = None,
) -> AllocationResult:
    """Split ``payment`` on one instrument into interest and principal."""
    amount = _validated_amount(payment)
    if amount is None:
        return AllocationResult(error=AllocationErrorKind.INVALID_AMOUNT)
    if instrument.locked:
        return AllocationResult(remainder=amount, error=AllocationErrorKind.INSTRUMENT_LOCKED)

    outstanding = compute_outstanding(instrument, transactions, now)
    if not instrument.is_active or outstanding.is_closed:
        return AllocationResult(remainder=amount, error=AllocationErrorKind.INSTRUMENT_CLOSED)

    interest_portion = min(amount, outstanding.payable_interest)
    principal_portion = amount - interest_portion

    result = AllocationResult()
    if interest_portion > ZERO:
        result.entries.append(_entry(instrument, interest_portion, TransactionType.INTEREST, payment))
    if principal_portion > ZERO:
        result.entries.append(
            _entry(instrument, principal_portion, instrument.repayment_type, payment)
        )
    return result


def allocate(
    payment: Payment,
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    strategy: AllocationStrategy = AllocationStrategy.SEQUENTIAL,
    now: date | datetime | None = None,
) -> AllocationResult:
    """Allocate ``payment`` with the given strategy.

    ``SINGLE`` expects exactly one instrument.
    """
    if strategy == AllocationStrategy.SINGLE:
        candidates = list(instruments)
        if len(candidates) != 1:
            raise ValueError(f"Single-instrument allocation needs 1 instrument, got {len(candidates)}")
        target = candidates[0]
        return allocate_single(
            payment,
            target,
            transactions_by_instrument.get(target.instrument_id, []),
            now,
        )
    return allocate_sequential(payment, instruments, transactions_by_instrument, now)
