"""Derived instrument and counterparty status.

"Closed" is derived from the recomputed outstanding. The persisted
``is_active`` flag is brought in line by ``plan_status_updates``, which the
payment service runs after every payment write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping

from lendbook.engine.balance import Outstanding, compute_outstanding
from lendbook.engine.money import ZERO, is_positive, money, positive_part, to_decimal
from lendbook.models.lending import (
    AllocationErrorKind,
    CollectionState,
    Counterparty,
    CreditInstrument,
    Transaction,
)


@dataclass(frozen=True)
class CounterpartySummary:
    """Outstanding owed by one counterparty across its active instruments."""

    gross_outstanding: Decimal
    advance_payment: Decimal
    net_outstanding: Decimal
    open_instruments: int


@dataclass(frozen=True)
class CollectionStatus:
    """EMI collection position of one counterparty for a day."""

    emi_due: Decimal
    collected: Decimal
    pending: Decimal
    state: CollectionState


def is_closed(outstanding: Outstanding) -> bool:
    """True when ``balance + interest <= 0``."""
    return outstanding.is_closed


def outstanding_by_instrument(
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    now: date | datetime | None = None,
) -> dict[str, Outstanding]:
    """Compute ``Outstanding`` for each instrument, keyed by instrument id."""
    return {
        instrument.instrument_id: compute_outstanding(
            instrument,
            transactions_by_instrument.get(instrument.instrument_id, []),
            now,
        )
        for instrument in instruments
    }


def plan_status_updates(
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    now: date | datetime | None = None,
) -> list[str]:
    """Return ids of active instruments whose outstanding has reached zero.

    Only active -> inactive transitions are planned; reopening an
    instrument is always an explicit user action.
    """
    to_close = []
    for instrument in instruments:
        if not instrument.is_active:
            continue
        outstanding = compute_outstanding(
            instrument,
            transactions_by_instrument.get(instrument.instrument_id, []),
            now,
        )
        if outstanding.is_closed:
            to_close.append(instrument.instrument_id)
    return to_close


def counterparty_outstanding(
    counterparty: Counterparty,
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    now: date | datetime | None = None,
) -> CounterpartySummary:
    """Sum outstanding over active instruments, net of advance payment.

    The advance payment only offsets the displayed figure; instrument
    balances are untouched. Closed instruments contribute nothing.
    """
    gross = ZERO
    open_count = 0
    for instrument in instruments:
        if not instrument.is_active:
            continue
        outstanding = compute_outstanding(
            instrument,
            transactions_by_instrument.get(instrument.instrument_id, []),
            now,
        )
        total = positive_part(outstanding.total_outstanding)
        if total > ZERO:
            gross += total
            open_count += 1

    gross = money(gross)
    advance = money(positive_part(to_decimal(counterparty.advance_payment)))
    return CounterpartySummary(
        gross_outstanding=gross,
        advance_payment=advance,
        net_outstanding=money(gross - advance),
        open_instruments=open_count,
    )


def collection_status(
    instruments: Iterable[CreditInstrument],
    transactions_by_instrument: Mapping[str, list[Transaction]],
    on_date: date,
) -> CollectionStatus:
    """Compare the EMI due from active instruments with payments on ``on_date``."""
    emi_due = ZERO
    collected = ZERO
    for instrument in instruments:
        if not instrument.is_active:
            continue
        emi_due += positive_part(to_decimal(instrument.emi_amount))
        for txn in transactions_by_instrument.get(instrument.instrument_id, []):
            if txn.payment_date == on_date:
                collected += to_decimal(txn.amount)

    if emi_due <= ZERO:
        state = CollectionState.NOT_DUE
    elif collected <= ZERO:
        state = CollectionState.PENDING
    elif collected < emi_due:
        state = CollectionState.PAID_LESS
    elif collected == emi_due:
        state = CollectionState.PAID
    else:
        state = CollectionState.PAID_MORE

    return CollectionStatus(
        emi_due=money(emi_due),
        collected=money(collected),
        pending=money(positive_part(emi_due - collected)),
        state=state,
    )


def validate_payment_amount(amount: Decimal, outstanding: Outstanding) -> AllocationErrorKind | None:
    """Caller-side guard run before a single-instrument payment.

    Returns ``INVALID_AMOUNT`` for non-positive amounts and for amounts
    above what the instrument still owes.
    """
    amount = to_decimal(amount)
    if not amount.is_finite() or not is_positive(money(amount)):
        return AllocationErrorKind.INVALID_AMOUNT
    if money(amount) > outstanding.payable:
        return AllocationErrorKind.INVALID_AMOUNT
    return None
