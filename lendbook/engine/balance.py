"""Balance calculator: principal balance and accrued interest of an instrument.

Interest is never stored. It is recomputed on every read from the
current principal balance, the rate and the time elapsed since
``instrument_date``::

    daily:   balance * rate/100 * ceil(elapsed_ms / ms_per_day) / 365
    monthly: balance * rate/100 * (whole_months + (now.day - start.day) / 30)

The ceiling day count and the flat 30-day month are kept exactly as the
stored data was produced with them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable

from lendbook.engine.money import NAN, ZERO, is_non_positive, money, positive_part, to_decimal
from lendbook.models.lending import (
    PRINCIPAL_REDUCING_TYPES,
    CreditInstrument,
    InterestType,
    Transaction,
    TransactionType,
)

DAYS_IN_YEAR = Decimal(365)
DAYS_PER_MONTH = Decimal(30)
MS_PER_DAY = 24 * 60 * 60 * 1000
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class Outstanding:
    """Balance snapshot of one instrument at a point in time."""

    balance: Decimal
    interest: Decimal
    total_outstanding: Decimal

    @property
    def is_closed(self) -> bool:
        """True once nothing is owed; a NaN snapshot is never closed."""
        return is_non_positive(self.total_outstanding)

    @property
    def payable_interest(self) -> Decimal:
        """Interest a payment can settle, in whole cents."""
        return money(positive_part(self.interest))

    @property
    def payable_balance(self) -> Decimal:
        """Principal a payment can settle, in whole cents."""
        return money(positive_part(self.balance))

    @property
    def payable(self) -> Decimal:
        """Largest amount the allocator will place on this instrument."""
        return self.payable_interest + self.payable_balance


def _as_datetime(value: date | datetime, tzinfo=None) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=tzinfo)


def _resolve_now(now: date | datetime | None) -> datetime:
    if now is None:
        return datetime.now()
    return _as_datetime(now)


def elapsed_days(start: date | datetime, now: date | datetime) -> int:
    """Whole days from ``start`` to ``now``, rounded up at millisecond resolution.

    Any positive elapsed time counts as at least one day.
    """
    now_dt = _resolve_now(now)
    start_dt = _as_datetime(start, tzinfo=now_dt.tzinfo)
    elapsed_ms = (now_dt - start_dt) // timedelta(milliseconds=1)
    return -(-elapsed_ms // MS_PER_DAY)


def elapsed_months(start: date | datetime, now: date | datetime) -> Decimal:
    """Calendar months from ``start`` to ``now`` plus a 30-day fractional part.

    The fractional part is ``(now.day - start.day) / 30`` and may be
    negative when ``now`` falls earlier in its month than ``start``.
    """
    now_dt = _resolve_now(now)
    whole = (now_dt.year - start.year) * 12 + (now_dt.month - start.month)
    partial = Decimal(now_dt.day - start.day) / DAYS_PER_MONTH
    return Decimal(whole) + partial


def accrued_interest(
    balance: Decimal,
    rate: Decimal,
    interest_type: InterestType,
    start: date | datetime | None,
    now: date | datetime | None = None,
) -> Decimal:
    """Interest accrued on ``balance`` from ``start`` to ``now``.

    Returns zero for interest-free terms and ``Decimal('NaN')`` when the
    start date is missing or not a date.
    """
    rate = to_decimal(rate)
    if interest_type == InterestType.NONE or (rate.is_finite() and rate == ZERO):
        return ZERO
    if not isinstance(start, date):
        return NAN

    now_dt = _resolve_now(now)
    if interest_type == InterestType.DAILY:
        days = elapsed_days(start, now_dt)
        return balance * (rate / HUNDRED) * (Decimal(days) / DAYS_IN_YEAR)
    if interest_type == InterestType.MONTHLY:
        return balance * (rate / HUNDRED) * elapsed_months(start, now_dt)
    return ZERO


def principal_balance(
    instrument: CreditInstrument,
    transactions: Iterable[Transaction],
) -> Decimal:
    """Base amount minus principal repayments plus refunds.

    Transactions belonging to other instruments are ignored; interest and
    mixed rows do not move the principal balance.
    """
    paid = ZERO
    refunded = ZERO
    for txn in transactions:
        if txn.instrument_id != instrument.instrument_id:
            continue
        if txn.transaction_type in PRINCIPAL_REDUCING_TYPES:
            paid += to_decimal(txn.amount)
        elif txn.transaction_type == TransactionType.REFUND:
            refunded += to_decimal(txn.amount)

    base = to_decimal(instrument.base_amount)
    return base - paid + refunded


def compute_outstanding(
    instrument: CreditInstrument,
    transactions: Iterable[Transaction],
    now: date | datetime | None = None,
) -> Outstanding:
    """Compute balance, accrued interest and total outstanding as of ``now``.

    Parameters
    ----------
    instrument : CreditInstrument
        Loan, bill or sale to evaluate.
    transactions : Iterable[Transaction]
        Recorded transactions; rows for other instruments are skipped.
    now : date | datetime | None
        Evaluation time. Defaults to the current local time.

    Returns
    -------
    Outstanding
        ``balance``, ``interest`` and their sum.
    """
    balance = principal_balance(instrument, transactions)
    interest = accrued_interest(
        balance,
        instrument.interest_rate,
        instrument.interest_type,
        instrument.instrument_date,
        now,
    )
    return Outstanding(
        balance=balance,
        interest=interest,
        total_outstanding=balance + interest,
    )
