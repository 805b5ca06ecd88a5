"""
Property-based tests for the balance calculator and allocator.

INVARIANTS:
    balance(txns + [principal x]) = balance(txns) - x
    interest = 0 when interest_type is none or rate is 0
    a <= Σ payable  ⟹  Σ entries = a and remainder = 0
    principal is only paid on an instrument once its interest is cleared
    payments are applied oldest instrument_date first
    compute_outstanding is a pure function of its inputs
"""

from datetime import date
from decimal import Decimal

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from lendbook.engine import Payment, allocate_sequential, allocate_single, compute_outstanding
from lendbook.models.lending import (
    CreditInstrument,
    InstrumentKind,
    InterestType,
    PaymentMode,
    Transaction,
    TransactionType,
)

NOW = date(2024, 6, 15)


# =============================================================================
# STRATEGIES
# =============================================================================

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("1000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

rates = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("36"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

instrument_dates = st.dates(min_value=date(2022, 1, 1), max_value=date(2024, 6, 14))


@st.composite
def instruments(draw, instrument_id: str = "inst-0", instrument_date: date | None = None):
    """Generate an open instrument dated before ``NOW``."""
    kind = draw(st.sampled_from(list(InstrumentKind)))
    return CreditInstrument(
        instrument_id=instrument_id,
        counterparty_id="cp-1",
        kind=kind,
        principal_amount=draw(amounts),
        interest_rate=draw(rates),
        interest_type=draw(st.sampled_from(list(InterestType))),
        instrument_date=instrument_date or draw(instrument_dates),
    )


@st.composite
def books(draw, min_size: int = 1, max_size: int = 4):
    """Generate a counterparty's open instruments with unique ids."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    return [draw(instruments(instrument_id=f"inst-{i}")) for i in range(size)]


def _transaction(instrument_id: str, amount: Decimal, transaction_type: TransactionType) -> Transaction:
    return Transaction(
        transaction_id=f"t-{transaction_type.value}",
        instrument_id=instrument_id,
        amount=amount,
        transaction_type=transaction_type,
        payment_mode=PaymentMode.CASH,
        payment_date=NOW,
    )


def _payment(amount: Decimal) -> Payment:
    return Payment(amount=amount, mode=PaymentMode.BANK, date=NOW)


# =============================================================================
# BALANCE CALCULATOR
# =============================================================================


class TestBalanceConservation:
    """Principal and refund rows move the balance by exactly their amount."""

    @given(instrument=instruments(), x=amounts)
    def test_principal_decreases_balance(self, instrument, x) -> None:
        """Test a principal row lowers the balance by x."""
        before = compute_outstanding(instrument, [], NOW)
        after = compute_outstanding(
            instrument, [_transaction(instrument.instrument_id, x, TransactionType.PRINCIPAL)], NOW
        )
        assert before.balance - after.balance == x

    @given(instrument=instruments(), x=amounts)
    def test_refund_increases_balance(self, instrument, x) -> None:
        """Test a refund row raises the balance by x."""
        before = compute_outstanding(instrument, [], NOW)
        after = compute_outstanding(
            instrument, [_transaction(instrument.instrument_id, x, TransactionType.REFUND)], NOW
        )
        assert after.balance - before.balance == x


class TestZeroInterest:
    """Interest-free terms never accrue."""

    @given(instrument=instruments(), paid=amounts)
    def test_none_type(self, instrument, paid) -> None:
        """Test interest_type none gives zero interest."""
        instrument.interest_type = InterestType.NONE
        txns = [_transaction(instrument.instrument_id, paid, TransactionType.PRINCIPAL)]
        assert compute_outstanding(instrument, txns, NOW).interest == 0

    @given(instrument=instruments())
    def test_zero_rate(self, instrument) -> None:
        """Test a zero rate gives zero interest for every interest type."""
        instrument.interest_rate = Decimal("0")
        assert compute_outstanding(instrument, [], NOW).interest == 0


class TestIdempotentRead:
    """compute_outstanding has no hidden state."""

    @given(instrument=instruments(), paid=amounts)
    def test_same_inputs_same_result(self, instrument, paid) -> None:
        """Test two calls with the same inputs are identical."""
        txns = [_transaction(instrument.instrument_id, paid, TransactionType.PRINCIPAL)]
        first = compute_outstanding(instrument, txns, NOW)
        second = compute_outstanding(instrument, txns, NOW)

        assert first == second
        assert str(first.total_outstanding) == str(second.total_outstanding)


# =============================================================================
# ALLOCATOR
# =============================================================================


class TestAllocationExhaustiveness:
    """A payment within the outstanding is placed in full."""

    @settings(max_examples=200)
    @given(book=books(), fraction=st.fractions(min_value=0, max_value=1))
    def test_entries_sum_to_amount(self, book, fraction) -> None:
        """Test Σ entries equals the payment and nothing is left over."""
        payable = sum(compute_outstanding(i, [], NOW).payable for i in book)
        amount = (payable * Decimal(fraction.numerator) / Decimal(fraction.denominator)).quantize(
            Decimal("0.01")
        )
        assume(Decimal("0.01") <= amount <= payable)

        result = allocate_sequential(_payment(amount), book, {}, NOW)

        assert result.ok
        assert sum(e.amount for e in result.entries) == amount
        assert result.remainder == 0
        assert all(e.amount > 0 for e in result.entries)

    @given(book=books(), extra=amounts)
    def test_excess_is_remainder(self, book, extra) -> None:
        """Test an overpayment fills every instrument and returns the rest."""
        payable = sum(compute_outstanding(i, [], NOW).payable for i in book)
        result = allocate_sequential(_payment(payable + extra), book, {}, NOW)

        assert result.allocated == payable
        assert result.remainder == extra


class TestAllocationPrecedence:
    """Interest is cleared before principal on each instrument."""

    @given(book=books(), amount=amounts)
    def test_sequential(self, book, amount) -> None:
        """Test no principal row precedes full interest on its instrument."""
        result = allocate_sequential(_payment(amount), book, {}, NOW)
        by_id = {i.instrument_id: i for i in book}

        for instrument_id in {e.instrument_id for e in result.entries}:
            rows = [e for e in result.entries if e.instrument_id == instrument_id]
            principal_rows = [e for e in rows if e.transaction_type != TransactionType.INTEREST]
            if not principal_rows:
                continue
            owed = compute_outstanding(by_id[instrument_id], [], NOW).payable_interest
            paid_interest = sum(
                (e.amount for e in rows if e.transaction_type == TransactionType.INTEREST),
                Decimal("0"),
            )
            assert paid_interest == owed

    @given(instrument=instruments(), amount=amounts)
    def test_single(self, instrument, amount) -> None:
        """Test a single-instrument split pays interest first."""
        outstanding = compute_outstanding(instrument, [], NOW)
        result = allocate_single(_payment(amount), instrument, [], NOW)

        interest = sum(
            (e.amount for e in result.entries if e.transaction_type == TransactionType.INTEREST),
            Decimal("0"),
        )
        assert interest == min(amount, outstanding.payable_interest)
        assert result.allocated == amount


class TestOldestFirst:
    """Older instruments are paid before newer ones."""

    @given(
        dates=st.lists(instrument_dates, min_size=3, max_size=3, unique=True),
        data=st.data(),
    )
    def test_newest_untouched(self, dates, data) -> None:
        """Test paying the two oldest in full never touches the newest."""
        book = [
            data.draw(instruments(instrument_id=f"inst-{i}", instrument_date=d))
            for i, d in enumerate(dates)
        ]
        ordered = sorted(book, key=lambda i: i.instrument_date)
        amount = sum(compute_outstanding(i, [], NOW).payable for i in ordered[:2])

        result = allocate_sequential(_payment(amount), book, {}, NOW)

        touched = {e.instrument_id for e in result.entries}
        assert touched == {ordered[0].instrument_id, ordered[1].instrument_id}
        assert result.remainder == 0
