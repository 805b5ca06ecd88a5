"""Tests for sample data generators and the portfolio scenario."""

import logging
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from lendbook.config import EngineConfig, ScenarioConfig
from lendbook.events import EVENT_TYPES, EventChannel
from lendbook.generators import CounterpartyGenerator, InstrumentGenerator, PaymentGenerator
from lendbook.models.lending import (
    CounterpartyKind,
    InstrumentKind,
    InterestType,
    TransactionType,
)
from lendbook.scenarios import LendingPortfolioScenario
from lendbook.store import LendingDataStore
from scripts.load_data import copy_store, create_topics

AS_OF = date(2024, 6, 15)


class TestCounterpartyGenerator:
    """Tests for CounterpartyGenerator."""

    def test_reproducible_with_seed(self, seed: int) -> None:
        """Test same seed produces same counterparties."""
        first = CounterpartyGenerator(seed=seed, as_of=AS_OF).generate()
        second = CounterpartyGenerator(seed=seed, as_of=AS_OF).generate()

        assert first.counterparty_id == second.counterparty_id
        assert first.name == second.name
        assert first.payment_day == second.payment_day

    def test_payment_day_only_for_customers(self, seed: int) -> None:
        """Test daywise collection days are only set for loan customers."""
        gen = CounterpartyGenerator(seed=seed)

        assert gen.generate(CounterpartyKind.CUSTOMER).payment_day is not None
        assert gen.generate(CounterpartyKind.MAHAJAN).payment_day is None
        assert gen.generate(CounterpartyKind.BILL_CUSTOMER).payment_day is None

    def test_generate_batch(self, seed: int) -> None:
        counterparties = list(CounterpartyGenerator(seed=seed).generate_batch(5, CounterpartyKind.MAHAJAN))

        assert len(counterparties) == 5
        assert len({c.counterparty_id for c in counterparties}) == 5
        assert all(c.kind == CounterpartyKind.MAHAJAN for c in counterparties)


class TestInstrumentGenerator:
    """Tests for InstrumentGenerator."""

    @pytest.mark.parametrize(
        "counterparty_kind, instrument_kind",
        [
            (CounterpartyKind.CUSTOMER, InstrumentKind.LOAN),
            (CounterpartyKind.MAHAJAN, InstrumentKind.BILL),
            (CounterpartyKind.BILL_CUSTOMER, InstrumentKind.SALE),
        ],
    )
    def test_kind_follows_counterparty(self, seed: int, counterparty_kind, instrument_kind) -> None:
        """Test each counterparty kind gets its instrument kind."""
        counterparty = CounterpartyGenerator(seed=seed).generate(counterparty_kind)

        instrument = InstrumentGenerator(seed=seed, as_of=AS_OF).generate(counterparty)

        assert instrument.kind == instrument_kind
        assert instrument.counterparty_id == counterparty.counterparty_id

    def test_loan_terms(self, seed: int, customer) -> None:
        """Test loans carry a processing fee folded into the snapshot and an EMI."""
        gen = InstrumentGenerator(seed=seed, as_of=AS_OF)

        for _ in range(20):
            loan = gen.generate(customer)
            assert loan.processing_fee is not None
            assert loan.total_outstanding == loan.principal_amount + loan.processing_fee
            assert loan.emi_amount is not None and loan.emi_amount > 0
            assert date(2023, 6, 16) <= loan.instrument_date <= date(2024, 5, 16)
            if loan.interest_type == InterestType.NONE:
                assert loan.interest_rate == Decimal("0")
            else:
                assert loan.interest_rate > 0

    def test_sales_are_interest_free(self, seed: int) -> None:
        counterparty = CounterpartyGenerator(seed=seed).generate(CounterpartyKind.BILL_CUSTOMER)
        gen = InstrumentGenerator(seed=seed, as_of=AS_OF)

        sales = [gen.generate(counterparty) for _ in range(10)]

        assert {s.interest_type for s in sales} == {InterestType.NONE}
        assert all(s.total_outstanding is None for s in sales)

    def test_explicit_date(self, seed: int, customer) -> None:
        loan = InstrumentGenerator(seed=seed).generate(customer, instrument_date=date(2024, 1, 1))

        assert loan.instrument_date == date(2024, 1, 1)
        assert loan.due_date == date(2024, 12, 31)


class TestPaymentGenerator:
    """Tests for PaymentGenerator."""

    def test_schedule_in_date_order(self, seed: int) -> None:
        """Test payments are ordered and fall between start and as_of."""
        gen = PaymentGenerator(seed=seed, as_of=AS_OF)

        payments = gen.generate_schedule(date(2024, 1, 1), 10, Decimal("1000"))

        dates = [p.date for p in payments]
        assert dates == sorted(dates)
        assert all(date(2024, 1, 1) < d <= AS_OF for d in dates)

    def test_amounts_around_typical(self, seed: int) -> None:
        """Test amounts are whole rupees within 50-150% of typical."""
        gen = PaymentGenerator(seed=seed, as_of=AS_OF)

        payments = gen.generate_schedule(date(2024, 1, 1), 50, Decimal("1000"))

        for payment in payments:
            assert Decimal("500") <= payment.amount <= Decimal("1500")
            assert payment.amount == payment.amount.to_integral_value()

    def test_tiny_typical_amount(self, seed: int) -> None:
        payments = PaymentGenerator(seed=seed, as_of=AS_OF).generate_schedule(
            date(2024, 6, 1), 3, Decimal("0.10")
        )

        assert all(p.amount == Decimal("1") for p in payments)


@pytest.fixture
def small_config() -> ScenarioConfig:
    """Small portfolio evaluated at a fixed date."""
    return ScenarioConfig(
        name="test",
        num_customers=4,
        num_mahajans=2,
        num_bill_customers=2,
        instruments_per_counterparty=2,
        payments_per_counterparty=3,
        end_date=AS_OF,
    )


class TestLendingPortfolioScenario:
    """Tests for LendingPortfolioScenario."""

    def test_generate_populates_store(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test counterparties, instruments and allocator-written transactions."""
        scenario = LendingPortfolioScenario(small_config, seed=seed)

        store = scenario.generate()

        assert len(store.counterparties) == 8
        assert len(store.instruments) == 16
        assert len(store.transactions) > 0
        kinds = {i.kind for i in store.instruments.values()}
        assert kinds == {InstrumentKind.LOAN, InstrumentKind.BILL, InstrumentKind.SALE}

    def test_generate_logs_store_counts(self, small_config: ScenarioConfig, seed: int, caplog) -> None:
        scenario = LendingPortfolioScenario(small_config, seed=seed)

        with caplog.at_level(logging.INFO, logger="lendbook.scenarios.portfolio"):
            store = scenario.generate()

        stats = store.get_stats()
        expected = f"Generated {stats['instruments']} instruments, {stats['transactions']} transactions"
        assert expected in caplog.text

    def test_sales_repaid_with_payment_rows(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test principal-type rows only appear on loans and bills."""
        store = LendingPortfolioScenario(small_config, seed=seed).generate()

        for txn in store.transactions.values():
            kind = store.get_instrument(txn.instrument_id).kind
            if txn.transaction_type == TransactionType.PAYMENT:
                assert kind == InstrumentKind.SALE
            elif txn.transaction_type == TransactionType.PRINCIPAL:
                assert kind != InstrumentKind.SALE

    def test_reproducible(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test the same seed produces the same summary."""
        first = LendingPortfolioScenario(small_config, seed=seed)
        second = LendingPortfolioScenario(small_config, seed=seed)
        first.generate()
        second.generate()

        assert first.get_portfolio_summary() == second.get_portfolio_summary()

    def test_start_date_bounds_instruments(self, seed: int) -> None:
        config = ScenarioConfig(
            name="bounded",
            num_customers=3,
            num_mahajans=0,
            num_bill_customers=0,
            start_date=date(2024, 3, 1),
            end_date=AS_OF,
        )

        store = LendingPortfolioScenario(config, seed=seed).generate()

        assert all(date(2024, 3, 1) <= i.instrument_date <= AS_OF for i in store.instruments.values())

    def test_events_published(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test the scenario replays payments through the given channel."""
        events = EventChannel()
        scenario = LendingPortfolioScenario(small_config, seed=seed, events=events)

        scenario.generate()

        created = [e for e in events.history if e.event_type == "transaction.created"]
        assert len(created) == len(scenario.store.transactions)

    def test_no_advance_when_disabled(self, small_config: ScenarioConfig, seed: int) -> None:
        scenario = LendingPortfolioScenario(
            small_config, seed=seed, engine_config=EngineConfig(credit_excess_to_advance=False)
        )

        store = scenario.generate()

        assert store.advance_entries == []

    def test_portfolio_summary(self, small_config: ScenarioConfig, seed: int) -> None:
        scenario = LendingPortfolioScenario(small_config, seed=seed)
        scenario.generate()

        summary = scenario.get_portfolio_summary()

        assert summary["scenario"] == "test"
        assert summary["as_of"] == "2024-06-15"
        assert summary["total_instruments"] == 16
        assert sum(summary["instrument_kind_distribution"].values()) == 16
        assert Decimal(summary["net_outstanding"]) == (
            Decimal(summary["gross_outstanding"]) - Decimal(summary["advance_payments"])
        )

    def test_empty_summary(self) -> None:
        assert LendingPortfolioScenario(ScenarioConfig(name="empty")).get_portfolio_summary() == {}

    def test_export(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test each sink receives every entity topic."""
        scenario = LendingPortfolioScenario(small_config, seed=seed)
        scenario.generate()
        sink = MagicMock()

        scenario.export([sink])

        topics = [c.args[0] for c in sink.write_batch.call_args_list]
        assert topics == ["counterparties", "instruments", "transactions", "advance_payment_entries"]


class TestCopyStore:
    """Tests for copying a generated book into another store."""

    def test_copy_preserves_book(self, small_config: ScenarioConfig, seed: int) -> None:
        """Test rows and final instrument flags survive the copy."""
        scenario = LendingPortfolioScenario(small_config, seed=seed)
        source = scenario.generate()
        first = next(iter(source.instruments.values()))
        scenario.service.lock_instrument(first.instrument_id)
        target = LendingDataStore()

        counts = copy_store(source, target)

        assert counts["transactions"] == len(source.transactions) == len(target.transactions)
        assert counts["closed_or_locked"] >= 1
        for instrument_id, instrument in source.instruments.items():
            copied = target.get_instrument(instrument_id)
            assert copied.is_active == instrument.is_active
            assert copied.locked == instrument.locked
        assert target.get_stats()["advance_entries"] == len(source.advance_entries)


class TestCreateTopics:
    """Tests for Kafka topic creation in the load script."""

    @patch("scripts.load_data.AdminClient")
    def test_creates_missing_topics(self, mock_admin_class: MagicMock) -> None:
        """Test only topics not yet on the broker are created."""
        admin = mock_admin_class.return_value
        admin.list_topics.return_value.topics = {"lendbook.transaction.created": MagicMock()}
        admin.create_topics.side_effect = lambda topics: {t.topic: MagicMock() for t in topics}

        created = create_topics("kafka:9092", "lendbook")

        mock_admin_class.assert_called_once_with({"bootstrap.servers": "kafka:9092"})
        assert "lendbook.transaction.created" not in created
        assert len(created) == len(EVENT_TYPES) - 1

    @patch("scripts.load_data.AdminClient")
    def test_nothing_to_create(self, mock_admin_class: MagicMock) -> None:
        admin = mock_admin_class.return_value
        admin.list_topics.return_value.topics = {f"lendbook.{t}": MagicMock() for t in EVENT_TYPES}

        assert create_topics("kafka:9092", "lendbook") == []
        admin.create_topics.assert_not_called()
