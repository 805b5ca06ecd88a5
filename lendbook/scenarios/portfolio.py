"""Lending portfolio scenario: counterparties, instruments and payment history."""

from __future__ import annotations

import logging
import random
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any

from lendbook.config import EngineConfig, ScenarioConfig
from lendbook.engine.money import ZERO, money
from lendbook.events import EventChannel
from lendbook.exceptions import PaymentRejectedError
from lendbook.generators import CounterpartyGenerator, InstrumentGenerator, PaymentGenerator
from lendbook.models.lending import CounterpartyKind
from lendbook.payments import PaymentService
from lendbook.store.memory import LendingDataStore

logger = logging.getLogger(__name__)


class LendingPortfolioScenario:
    """Generate a lending book and replay a payment history through the engine.

    This scenario creates:
    - Customers with loans, mahajans with bills, bill customers with sales
    - One payment schedule per counterparty, recorded with
      ``PaymentService.record_payment`` on each payment date so interest
      accrues as it would have on the day
    - Occasional single-instrument payments and locked instruments

    Every transaction in the resulting store was written by the allocator.
    """

    # Share of counterparties that pay one instrument directly instead of all
    SINGLE_PAYMENT_RATE = 0.2
    LOCK_RATE = 0.05

    def __init__(
        self,
        config: ScenarioConfig | None = None,
        seed: int | None = None,
        *,
        engine_config: EngineConfig | None = None,
        events: EventChannel | None = None,
    ) -> None:
        """Initialize lending portfolio scenario.

        Parameters
        ----------
        config : ScenarioConfig | None
            Portfolio sizing. Defaults to ``ScenarioConfig(name="portfolio")``.
        seed : int | None
            Random seed for reproducibility.
        engine_config : EngineConfig | None
            Payment policy passed to the payment service.
        events : EventChannel | None
            Channel receiving every event the payment service publishes.
        """
        self.config = config or ScenarioConfig(name="portfolio")
        self.seed = seed
        self.as_of = self.config.end_date or date.today()
        self.rng = random.Random(seed)

        self.store = LendingDataStore()
        self.events = events or EventChannel()
        self.service = PaymentService(self.store, self.events, engine_config)

        self._counterparty_gen = CounterpartyGenerator(seed=seed, as_of=self.as_of)
        self._instrument_gen = InstrumentGenerator(seed=seed, as_of=self.as_of)
        self._payment_gen = PaymentGenerator(seed=seed, as_of=self.as_of)
        self.rejections = 0

    def generate(self) -> LendingDataStore:
        """Generate all data for the portfolio.

        Returns
        -------
        LendingDataStore
            Store containing all generated data.
        """
        sizes = {
            CounterpartyKind.CUSTOMER: self.config.num_customers,
            CounterpartyKind.MAHAJAN: self.config.num_mahajans,
            CounterpartyKind.BILL_CUSTOMER: self.config.num_bill_customers,
        }
        logger.info(
            "Starting portfolio scenario %r: %d customers, %d mahajans, %d bill customers",
            self.config.name,
            *sizes.values(),
        )

        for kind, count in sizes.items():
            for counterparty in self._counterparty_gen.generate_batch(count, kind):
                self.store.add_counterparty(counterparty)
                self._generate_book(counterparty.counterparty_id)

        stats = self.store.get_stats()
        logger.info(
            "Generated %d instruments, %d transactions, %d advance entries (%d rejected payments)",
            stats["instruments"],
            stats["transactions"],
            stats["advance_entries"],
            self.rejections,
        )
        return self.store

    def _generate_book(self, counterparty_id: str) -> None:
        """Create instruments for one counterparty and replay its payments."""
        counterparty = self.store.get_counterparty(counterparty_id)
        instruments = []
        for _ in range(self.config.instruments_per_counterparty):
            instrument_date = None
            if self.config.start_date is not None:
                instrument_date = self._instrument_gen.fake.date_between(
                    start_date=self.config.start_date, end_date=self.as_of
                )
            instrument = self._instrument_gen.generate(counterparty, instrument_date)
            self.store.add_instrument(instrument)
            instruments.append(instrument)

        if not instruments or self.config.payments_per_counterparty <= 0:
            return

        # Payments start once every instrument exists
        start = max(i.instrument_date for i in instruments)
        total_base = sum((i.base_amount for i in instruments), ZERO)
        typical = money(total_base / self.config.payments_per_counterparty)
        schedule = self._payment_gen.generate_schedule(
            start, self.config.payments_per_counterparty, typical
        )

        single = self.rng.random() < self.SINGLE_PAYMENT_RATE
        for payment in schedule:
            if single:
                target = self.rng.choice(instruments).instrument_id
                try:
                    self.service.record_instrument_payment(target, payment, now=payment.date)
                except PaymentRejectedError:
                    self.rejections += 1
            else:
                receipt = self.service.record_payment(counterparty_id, payment, now=payment.date)
                if not receipt.transactions and receipt.advance_credited == ZERO:
                    self.rejections += 1

        if self.rng.random() < self.LOCK_RATE:
            open_ids = [
                i.instrument_id
                for i in instruments
                if self.store.get_instrument(i.instrument_id).is_active
            ]
            if open_ids:
                self.service.lock_instrument(self.rng.choice(open_ids))

    def export(self, sinks: list[Any]) -> None:
        """Export generated data to sinks.

        Parameters
        ----------
        sinks : list[Any]
            List of sink instances (KafkaSink, JsonFileSink, etc.).
        """
        for sink in sinks:
            sink.write_batch("counterparties", list(self.store.counterparties.values()))
            sink.write_batch("instruments", list(self.store.instruments.values()))
            sink.write_batch("transactions", list(self.store.transactions.values()))
            sink.write_batch("advance_payment_entries", self.store.advance_entries)

        logger.info("Exported lending portfolio to %d sinks", len(sinks))

    def get_portfolio_summary(self) -> dict[str, Any]:
        """Get summary statistics for the portfolio as of ``as_of``.

        Returns
        -------
        dict[str, Any]
            Portfolio summary statistics.
        """
        instruments = list(self.store.instruments.values())
        if not instruments:
            return {}

        gross = ZERO
        net = ZERO
        advance = ZERO
        for counterparty_id in self.store.counterparties:
            summary = self.service.summary_for(counterparty_id, now=self.as_of)
            gross += summary.gross_outstanding
            net += summary.net_outstanding
            advance += summary.advance_payment

        type_counts = Counter(t.transaction_type.value for t in self.store.transactions.values())
        collected = sum((t.amount for t in self.store.transactions.values()), Decimal("0"))

        return {
            "scenario": self.config.name,
            "as_of": self.as_of.isoformat(),
            "total_instruments": len(instruments),
            "active_instruments": sum(1 for i in instruments if i.is_active),
            "locked_instruments": sum(1 for i in instruments if i.locked),
            "instrument_kind_distribution": dict(Counter(i.kind.value for i in instruments)),
            "total_principal": str(sum((i.principal_amount for i in instruments), ZERO)),
            "total_collected": str(collected),
            "transaction_type_distribution": dict(type_counts),
            "gross_outstanding": str(gross),
            "advance_payments": str(advance),
            "net_outstanding": str(net),
            "rejected_payments": self.rejections,
        }
