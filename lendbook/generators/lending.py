"""Generators for counterparties, credit instruments and payments."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

from lendbook.engine import Payment
from lendbook.generators.base import BaseGenerator
from lendbook.models.lending import (
    Counterparty,
    CounterpartyKind,
    CreditInstrument,
    EmiFrequency,
    InstrumentKind,
    InterestType,
    PaymentMode,
)

WEEKDAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

# Instrument kind held by each counterparty kind
INSTRUMENT_KIND_FOR = {
    CounterpartyKind.CUSTOMER: InstrumentKind.LOAN,
    CounterpartyKind.MAHAJAN: InstrumentKind.BILL,
    CounterpartyKind.BILL_CUSTOMER: InstrumentKind.SALE,
}


class CounterpartyGenerator(BaseGenerator):
    """Generate customers, mahajans and bill customers."""

    def generate(self, kind: CounterpartyKind = CounterpartyKind.CUSTOMER) -> Counterparty:
        """Generate a single counterparty.

        Parameters
        ----------
        kind : CounterpartyKind
            Customer, mahajan or bill customer.

        Returns
        -------
        Counterparty
            Generated counterparty.
        """
        name = self.fake.company() if kind == CounterpartyKind.MAHAJAN else self.fake.name()
        return Counterparty(
            counterparty_id=self.fake.uuid4(),
            kind=kind,
            name=name,
            phone=self.fake.phone_number(),
            address=self.fake.address().replace("\n", ", "),
            payment_day=self.rng.choice(WEEKDAYS) if kind == CounterpartyKind.CUSTOMER else None,
        )

    def generate_batch(self, count: int, kind: CounterpartyKind) -> Iterator[Counterparty]:
        """Generate ``count`` counterparties of one kind."""
        for _ in range(count):
            yield self.generate(kind)


class InstrumentGenerator(BaseGenerator):
    """Generate loans, bills and sales with realistic terms."""

    # (min, max) principal in thousands of rupees
    PRINCIPAL_RANGES = {
        InstrumentKind.LOAN: (10, 200),
        InstrumentKind.BILL: (25, 500),
        InstrumentKind.SALE: (1, 50),
    }

    INTEREST_TYPE_WEIGHTS = {
        InstrumentKind.LOAN: ([InterestType.MONTHLY, InterestType.DAILY, InterestType.NONE], [0.6, 0.2, 0.2]),
        InstrumentKind.BILL: ([InterestType.MONTHLY, InterestType.DAILY, InterestType.NONE], [0.4, 0.2, 0.4]),
        InstrumentKind.SALE: ([InterestType.NONE], [1.0]),
    }

    # Percent per period
    RATE_RANGES = {
        InterestType.MONTHLY: (1.0, 3.0),
        InterestType.DAILY: (12.0, 36.0),
    }

    def generate(
        self,
        counterparty: Counterparty,
        instrument_date: date | None = None,
    ) -> CreditInstrument:
        """Generate an instrument for ``counterparty``.

        Parameters
        ----------
        counterparty : Counterparty
            Owner of the instrument; its kind decides the instrument kind.
        instrument_date : date | None
            Disbursement/billing date. Random within the last year when omitted.

        Returns
        -------
        CreditInstrument
            Generated instrument.
        """
        kind = INSTRUMENT_KIND_FOR[counterparty.kind]
        low, high = self.PRINCIPAL_RANGES[kind]
        principal = Decimal(self.rng.randint(low, high) * 1000)

        types, weights = self.INTEREST_TYPE_WEIGHTS[kind]
        interest_type = self.rng.choices(types, weights=weights, k=1)[0]
        if interest_type == InterestType.NONE:
            rate = Decimal("0")
        else:
            rate = Decimal(str(round(self.rng.uniform(*self.RATE_RANGES[interest_type]), 2)))

        # Loans carry a 1-2% processing fee folded into the outstanding snapshot
        processing_fee = None
        total_outstanding = None
        if kind == InstrumentKind.LOAN:
            processing_fee = (principal * Decimal(self.rng.choice([1, 2])) / 100).quantize(Decimal("1"))
            total_outstanding = principal + processing_fee

        if instrument_date is None:
            instrument_date = self.as_of - timedelta(days=self.rng.randint(30, 365))

        emi_frequency = self.rng.choice(list(EmiFrequency))
        periods = 52 if emi_frequency == EmiFrequency.WEEKLY else 12
        emi_amount = (principal / periods).quantize(Decimal("1")) if kind == InstrumentKind.LOAN else None

        return CreditInstrument(
            instrument_id=self.fake.uuid4(),
            counterparty_id=counterparty.counterparty_id,
            kind=kind,
            principal_amount=principal,
            interest_rate=rate,
            interest_type=interest_type,
            instrument_date=instrument_date,
            processing_fee=processing_fee,
            total_outstanding=total_outstanding,
            emi_amount=emi_amount,
            emi_frequency=emi_frequency,
            due_date=instrument_date + timedelta(days=365),
            description=self.fake.sentence(nb_words=4),
        )


class PaymentGenerator(BaseGenerator):
    """Generate payments spread between an instrument date and ``as_of``."""

    MODE_WEIGHTS = [0.7, 0.3]  # cash, bank

    def generate_schedule(
        self,
        start: date,
        count: int,
        typical_amount: Decimal,
    ) -> list[Payment]:
        """Generate ``count`` payments in date order.

        Amounts vary between 50% and 150% of ``typical_amount``, rounded
        to whole rupees.
        """
        span = max(1, (self.as_of - start).days)
        offsets = sorted(self.rng.randint(1, span) for _ in range(count))

        payments = []
        for offset in offsets:
            factor = Decimal(str(round(self.rng.uniform(0.5, 1.5), 2)))
            amount = max(Decimal("1"), (typical_amount * factor).quantize(Decimal("1")))
            payments.append(
                Payment(
                    amount=amount,
                    mode=self.rng.choices(list(PaymentMode), weights=self.MODE_WEIGHTS, k=1)[0],
                    date=start + timedelta(days=offset),
                    notes=self.fake.sentence(nb_words=3) if self.rng.random() < 0.2 else None,
                )
            )
        return payments
