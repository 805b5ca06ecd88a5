"""Payment service: the read-compute-write cycle around the engine.

The engine functions are pure. This module is their caller: it reads a
counterparty's instruments and transactions from a ``LendingStore``,
runs the balance calculator and allocator, persists the resulting
transactions, closes instruments whose outstanding reached zero,
credits excess payment to the counterparty's advance balance and
publishes events on an ``EventChannel``.

There is no retry and no cross-call locking. Two sessions paying the
same instrument are serialized only by the store's version check on
instrument updates.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from lendbook.config import EngineConfig
from lendbook.engine import (
    AllocationResult,
    CollectionStatus,
    CounterpartySummary,
    Outstanding,
    Payment,
    allocate_sequential,
    allocate_single,
    collection_status,
    compute_outstanding,
    counterparty_outstanding,
    outstanding_by_instrument,
    plan_status_updates,
    strip_portion_label,
    validate_payment_amount,
)
from lendbook.engine.money import ZERO, format_inr, to_decimal
from lendbook.events import EventChannel
from lendbook.exceptions import PaymentRejectedError
from lendbook.models.lending import (
    AdvancePaymentEntry,
    AllocationErrorKind,
    Counterparty,
    CreditInstrument,
    PaymentMode,
    Transaction,
)
from lendbook.store.base import LendingStore, check_writable

logger = logging.getLogger(__name__)


@dataclass
class PaymentReceipt:
    """What a payment submission wrote."""

    allocation: AllocationResult
    transactions: list[Transaction] = field(default_factory=list)
    closed_instrument_ids: list[str] = field(default_factory=list)
    advance_credited: Decimal = ZERO


class PaymentService:
    """Record, edit and delete payments against a lending store."""

    def __init__(
        self,
        store: LendingStore,
        events: EventChannel | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.events = events or EventChannel(source=self.config.event_source)

    # Reads

    def _load(
        self, counterparty_id: str
    ) -> tuple[list[CreditInstrument], dict[str, list[Transaction]]]:
        instruments = self.store.get_counterparty_instruments(counterparty_id)
        transactions = self.store.get_transactions_for_instruments(
            [i.instrument_id for i in instruments]
        )
        return instruments, transactions

    def outstanding_for(
        self, counterparty_id: str, now: date | datetime | None = None
    ) -> dict[str, Outstanding]:
        """Current outstanding of every instrument of a counterparty."""
        instruments, transactions = self._load(counterparty_id)
        return outstanding_by_instrument(instruments, transactions, now)

    def summary_for(
        self, counterparty_id: str, now: date | datetime | None = None
    ) -> CounterpartySummary:
        """Outstanding across active instruments, net of advance payment."""
        counterparty = self.store.get_counterparty(counterparty_id)
        instruments, transactions = self._load(counterparty_id)
        return counterparty_outstanding(counterparty, instruments, transactions, now)

    def collection_for(self, counterparty_id: str, on_date: date) -> CollectionStatus:
        """EMI due versus collected for a counterparty on ``on_date``."""
        instruments, transactions = self._load(counterparty_id)
        return collection_status(instruments, transactions, on_date)

    # Payments

    def record_payment(
        self,
        counterparty_id: str,
        payment: Payment,
        now: date | datetime | None = None,
    ) -> PaymentReceipt:
        """Spread a payment over all open instruments of a counterparty.

        Excess beyond the total outstanding is credited to the
        counterparty's advance balance when the engine config allows it.
        An invalid amount is reported on the receipt and nothing is written.
        """
        payment = self._with_default_mode(payment)
        counterparty = self.store.get_counterparty(counterparty_id)
        instruments, transactions = self._load(counterparty_id)
        result = allocate_sequential(payment, instruments, transactions, now)
        receipt = PaymentReceipt(allocation=result)

        if result.error == AllocationErrorKind.INVALID_AMOUNT:
            self._publish_rejection(counterparty_id, payment, result.error)
            return receipt

        if result.entries:
            receipt.transactions = self._persist(result)
            touched = {entry.instrument_id for entry in result.entries}
            receipt.closed_instrument_ids = self._close_settled(
                [i for i in instruments if i.instrument_id in touched], now
            )

        if result.remainder > ZERO:
            if self.config.credit_excess_to_advance:
                receipt.advance_credited = self._credit_advance(
                    counterparty, result.remainder, payment
                )
            else:
                logger.warning(
                    "Unallocated %s left from payment for %s",
                    format_inr(result.remainder),
                    counterparty_id,
                    extra={"extra": {"counterparty_id": counterparty_id}},
                )

        logger.info(
            "Recorded payment of %s for %s: %d entries, %d closed, %s to advance",
            format_inr(to_decimal(payment.amount)),
            counterparty_id,
            len(receipt.transactions),
            len(receipt.closed_instrument_ids),
            format_inr(receipt.advance_credited),
            extra={"extra": {"counterparty_id": counterparty_id}},
        )
        return receipt

    def record_instrument_payment(
        self,
        instrument_id: str,
        payment: Payment,
        now: date | datetime | None = None,
    ) -> PaymentReceipt:
        """Pay one instrument: interest first, remainder as principal.

        Raises ``PaymentRejectedError`` for invalid or excessive amounts and
        for locked or closed instruments.
        """
        payment = self._with_default_mode(payment)
        instrument = self.store.get_instrument(instrument_id)
        transactions = self.store.get_transactions_for_instruments([instrument_id])[instrument_id]

        if instrument.is_open:
            outstanding = compute_outstanding(instrument, transactions, now)
            if not outstanding.is_closed:
                error = validate_payment_amount(payment.amount, outstanding)
                if error is not None:
                    self._publish_rejection(instrument.counterparty_id, payment, error)
                    raise PaymentRejectedError(
                        f"Invalid amount {payment.amount} for {instrument_id} "
                        f"(outstanding {format_inr(outstanding.payable)})",
                        kind=error,
                    )

        result = allocate_single(payment, instrument, transactions, now)
        if result.error is not None:
            self._publish_rejection(instrument.counterparty_id, payment, result.error)
            raise PaymentRejectedError(
                f"Payment rejected for {instrument_id}: {result.error.value}", kind=result.error
            )

        receipt = PaymentReceipt(allocation=result)
        receipt.transactions = self._persist(result)
        receipt.closed_instrument_ids = self._close_settled([instrument], now)
        logger.info(
            "Recorded payment of %s on %s: %d entries",
            format_inr(result.allocated),
            instrument_id,
            len(receipt.transactions),
            extra={
                "extra": {
                    "counterparty_id": instrument.counterparty_id,
                    "instrument_id": instrument_id,
                }
            },
        )
        return receipt

    def edit_payment(
        self,
        transaction_id: str,
        new_amount: Decimal,
        payment_mode: PaymentMode | None = None,
        notes: str | None = None,
        now: date | datetime | None = None,
    ) -> PaymentReceipt:
        """Replace a recorded payment with a fresh interest/principal split.

        The split is computed with the edited transaction excluded, and the
        original payment date is kept.
        """
        original = self.store.get_transaction(transaction_id)
        instrument = self.store.get_instrument(original.instrument_id)
        check_writable(instrument)

        others = [
            t
            for t in self.store.get_transactions_for_instruments([instrument.instrument_id])[
                instrument.instrument_id
            ]
            if t.transaction_id != transaction_id
        ]
        payment = Payment(
            amount=new_amount,
            mode=payment_mode or original.payment_mode,
            date=original.payment_date,
            notes=notes if notes is not None else strip_portion_label(original.notes),
        )
        result = allocate_single(payment, instrument, others, now)
        if result.error is not None:
            raise PaymentRejectedError(
                f"Edit rejected for {transaction_id}: {result.error.value}", kind=result.error
            )

        receipt = PaymentReceipt(allocation=result)
        receipt.transactions = self._persist(result)
        self.store.delete_transaction(transaction_id)
        self.events.publish(
            "transaction.deleted",
            subject=original.instrument_id,
            data={
                "transaction": original,
                "replaced_by": [t.transaction_id for t in receipt.transactions],
            },
        )
        receipt.closed_instrument_ids = self._close_settled([instrument], now)
        logger.info(
            "Edited payment %s to %s (%d entries)",
            transaction_id,
            format_inr(result.allocated),
            len(receipt.transactions),
            extra={"extra": {"instrument_id": instrument.instrument_id}},
        )
        return receipt

    def delete_payment(self, transaction_id: str) -> None:
        """Delete a payment while its instrument is open."""
        transaction = self.store.get_transaction(transaction_id)
        self.store.delete_transaction(transaction_id)
        self.events.publish(
            "transaction.deleted",
            subject=transaction.instrument_id,
            data={"transaction": transaction},
        )

    # Instrument lifecycle

    def close_instrument(self, instrument_id: str) -> CreditInstrument:
        """Manually close an instrument."""
        updated = self._update_flags(instrument_id, is_active=False)
        self.events.publish("instrument.closed", subject=instrument_id, data={"manual": True})
        return updated

    def reopen_instrument(self, instrument_id: str) -> CreditInstrument:
        return self._update_flags(instrument_id, is_active=True)

    def lock_instrument(self, instrument_id: str) -> CreditInstrument:
        return self._update_flags(instrument_id, locked=True)

    def unlock_instrument(self, instrument_id: str) -> CreditInstrument:
        return self._update_flags(instrument_id, locked=False)

    def delete_instrument(self, instrument_id: str) -> None:
        """Delete an instrument that has no transactions."""
        self.store.delete_instrument(instrument_id)
        self.events.publish("instrument.deleted", subject=instrument_id, data={})

    # Internals

    def _with_default_mode(self, payment: Payment) -> Payment:
        if payment.mode is not None:
            return payment
        return replace(payment, mode=self.config.default_payment_mode)

    def _persist(self, result: AllocationResult) -> list[Transaction]:
        created = self.store.insert_transactions(result.entries)
        for transaction in created:
            self.events.publish(
                "transaction.created",
                subject=transaction.instrument_id,
                data={"transaction": transaction},
            )
        return created

    def _update_flags(self, instrument_id: str, **changes: Any) -> CreditInstrument:
        current = self.store.get_instrument(instrument_id)
        updated = self.store.update_instrument(replace(current, **changes), current.version)
        self.events.publish(
            "instrument.updated",
            subject=instrument_id,
            data={key: value for key, value in changes.items()},
        )
        return updated

    def _close_settled(
        self, instruments: list[CreditInstrument], now: date | datetime | None
    ) -> list[str]:
        """Flip ``is_active`` off for instruments that no longer owe anything."""
        if not instruments:
            return []
        ids = [i.instrument_id for i in instruments]
        fresh = [self.store.get_instrument(iid) for iid in ids]
        transactions = self.store.get_transactions_for_instruments(ids)

        closed = []
        for instrument_id in plan_status_updates(fresh, transactions, now):
            current = self.store.get_instrument(instrument_id)
            self.store.update_instrument(replace(current, is_active=False), current.version)
            self.events.publish("instrument.closed", subject=instrument_id, data={"manual": False})
            closed.append(instrument_id)
        return closed

    def _credit_advance(
        self, counterparty: Counterparty, amount: Decimal, payment: Payment
    ) -> Decimal:
        entry = AdvancePaymentEntry(
            entry_id=uuid.uuid4().hex,
            counterparty_id=counterparty.counterparty_id,
            amount=amount,
            payment_date=payment.date,
            payment_mode=payment.mode,
            notes=f"Overpayment - {payment.notes}" if payment.notes else "Overpayment",
        )
        self.store.add_advance_entry(entry)
        self.store.update_counterparty(
            replace(
                counterparty,
                advance_payment=to_decimal(counterparty.advance_payment) + amount,
            )
        )
        self.events.publish(
            "advance.credited",
            subject=counterparty.counterparty_id,
            data={"entry": entry},
        )
        return amount

    def _publish_rejection(
        self, counterparty_id: str, payment: Payment, kind: AllocationErrorKind
    ) -> None:
        logger.warning(
            "Payment rejected for %s: %s",
            counterparty_id,
            kind.value,
            extra={"extra": {"counterparty_id": counterparty_id}},
        )
        self.events.publish(
            "payment.rejected",
            subject=counterparty_id,
            data={"amount": str(payment.amount), "reason": kind},
        )
