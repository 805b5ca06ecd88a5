"""In-memory lending data store with referential integrity."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable

from lendbook.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
)
from lendbook.models.lending import (
    AdvancePaymentEntry,
    Counterparty,
    CreditInstrument,
    Transaction,
    TransactionInsert,
)
from lendbook.store.base import LendingStore, check_writable


@dataclass
class LendingDataStore(LendingStore):
    """In-memory store for lending entities with relationship tracking."""

    # Primary entities
    counterparties: dict[str, Counterparty] = field(default_factory=dict)
    instruments: dict[str, CreditInstrument] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)
    advance_entries: list[AdvancePaymentEntry] = field(default_factory=list)

    # Relationship indexes
    _counterparty_instruments: dict[str, list[str]] = field(default_factory=dict)
    _instrument_transactions: dict[str, list[str]] = field(default_factory=dict)
    _counterparty_advances: dict[str, list[int]] = field(default_factory=dict)

    def add_counterparty(self, counterparty: Counterparty) -> None:
        """Add a counterparty to the store."""
        if counterparty.created_at is None:
            counterparty.created_at = datetime.now()
        self.counterparties[counterparty.counterparty_id] = counterparty
        self._counterparty_instruments.setdefault(counterparty.counterparty_id, [])
        self._counterparty_advances.setdefault(counterparty.counterparty_id, [])

    def get_counterparty(self, counterparty_id: str) -> Counterparty:
        """Get a counterparty by id."""
        try:
            return self.counterparties[counterparty_id]
        except KeyError:
            raise EntityNotFoundError(f"Counterparty {counterparty_id} not found") from None

    def update_counterparty(self, counterparty: Counterparty) -> None:
        """Replace a stored counterparty."""
        self.get_counterparty(counterparty.counterparty_id)
        self.counterparties[counterparty.counterparty_id] = counterparty

    def add_instrument(self, instrument: CreditInstrument) -> None:
        """Add a loan, bill or sale to the store."""
        if instrument.counterparty_id not in self.counterparties:
            raise ReferentialIntegrityError(f"Counterparty {instrument.counterparty_id} not found")

        if instrument.created_at is None:
            instrument.created_at = datetime.now()
        self.instruments[instrument.instrument_id] = instrument
        self._counterparty_instruments[instrument.counterparty_id].append(instrument.instrument_id)
        self._instrument_transactions[instrument.instrument_id] = []

    def get_instrument(self, instrument_id: str) -> CreditInstrument:
        """Get an instrument by id."""
        try:
            return self.instruments[instrument_id]
        except KeyError:
            raise EntityNotFoundError(f"Instrument {instrument_id} not found") from None

    def get_counterparty_instruments(self, counterparty_id: str) -> list[CreditInstrument]:
        """Get all instruments for a counterparty."""
        instrument_ids = self._counterparty_instruments.get(counterparty_id, [])
        return [self.instruments[iid] for iid in instrument_ids]

    def update_instrument(
        self, instrument: CreditInstrument, expected_version: int
    ) -> CreditInstrument:
        """Store ``instrument`` if the stored row still has ``expected_version``.

        Returns the stored copy with its version bumped.
        """
        current = self.get_instrument(instrument.instrument_id)
        if current.version != expected_version:
            raise ConcurrentModificationError(
                f"Instrument {instrument.instrument_id} is at version {current.version}, "
                f"expected {expected_version}"
            )

        updated = replace(instrument, version=expected_version + 1, updated_at=datetime.now())
        self.instruments[instrument.instrument_id] = updated
        return updated

    def delete_instrument(self, instrument_id: str) -> None:
        """Delete an instrument that has no transactions."""
        instrument = self.get_instrument(instrument_id)
        if self._instrument_transactions.get(instrument_id):
            raise InvalidEntityStateError(
                f"Instrument {instrument_id} has transactions and cannot be deleted"
            )

        del self.instruments[instrument_id]
        del self._instrument_transactions[instrument_id]
        self._counterparty_instruments[instrument.counterparty_id].remove(instrument_id)

    def add_transaction(self, transaction: Transaction) -> None:
        """Add a recorded transaction to the store."""
        if transaction.instrument_id not in self.instruments:
            raise ReferentialIntegrityError(f"Instrument {transaction.instrument_id} not found")

        check_writable(self.instruments[transaction.instrument_id])
        if transaction.created_at is None:
            transaction.created_at = datetime.now()
        self.transactions[transaction.transaction_id] = transaction
        self._instrument_transactions[transaction.instrument_id].append(transaction.transaction_id)

    def insert_transactions(self, inserts: Iterable[TransactionInsert]) -> list[Transaction]:
        """Persist allocator output, assigning transaction ids.

        Every target is checked before anything is written.
        """
        inserts = list(inserts)
        for insert in inserts:
            if insert.instrument_id not in self.instruments:
                raise ReferentialIntegrityError(f"Instrument {insert.instrument_id} not found")
            check_writable(self.instruments[insert.instrument_id])

        created = []
        for insert in inserts:
            transaction = insert.to_transaction(uuid.uuid4().hex)
            self.add_transaction(transaction)
            created.append(transaction)
        return created

    def get_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction by id."""
        try:
            return self.transactions[transaction_id]
        except KeyError:
            raise EntityNotFoundError(f"Transaction {transaction_id} not found") from None

    def get_transactions_for_instruments(
        self, instrument_ids: Iterable[str]
    ) -> dict[str, list[Transaction]]:
        """Get transactions grouped by instrument id."""
        return {
            iid: [self.transactions[tid] for tid in self._instrument_transactions.get(iid, [])]
            for iid in instrument_ids
        }

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction while its instrument is still open."""
        transaction = self.get_transaction(transaction_id)
        check_writable(self.instruments[transaction.instrument_id])

        del self.transactions[transaction_id]
        self._instrument_transactions[transaction.instrument_id].remove(transaction_id)

    def add_advance_entry(self, entry: AdvancePaymentEntry) -> None:
        """Record excess payment credited to a counterparty."""
        if entry.counterparty_id not in self.counterparties:
            raise ReferentialIntegrityError(f"Counterparty {entry.counterparty_id} not found")

        if entry.created_at is None:
            entry.created_at = datetime.now()
        idx = len(self.advance_entries)
        self.advance_entries.append(entry)
        self._counterparty_advances[entry.counterparty_id].append(idx)

    def get_advance_entries(self, counterparty_id: str) -> list[AdvancePaymentEntry]:
        """Get advance payment entries for a counterparty."""
        indices = self._counterparty_advances.get(counterparty_id, [])
        return [self.advance_entries[i] for i in indices]

    def get_stats(self) -> dict[str, int]:
        """Get entity counts."""
        return {
            "counterparties": len(self.counterparties),
            "instruments": len(self.instruments),
            "transactions": len(self.transactions),
            "advance_entries": len(self.advance_entries),
        }
