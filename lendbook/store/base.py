"""Store interface shared by the in-memory and PostgreSQL backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from lendbook.exceptions import InstrumentClosedError, InstrumentLockedError
from lendbook.models.lending import (
    AdvancePaymentEntry,
    Counterparty,
    CreditInstrument,
    Transaction,
    TransactionInsert,
)


class LendingStore(ABC):
    """Read/insert/update/delete access to lending tables.

    Implementations enforce referential integrity, refuse writes against
    closed or locked instruments, refuse deleting an instrument that has
    transactions, and check ``CreditInstrument.version`` on updates.
    """

    # Counterparties
    @abstractmethod
    def add_counterparty(self, counterparty: Counterparty) -> None: ...

    @abstractmethod
    def get_counterparty(self, counterparty_id: str) -> Counterparty: ...

    @abstractmethod
    def update_counterparty(self, counterparty: Counterparty) -> None: ...

    # Instruments
    @abstractmethod
    def add_instrument(self, instrument: CreditInstrument) -> None: ...

    @abstractmethod
    def get_instrument(self, instrument_id: str) -> CreditInstrument: ...

    @abstractmethod
    def get_counterparty_instruments(self, counterparty_id: str) -> list[CreditInstrument]: ...

    @abstractmethod
    def update_instrument(
        self, instrument: CreditInstrument, expected_version: int
    ) -> CreditInstrument: ...

    @abstractmethod
    def delete_instrument(self, instrument_id: str) -> None: ...

    # Transactions
    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> None: ...

    @abstractmethod
    def insert_transactions(self, inserts: Iterable[TransactionInsert]) -> list[Transaction]: ...

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Transaction: ...

    @abstractmethod
    def get_transactions_for_instruments(
        self, instrument_ids: Iterable[str]
    ) -> dict[str, list[Transaction]]: ...

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> None: ...

    # Advance payments
    @abstractmethod
    def add_advance_entry(self, entry: AdvancePaymentEntry) -> None: ...

    @abstractmethod
    def get_advance_entries(self, counterparty_id: str) -> list[AdvancePaymentEntry]: ...


def check_writable(instrument: CreditInstrument) -> None:
    """Raise unless transactions may be written against ``instrument``."""
    if instrument.locked:
        raise InstrumentLockedError(f"Instrument {instrument.instrument_id} is locked")
    if not instrument.is_active:
        raise InstrumentClosedError(f"Instrument {instrument.instrument_id} is closed")
