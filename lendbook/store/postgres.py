"""PostgreSQL-backed lending store."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Iterable

import psycopg
from psycopg.rows import dict_row

from lendbook.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
)
from lendbook.models.lending import (
    AdvancePaymentEntry,
    Counterparty,
    CounterpartyKind,
    CreditInstrument,
    EmiFrequency,
    InstrumentKind,
    InterestType,
    PaymentMode,
    Transaction,
    TransactionInsert,
    TransactionType,
)
from lendbook.store.base import LendingStore, check_writable

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS counterparties (
    counterparty_id  TEXT PRIMARY KEY,
    kind             TEXT NOT NULL,
    name             TEXT NOT NULL,
    phone            TEXT,
    address          TEXT,
    payment_day      TEXT,
    advance_payment  NUMERIC(15, 2) NOT NULL DEFAULT 0,
    created_at       TIMESTAMP NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS instruments (
    instrument_id      TEXT PRIMARY KEY,
    counterparty_id    TEXT NOT NULL REFERENCES counterparties (counterparty_id),
    kind               TEXT NOT NULL,
    principal_amount   NUMERIC(15, 2) NOT NULL,
    interest_rate      NUMERIC(9, 4) NOT NULL DEFAULT 0,
    interest_type      TEXT NOT NULL DEFAULT 'none',
    instrument_date    DATE,
    is_active          BOOLEAN NOT NULL DEFAULT TRUE,
    locked             BOOLEAN NOT NULL DEFAULT FALSE,
    processing_fee     NUMERIC(15, 2),
    total_outstanding  NUMERIC(15, 2),
    emi_amount         NUMERIC(15, 2),
    emi_frequency      TEXT NOT NULL DEFAULT 'weekly',
    due_date           DATE,
    description        TEXT NOT NULL DEFAULT '',
    version            INTEGER NOT NULL DEFAULT 0,
    created_at         TIMESTAMP NOT NULL DEFAULT now(),
    updated_at         TIMESTAMP
);

CREATE TABLE IF NOT EXISTS transactions (
    transaction_id    TEXT PRIMARY KEY,
    instrument_id     TEXT NOT NULL REFERENCES instruments (instrument_id),
    amount            NUMERIC(15, 2) NOT NULL CHECK (amount > 0),
    transaction_type  TEXT NOT NULL,
    payment_mode      TEXT NOT NULL,
    payment_date      DATE NOT NULL,
    notes             TEXT,
    created_at        TIMESTAMP NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_transactions_instrument ON transactions (instrument_id);

CREATE TABLE IF NOT EXISTS advance_payment_entries (
    entry_id         TEXT PRIMARY KEY,
    counterparty_id  TEXT NOT NULL REFERENCES counterparties (counterparty_id),
    amount           NUMERIC(15, 2) NOT NULL,
    payment_date     DATE NOT NULL,
    payment_mode     TEXT NOT NULL,
    notes            TEXT,
    created_at       TIMESTAMP NOT NULL DEFAULT now()
);
"""

INSTRUMENT_COLUMNS = (
    "instrument_id",
    "counterparty_id",
    "kind",
    "principal_amount",
    "interest_rate",
    "interest_type",
    "instrument_date",
    "is_active",
    "locked",
    "processing_fee",
    "total_outstanding",
    "emi_amount",
    "emi_frequency",
    "due_date",
    "description",
    "version",
)


def _counterparty_from_row(row: dict[str, Any]) -> Counterparty:
    return Counterparty(
        counterparty_id=row["counterparty_id"],
        kind=CounterpartyKind(row["kind"]),
        name=row["name"],
        phone=row["phone"],
        address=row["address"],
        payment_day=row["payment_day"],
        advance_payment=Decimal(row["advance_payment"]),
        created_at=row["created_at"],
    )


def _instrument_from_row(row: dict[str, Any]) -> CreditInstrument:
    return CreditInstrument(
        instrument_id=row["instrument_id"],
        counterparty_id=row["counterparty_id"],
        kind=InstrumentKind(row["kind"]),
        principal_amount=row["principal_amount"],
        interest_rate=row["interest_rate"],
        interest_type=InterestType(row["interest_type"]),
        instrument_date=row["instrument_date"],
        is_active=row["is_active"],
        locked=row["locked"],
        processing_fee=row["processing_fee"],
        total_outstanding=row["total_outstanding"],
        emi_amount=row["emi_amount"],
        emi_frequency=EmiFrequency(row["emi_frequency"]),
        due_date=row["due_date"],
        description=row["description"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _transaction_from_row(row: dict[str, Any]) -> Transaction:
    return Transaction(
        transaction_id=row["transaction_id"],
        instrument_id=row["instrument_id"],
        amount=row["amount"],
        transaction_type=TransactionType(row["transaction_type"]),
        payment_mode=PaymentMode(row["payment_mode"]),
        payment_date=row["payment_date"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


def _advance_from_row(row: dict[str, Any]) -> AdvancePaymentEntry:
    return AdvancePaymentEntry(
        entry_id=row["entry_id"],
        counterparty_id=row["counterparty_id"],
        amount=row["amount"],
        payment_date=row["payment_date"],
        payment_mode=PaymentMode(row["payment_mode"]),
        notes=row["notes"],
        created_at=row["created_at"],
    )


class PostgresLendingStore(LendingStore):
    """Lending store over a single psycopg connection.

    Each public write runs in its own database transaction; multi-row
    inserts are all-or-nothing.
    """

    def __init__(self, connection_string: str, connection: psycopg.Connection | None = None) -> None:
        """Initialize PostgreSQL store.

        Parameters
        ----------
        connection_string : str
            libpq connection string or URL.
        connection : psycopg.Connection | None
            Existing connection to reuse (must use ``dict_row`` and autocommit).
        """
        self.connection_string = connection_string
        # Autocommit so that each transaction() block is a real BEGIN/COMMIT
        self.conn = connection or psycopg.connect(
            connection_string, row_factory=dict_row, autocommit=True
        )

    def create_schema(self) -> None:
        """Create tables if they do not exist."""
        with self.conn.transaction():
            self.conn.execute(SCHEMA_SQL)
        logger.info("Lending schema ensured")

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()

    def _fetch_one(self, query: str, params: tuple) -> dict[str, Any] | None:
        return self.conn.execute(query, params).fetchone()

    def _fetch_all(self, query: str, params: tuple) -> list[dict[str, Any]]:
        return self.conn.execute(query, params).fetchall()

    # Counterparties

    def add_counterparty(self, counterparty: Counterparty) -> None:
        """Insert a counterparty row."""
        with self.conn.transaction():
            self.conn.execute(
                """
                INSERT INTO counterparties
                    (counterparty_id, kind, name, phone, address, payment_day, advance_payment)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    counterparty.counterparty_id,
                    counterparty.kind.value,
                    counterparty.name,
                    counterparty.phone,
                    counterparty.address,
                    counterparty.payment_day,
                    counterparty.advance_payment,
                ),
            )

    def get_counterparty(self, counterparty_id: str) -> Counterparty:
        """Get a counterparty by id."""
        row = self._fetch_one(
            "SELECT * FROM counterparties WHERE counterparty_id = %s", (counterparty_id,)
        )
        if row is None:
            raise EntityNotFoundError(f"Counterparty {counterparty_id} not found")
        return _counterparty_from_row(row)

    def update_counterparty(self, counterparty: Counterparty) -> None:
        """Update mutable counterparty columns."""
        with self.conn.transaction():
            cur = self.conn.execute(
                """
                UPDATE counterparties
                   SET name = %s, phone = %s, address = %s, payment_day = %s,
                       advance_payment = %s
                 WHERE counterparty_id = %s
                """,
                (
                    counterparty.name,
                    counterparty.phone,
                    counterparty.address,
                    counterparty.payment_day,
                    counterparty.advance_payment,
                    counterparty.counterparty_id,
                ),
            )
            if cur.rowcount == 0:
                raise EntityNotFoundError(f"Counterparty {counterparty.counterparty_id} not found")

    # Instruments

    def add_instrument(self, instrument: CreditInstrument) -> None:
        """Insert an instrument row."""
        with self.conn.transaction():
            if self._fetch_one(
                "SELECT 1 FROM counterparties WHERE counterparty_id = %s",
                (instrument.counterparty_id,),
            ) is None:
                raise ReferentialIntegrityError(
                    f"Counterparty {instrument.counterparty_id} not found"
                )

            placeholders = ", ".join(["%s"] * len(INSTRUMENT_COLUMNS))
            self.conn.execute(
                f"INSERT INTO instruments ({', '.join(INSTRUMENT_COLUMNS)}) VALUES ({placeholders})",  # noqa: S608
                (
                    instrument.instrument_id,
                    instrument.counterparty_id,
                    instrument.kind.value,
                    instrument.principal_amount,
                    instrument.interest_rate,
                    instrument.interest_type.value,
                    instrument.instrument_date,
                    instrument.is_active,
                    instrument.locked,
                    instrument.processing_fee,
                    instrument.total_outstanding,
                    instrument.emi_amount,
                    instrument.emi_frequency.value,
                    instrument.due_date,
                    instrument.description,
                    instrument.version,
                ),
            )

    def get_instrument(self, instrument_id: str) -> CreditInstrument:
        """Get an instrument by id."""
        row = self._fetch_one("SELECT * FROM instruments WHERE instrument_id = %s", (instrument_id,))
        if row is None:
            raise EntityNotFoundError(f"Instrument {instrument_id} not found")
        return _instrument_from_row(row)

    def get_counterparty_instruments(self, counterparty_id: str) -> list[CreditInstrument]:
        """Get all instruments for a counterparty, oldest first."""
        rows = self._fetch_all(
            """
            SELECT * FROM instruments
             WHERE counterparty_id = %s
             ORDER BY instrument_date ASC, instrument_id ASC
            """,
            (counterparty_id,),
        )
        return [_instrument_from_row(row) for row in rows]

    def update_instrument(
        self, instrument: CreditInstrument, expected_version: int
    ) -> CreditInstrument:
        """Update flags and schedule fields if the row is still at ``expected_version``."""
        with self.conn.transaction():
            row = self._fetch_one(
                """
                UPDATE instruments
                   SET is_active = %s, locked = %s, emi_amount = %s, emi_frequency = %s,
                       due_date = %s, description = %s,
                       version = version + 1, updated_at = now()
                 WHERE instrument_id = %s AND version = %s
             RETURNING *
                """,
                (
                    instrument.is_active,
                    instrument.locked,
                    instrument.emi_amount,
                    instrument.emi_frequency.value,
                    instrument.due_date,
                    instrument.description,
                    instrument.instrument_id,
                    expected_version,
                ),
            )
            if row is None:
                current = self.get_instrument(instrument.instrument_id)
                raise ConcurrentModificationError(
                    f"Instrument {instrument.instrument_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )
        return _instrument_from_row(row)

    def delete_instrument(self, instrument_id: str) -> None:
        """Delete an instrument that has no transactions."""
        with self.conn.transaction():
            self.get_instrument(instrument_id)
            if self._fetch_one(
                "SELECT 1 FROM transactions WHERE instrument_id = %s LIMIT 1", (instrument_id,)
            ) is not None:
                raise InvalidEntityStateError(
                    f"Instrument {instrument_id} has transactions and cannot be deleted"
                )
            self.conn.execute("DELETE FROM instruments WHERE instrument_id = %s", (instrument_id,))

    # Transactions

    def _locked_instrument(self, instrument_id: str) -> CreditInstrument:
        row = self._fetch_one(
            "SELECT * FROM instruments WHERE instrument_id = %s FOR UPDATE", (instrument_id,)
        )
        if row is None:
            raise ReferentialIntegrityError(f"Instrument {instrument_id} not found")
        return _instrument_from_row(row)

    def _insert_transaction_row(self, transaction: Transaction) -> None:
        self.conn.execute(
            """
            INSERT INTO transactions
                (transaction_id, instrument_id, amount, transaction_type,
                 payment_mode, payment_date, notes)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                transaction.transaction_id,
                transaction.instrument_id,
                transaction.amount,
                transaction.transaction_type.value,
                transaction.payment_mode.value,
                transaction.payment_date,
                transaction.notes,
            ),
        )

    def add_transaction(self, transaction: Transaction) -> None:
        """Insert a recorded transaction."""
        with self.conn.transaction():
            check_writable(self._locked_instrument(transaction.instrument_id))
            self._insert_transaction_row(transaction)

    def insert_transactions(self, inserts: Iterable[TransactionInsert]) -> list[Transaction]:
        """Persist allocator output atomically, assigning transaction ids."""
        inserts = list(inserts)
        created = []
        with self.conn.transaction():
            for instrument_id in sorted({insert.instrument_id for insert in inserts}):
                check_writable(self._locked_instrument(instrument_id))
            for insert in inserts:
                transaction = insert.to_transaction(uuid.uuid4().hex)
                self._insert_transaction_row(transaction)
                created.append(transaction)
        logger.debug("Inserted %d transactions", len(created))
        return created

    def get_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction by id."""
        row = self._fetch_one(
            "SELECT * FROM transactions WHERE transaction_id = %s", (transaction_id,)
        )
        if row is None:
            raise EntityNotFoundError(f"Transaction {transaction_id} not found")
        return _transaction_from_row(row)

    def get_transactions_for_instruments(
        self, instrument_ids: Iterable[str]
    ) -> dict[str, list[Transaction]]:
        """Get transactions grouped by instrument id."""
        ids = list(instrument_ids)
        grouped: dict[str, list[Transaction]] = {iid: [] for iid in ids}
        if not ids:
            return grouped

        rows = self._fetch_all(
            """
            SELECT * FROM transactions
             WHERE instrument_id = ANY(%s)
             ORDER BY payment_date ASC, created_at ASC
            """,
            (ids,),
        )
        for row in rows:
            grouped[row["instrument_id"]].append(_transaction_from_row(row))
        return grouped

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction while its instrument is still open."""
        with self.conn.transaction():
            transaction = self.get_transaction(transaction_id)
            check_writable(self._locked_instrument(transaction.instrument_id))
            self.conn.execute(
                "DELETE FROM transactions WHERE transaction_id = %s", (transaction_id,)
            )

    # Advance payments

    def add_advance_entry(self, entry: AdvancePaymentEntry) -> None:
        """Record excess payment credited to a counterparty."""
        with self.conn.transaction():
            if self._fetch_one(
                "SELECT 1 FROM counterparties WHERE counterparty_id = %s",
                (entry.counterparty_id,),
            ) is None:
                raise ReferentialIntegrityError(f"Counterparty {entry.counterparty_id} not found")
            self.conn.execute(
                """
                INSERT INTO advance_payment_entries
                    (entry_id, counterparty_id, amount, payment_date, payment_mode, notes)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    entry.entry_id,
                    entry.counterparty_id,
                    entry.amount,
                    entry.payment_date,
                    entry.payment_mode.value,
                    entry.notes,
                ),
            )

    def get_advance_entries(self, counterparty_id: str) -> list[AdvancePaymentEntry]:
        """Get advance payment entries for a counterparty."""
        rows = self._fetch_all(
            """
            SELECT * FROM advance_payment_entries
             WHERE counterparty_id = %s
             ORDER BY payment_date ASC, created_at ASC
            """,
            (counterparty_id,),
        )
        return [_advance_from_row(row) for row in rows]
