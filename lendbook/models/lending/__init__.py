"""Lending domain models."""

from lendbook.models.lending.counterparty import AdvancePaymentEntry, Counterparty
from lendbook.models.lending.enums import (
    PRINCIPAL_REDUCING_TYPES,
    AllocationErrorKind,
    AllocationStrategy,
    BaseAmountSource,
    CollectionState,
    CounterpartyKind,
    EmiFrequency,
    InstrumentKind,
    InterestType,
    PaymentMode,
    TransactionType,
)
from lendbook.models.lending.instrument import CreditInstrument
from lendbook.models.lending.transaction import Transaction, TransactionInsert

__all__ = [
    "PRINCIPAL_REDUCING_TYPES",
    "AdvancePaymentEntry",
    "AllocationErrorKind",
    "AllocationStrategy",
    "BaseAmountSource",
    "CollectionState",
    "Counterparty",
    "CounterpartyKind",
    "CreditInstrument",
    "EmiFrequency",
    "InstrumentKind",
    "InterestType",
    "PaymentMode",
    "Transaction",
    "TransactionInsert",
    "TransactionType",
]
