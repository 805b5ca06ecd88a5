"""Enumeration types for lending domain entities."""

from enum import Enum


class CounterpartyKind(str, Enum):
    CUSTOMER = "customer"
    MAHAJAN = "mahajan"
    BILL_CUSTOMER = "bill_customer"


class InstrumentKind(str, Enum):
    LOAN = "loan"
    BILL = "bill"
    SALE = "sale"


class InterestType(str, Enum):
    NONE = "none"
    DAILY = "daily"
    MONTHLY = "monthly"


class TransactionType(str, Enum):
    PRINCIPAL = "principal"
    INTEREST = "interest"
    MIXED = "mixed"
    PAYMENT = "payment"
    REFUND = "refund"


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK = "bank"


class EmiFrequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class BaseAmountSource(str, Enum):
    """Which instrument field the principal balance starts from."""

    SNAPSHOT = "total_outstanding"
    PRINCIPAL = "principal_amount"


class AllocationStrategy(str, Enum):
    SEQUENTIAL = "sequential"
    SINGLE = "single"


class AllocationErrorKind(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    NO_OUTSTANDING_BALANCE = "no_outstanding_balance"
    INSTRUMENT_LOCKED = "instrument_locked"
    INSTRUMENT_CLOSED = "instrument_closed"


class CollectionState(str, Enum):
    NOT_DUE = "not_due"
    PENDING = "pending"
    PAID_LESS = "paid_less"
    PAID = "paid"
    PAID_MORE = "paid_more"


# Types that reduce the principal balance of an instrument.
PRINCIPAL_REDUCING_TYPES = frozenset({TransactionType.PRINCIPAL, TransactionType.PAYMENT})
