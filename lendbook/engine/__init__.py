"""Interest accrual and payment allocation engine."""

from lendbook.engine.allocation import (
    AllocationResult,
    Payment,
    allocate,
    allocate_sequential,
    allocate_single,
    portion_notes,
    strip_portion_label,
)
from lendbook.engine.balance import (
    Outstanding,
    accrued_interest,
    compute_outstanding,
    elapsed_days,
    elapsed_months,
    principal_balance,
)
from lendbook.engine.status import (
    CollectionStatus,
    CounterpartySummary,
    collection_status,
    counterparty_outstanding,
    is_closed,
    outstanding_by_instrument,
    plan_status_updates,
    validate_payment_amount,
)

__all__ = [
    "AllocationResult",
    "CollectionStatus",
    "CounterpartySummary",
    "Outstanding",
    "Payment",
    "accrued_interest",
    "allocate",
    "allocate_sequential",
    "allocate_single",
    "collection_status",
    "compute_outstanding",
    "counterparty_outstanding",
    "elapsed_days",
    "elapsed_months",
    "is_closed",
    "outstanding_by_instrument",
    "plan_status_updates",
    "portion_notes",
    "principal_balance",
    "strip_portion_label",
    "validate_payment_amount",
]
