# Import all models so they are registered with SQLAlchemy.
# RecurringRule must be imported before Transaction since Transaction references it.
from budget_backend.models.recurring_rule import RecurringRule, RecurringFrequency, TransactionKind
from budget_backend.models.transaction import Transaction

__all__ = [
    "RecurringRule",
    "RecurringFrequency",
    "TransactionKind",
    "Transaction",
]
