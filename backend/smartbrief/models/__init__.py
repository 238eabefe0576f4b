"""ORM models. Importing this package registers every table with Base.metadata."""

from smartbrief.models.credit_transaction import CreditTransaction, TransactionKind
from smartbrief.models.summary import AIProvider, Summary, SummaryStatus
from smartbrief.models.user import Role, User

__all__ = [
    "AIProvider",
    "CreditTransaction",
    "Role",
    "Summary",
    "SummaryStatus",
    "TransactionKind",
    "User",
]
