"""
SmartBrief Backend — Credit Transaction Model
===============================================

What:  Append-only record of every credit mutation (deduct, add, set).
Why:   `users.credits` is the balance; this table is the audit trail and the
       idempotency guard. A deduction replayed with an idempotency key that is
       already recorded returns the recorded balance instead of charging twice.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from smartbrief.database import Base
from smartbrief.models.user import utc_now


class TransactionKind(str, enum.Enum):
    DEDUCT = "deduct"
    ADD = "add"
    SET = "set"


class CreditTransaction(Base):
    """One immutable ledger entry."""

    __tablename__ = "credit_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(10), nullable=False)

    # For deduct/add: the delta. For set: the new absolute balance.
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_credit_transactions_idempotency"),
        CheckConstraint("balance_after >= 0", name="ck_credit_transactions_balance"),
        CheckConstraint("kind IN ('deduct', 'add', 'set')", name="ck_credit_transactions_kind"),
        Index("idx_credit_transactions_user_created_at", "user_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(user_id={self.user_id}, kind='{self.kind}', "
            f"amount={self.amount}, balance_after={self.balance_after})>"
        )
