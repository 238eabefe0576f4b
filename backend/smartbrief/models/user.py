"""
SmartBrief Backend — User SQLAlchemy Model
============================================

What:  ORM model for the `users` table.
Why:   The account subsystem owns users; the summarization core reads `role`
       and `credits` and mutates `credits` through CreditLedger only.

Role ranking (least → most privileged): user < reviewer < editor < admin.
    reviewer: read-only visibility into every summary
    editor:   may regenerate/delete anyone's summary
    admin:    everything an editor can do, plus credit administration
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from smartbrief.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    USER = "user"
    REVIEWER = "reviewer"
    EDITOR = "editor"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {Role.USER: 0, Role.REVIEWER: 1, Role.EDITOR: 2, Role.ADMIN: 3}


class User(Base):
    """A user account as seen by the summarization core."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.USER.value,
        comment="One of: user, reviewer, editor, admin",
    )

    # What: Remaining summarization credits
    # Never negative: enforced by the check constraint and by the conditional
    # UPDATE in CreditLedger.deduct_credits
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        CheckConstraint(
            "role IN ('user', 'reviewer', 'editor', 'admin')", name="ck_users_role_valid"
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role}', credits={self.credits})>"
