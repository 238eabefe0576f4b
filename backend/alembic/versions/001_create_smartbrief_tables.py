"""Create users, summaries and credit_transactions tables

Revision ID: 001
Revises: None
Create Date: 2025-01-10 00:00:00.000000+00:00

What:  Initial SmartBrief schema.
How:   PostgreSQL UUID keys with gen_random_uuid(), TIMESTAMP WITH TIME ZONE.
       Check constraints mirror the invariants the ORM validators enforce, so
       a write that bypasses the ORM still cannot break them.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_PROMPT = (
    "Summarize the following text in a clear and concise manner, "
    "maintaining the key points and main ideas:"
)


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'user'"),
            comment="One of: user, reviewer, editor, admin",
        ),
        sa.Column("credits", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        sa.CheckConstraint(
            "role IN ('user', 'reviewer', 'editor', 'admin')", name="ck_users_role_valid"
        ),
    )

    op.create_table(
        "summaries",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("original_text", sa.Text(), nullable=False),
        sa.Column("summary_text", sa.Text(), nullable=False),
        sa.Column("word_count_original", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("word_count_summary", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "prompt",
            sa.String(1000),
            nullable=False,
            server_default=sa.text(f"'{DEFAULT_PROMPT}'"),
        ),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'processing'"),
            comment="Processing state: processing, completed, failed",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processing_time_ms", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("char_length(original_text) BETWEEN 1 AND 50000", name="ck_summaries_original_length"),
        sa.CheckConstraint("char_length(summary_text) BETWEEN 1 AND 10000", name="ck_summaries_summary_length"),
        sa.CheckConstraint("word_count_original >= 1", name="ck_summaries_original_words"),
        sa.CheckConstraint("word_count_summary >= 1", name="ck_summaries_summary_words"),
        sa.CheckConstraint("processing_time_ms >= 0", name="ck_summaries_processing_time"),
        sa.CheckConstraint("credits_used >= 1", name="ck_summaries_credits_used"),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed')", name="ck_summaries_status_valid"
        ),
    )
    # "My most recent summaries": WHERE owner_id = ? ORDER BY created_at DESC
    op.create_index(
        "idx_summaries_owner_created_at",
        "summaries",
        ["owner_id", sa.text("created_at DESC")],
    )
    op.create_index("idx_summaries_status", "summaries", ["status"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_credit_transactions_idempotency"),
        sa.CheckConstraint("balance_after >= 0", name="ck_credit_transactions_balance"),
        sa.CheckConstraint("kind IN ('deduct', 'add', 'set')", name="ck_credit_transactions_kind"),
    )
    op.create_index(
        "idx_credit_transactions_user_created_at",
        "credit_transactions",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_credit_transactions_user_created_at", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_index("idx_summaries_status", table_name="summaries")
    op.drop_index("idx_summaries_owner_created_at", table_name="summaries")
    op.drop_table("summaries")
    op.drop_table("users")
