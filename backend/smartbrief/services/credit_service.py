"""
SmartBrief Backend — Credit Ledger
====================================

What:  The only component allowed to read or change a user's credit balance.
Why:   Credits are money-like: they must never go negative, never be spent on a
       failed summarization, and never be charged twice for the same work.
How:   - Deduction is one conditional UPDATE
             UPDATE users SET credits = credits - :n
             WHERE id = :id AND credits >= :n
         so two transactions can never both take the last credit, even across
         processes sharing the database.
       - A per-user asyncio.Lock lets the orchestrator serialize its whole
         check → AI call → persist → deduct → commit sequence for one user
         inside this process.
       - Every mutation appends a CreditTransaction; deductions may carry an
         idempotency key that makes a replay return the recorded result.

Errors always carry the user id and are raised, never swallowed.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.exceptions import (
    InsufficientCreditsError,
    InternalError,
    InvalidAmountError,
    NotFoundError,
)
from smartbrief.models.credit_transaction import CreditTransaction, TransactionKind
from smartbrief.models.user import User, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditResult:
    """Outcome of a ledger mutation."""

    user_id: UUID
    amount: int
    balance: int
    replayed: bool = False


class CreditLedger:
    """
    Check / deduct / add / set operations over `users.credits`.

    The ledger never commits; callers own the transaction boundary. Methods
    take the request's AsyncSession, like every other service.
    """

    def __init__(self) -> None:
        # Weak values: a lock lives exactly as long as someone holds or awaits it
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def user_lock(self, user_id: UUID) -> AsyncIterator[None]:
        """Serializes credit-bearing work for one user within this process."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        async with lock:
            yield

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_balance(self, db: AsyncSession, user_id: UUID) -> int:
        """
        Returns the current balance straight from the database.

        Raises:
            NotFoundError: no such user
            InternalError: the read failed
        """
        try:
            result = await db.execute(select(User.credits).where(User.id == user_id))
            balance = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._storage_failure("read balance", user_id, e)

        if balance is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return balance

    async def has_sufficient_credits(
        self, db: AsyncSession, user_id: UUID, required: int = 1
    ) -> bool:
        return await self.get_balance(db, user_id) >= required

    # ── Mutations ─────────────────────────────────────────────────────────

    async def deduct_credits(
        self,
        db: AsyncSession,
        user_id: UUID,
        amount: int = 1,
        reason: str = "summarization",
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreditResult:
        """
        Atomically takes `amount` credits from `user_id`.

        Raises:
            InvalidAmountError:       amount ≤ 0
            InsufficientCreditsError: balance < amount (nothing is changed)
            NotFoundError:            no such user
            InternalError:            storage failure
        """
        if amount <= 0:
            raise InvalidAmountError(user_id, amount)

        if idempotency_key:
            previous = await self._find_transaction(db, user_id, idempotency_key)
            if previous is not None:
                logger.info(
                    "Deduction replay for user %s (key=%s); balance stays %d",
                    user_id, idempotency_key, previous.balance_after,
                )
                return CreditResult(
                    user_id=user_id,
                    amount=previous.amount,
                    balance=previous.balance_after,
                    replayed=True,
                )

        try:
            result = await db.execute(
                update(User)
                .where(User.id == user_id, User.credits >= amount)
                .values(credits=User.credits - amount, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise self._storage_failure("deduct credits", user_id, e)

        if result.rowcount == 0:
            # Either the user is gone or the balance was too low; tell them apart
            balance = await self.get_balance(db, user_id)
            logger.info(
                "Deduction refused for user %s: balance %d < %d", user_id, balance, amount
            )
            raise InsufficientCreditsError(user_id, required=amount, balance=balance)

        balance = await self.get_balance(db, user_id)
        await self._record(
            db, user_id, TransactionKind.DEDUCT, amount, balance,
            reason=reason, reference_id=reference_id, idempotency_key=idempotency_key,
        )
        logger.info("Deducted %d credit(s) from user %s; %d remaining", amount, user_id, balance)
        return CreditResult(user_id=user_id, amount=amount, balance=balance)

    async def add_credits(
        self,
        db: AsyncSession,
        user_id: UUID,
        amount: int,
        reason: str = "top-up",
    ) -> CreditResult:
        """
        Adds `amount` credits.

        Raises:
            InvalidAmountError: amount ≤ 0
            NotFoundError:      no such user
        """
        if amount <= 0:
            raise InvalidAmountError(user_id, amount)

        try:
            result = await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(credits=User.credits + amount, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise self._storage_failure("add credits", user_id, e)

        if result.rowcount == 0:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        balance = await self.get_balance(db, user_id)
        await self._record(db, user_id, TransactionKind.ADD, amount, balance, reason=reason)
        logger.info("Added %d credit(s) to user %s; new balance %d", amount, user_id, balance)
        return CreditResult(user_id=user_id, amount=amount, balance=balance)

    async def set_credits(
        self,
        db: AsyncSession,
        user_id: UUID,
        credits: int,
        reason: str = "admin adjustment",
    ) -> CreditResult:
        """Sets an absolute balance (administrative). Negative values are rejected."""
        if credits < 0:
            raise InvalidAmountError(user_id, credits)

        try:
            result = await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(credits=credits, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise self._storage_failure("set credits", user_id, e)

        if result.rowcount == 0:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        await self._record(db, user_id, TransactionKind.SET, credits, credits, reason=reason)
        logger.info("Credits for user %s set to %d", user_id, credits)
        return CreditResult(user_id=user_id, amount=credits, balance=credits)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _find_transaction(
        self, db: AsyncSession, user_id: UUID, idempotency_key: str
    ) -> Optional[CreditTransaction]:
        try:
            result = await db.execute(
                select(CreditTransaction).where(
                    CreditTransaction.user_id == user_id,
                    CreditTransaction.idempotency_key == idempotency_key,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._storage_failure("look up transaction", user_id, e)

    async def _record(
        self,
        db: AsyncSession,
        user_id: UUID,
        kind: TransactionKind,
        amount: int,
        balance_after: int,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> None:
        db.add(
            CreditTransaction(
                user_id=user_id,
                kind=kind.value,
                amount=amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
                idempotency_key=idempotency_key,
            )
        )
        try:
            await db.flush()
        except SQLAlchemyError as e:
            raise self._storage_failure("record transaction", user_id, e)

    @staticmethod
    def _storage_failure(action: str, user_id: UUID, error: Exception) -> InternalError:
        logger.error("Credit ledger failed to %s for user %s: %s", action, user_id, error)
        return InternalError(
            context={"user_id": str(user_id), "action": action, "error_type": type(error).__name__}
        )
