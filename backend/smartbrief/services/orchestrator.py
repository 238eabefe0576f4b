"""
SmartBrief Backend — Request Orchestrator
===========================================

What:  The use-case layer the HTTP routes call. Sequences every component for
       one request and owns the transaction boundary for credit-bearing work.
Why:   The ordering rules are the whole point of the credit system and must
       live in one place:
           credits are checked strictly before the AI call
           credits are deducted strictly after the AI call succeeded
           a failed AI call leaves no summary and no ledger entry

Orchestration Flow (POST /api/summaries):
    ┌──────────┐   ┌──────────┐   ┌────────────┐   ┌─────────┐   ┌──────────┐   ┌────────┐
    │ validate │──▶│ per-user │──▶│ sufficient │──▶│ AI call │──▶│ persist  │──▶│ deduct │──▶ commit
    │ text/sel │   │  lock    │   │  credits?  │   │ (≤30s)  │   │ summary  │   │ 1 credit│
    └──────────┘   └──────────┘   └────────────┘   └─────────┘   └──────────┘   └────────┘

    The lock is held until the commit, so a second request from the same user
    cannot pass the sufficiency check on a credit the first is about to spend.
    The deduction itself is a conditional UPDATE, which covers other processes.

Error Recovery:
    Any failure inside the locked section rolls the session back before the
    lock is released. SmartBriefErrors propagate unchanged; anything else is
    logged and surfaced as InternalError.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.exceptions import (
    ForbiddenError,
    InsufficientCreditsError,
    InternalError,
    NotFoundError,
    ProviderError,
    SmartBriefError,
    ValidationError,
)
from smartbrief.models.summary import Summary
from smartbrief.models.user import User
from smartbrief.services.ai_gateway import AiProviderGateway, SummaryResult
from smartbrief.services.auth_service import CREDIT_ADMIN_ROLES, Principal, has_any_role
from smartbrief.services.credit_service import CreditLedger, CreditResult
from smartbrief.services.file_service import FileIngestor
from smartbrief.services.summary_service import DEFAULT_PAGE_SIZE, SummaryPage, SummaryStore

logger = logging.getLogger(__name__)

CREDITS_PER_SUMMARY = 1


@dataclass(frozen=True)
class SummaryOutcome:
    """Everything a create/regenerate response reports."""

    summary: Summary
    result: SummaryResult
    credits_deducted: int
    credits_remaining: int
    file: Optional[dict] = None


class RequestOrchestrator:
    """
    Coordinates AuthGate-resolved requests across the core components.

    Built once by the application factory with explicit collaborators.
    """

    def __init__(
        self,
        gateway: AiProviderGateway,
        ledger: CreditLedger,
        store: SummaryStore,
        ingestor: FileIngestor,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.store = store
        self.ingestor = ingestor

    @asynccontextmanager
    async def _credit_unit_of_work(self, db: AsyncSession, user_id: UUID) -> AsyncIterator[None]:
        """Per-user lock + commit on success + rollback on any failure."""
        async with self.ledger.user_lock(user_id):
            try:
                yield
                await db.commit()
            except SmartBriefError:
                await db.rollback()
                raise
            except Exception as e:
                await db.rollback()
                logger.error(
                    "Unexpected failure in credit-bearing request for user %s: %s",
                    user_id, e, exc_info=True,
                )
                raise InternalError(
                    context={"user_id": str(user_id), "error_type": type(e).__name__}
                ) from e

    async def _require_credits(self, db: AsyncSession, user_id: UUID) -> None:
        balance = await self.ledger.get_balance(db, user_id)
        if balance < CREDITS_PER_SUMMARY:
            logger.info("User %s has %d credits; summarization refused", user_id, balance)
            raise InsufficientCreditsError(user_id, required=CREDITS_PER_SUMMARY, balance=balance)

    async def _generate(self, *args, **kwargs) -> SummaryResult:
        """Gateway call with the provider name kept on the way out."""
        try:
            return await self.gateway.generate_summary(*args, **kwargs)
        except ProviderError as e:
            logger.warning(
                "Provider %s failed after %dms; no credit spent: %s",
                e.provider, e.processing_time_ms, e.message,
            )
            raise

    # ── Summaries ─────────────────────────────────────────────────────────

    async def create_summary(
        self,
        db: AsyncSession,
        principal: Principal,
        text: str,
        prompt: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        file: Optional[dict] = None,
    ) -> SummaryOutcome:
        """
        Summarize typed (or already extracted) text for the caller.

        Raises:
            ValidationError, InsufficientCreditsError, ProviderError, InternalError
        """
        # Input problems are reported before any lock or read
        validation = self.gateway.validate_text(text)
        if not validation.valid:
            raise ValidationError(validation.reason, field="text")
        self.gateway.resolve_selection(provider, model)
        self.gateway.resolve_prompt(prompt)

        user_id = principal.user_id
        original_text = text.strip()

        async with self._credit_unit_of_work(db, user_id):
            await self._require_credits(db, user_id)
            result = await self._generate(original_text, prompt, provider, model)
            summary = await self.store.create(db, user_id, original_text, result)
            credit = await self.ledger.deduct_credits(
                db,
                user_id,
                CREDITS_PER_SUMMARY,
                reason="summary created",
                reference_id=str(summary.id),
                idempotency_key=f"summary:{summary.id}:create",
            )

        return SummaryOutcome(
            summary=summary,
            result=result,
            credits_deducted=CREDITS_PER_SUMMARY,
            credits_remaining=credit.balance,
            file=file,
        )

    async def create_summary_from_upload(
        self,
        db: AsyncSession,
        principal: Principal,
        filename: Optional[str],
        content: Optional[bytes],
        content_length: Optional[int] = None,
        prompt: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> SummaryOutcome:
        """
        Extract text from an uploaded document, then proceed as `create_summary`.

        The file is validated and decoded before credits are looked at, so a
        bad upload never costs anything.
        """
        self.ingestor.validate(
            filename, len(content) if content is not None else None, content_length
        )
        document = await self.ingestor.extract(filename, content)
        logger.info(
            "User %s uploaded %s (%d bytes, %d words)",
            principal.user_id, document.extension, document.size, document.word_count,
        )
        return await self.create_summary(
            db,
            principal,
            document.text,
            prompt=prompt,
            provider=provider,
            model=model,
            file=document.metadata,
        )

    async def regenerate_summary(
        self,
        db: AsyncSession,
        principal: Principal,
        summary_id: UUID,
        prompt: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> SummaryOutcome:
        """
        Re-run summarization on a stored summary; the requester pays.

        Raises:
            NotFoundError, ForbiddenError, ValidationError,
            InsufficientCreditsError, ProviderError, InternalError
        """
        if prompt is not None:
            self.gateway.resolve_prompt(prompt)

        user_id = principal.user_id
        async with self._credit_unit_of_work(db, user_id):
            summary = await self.store.get_for_update(db, summary_id, principal)
            self.gateway.resolve_selection(
                *self.store.effective_selection(summary, provider, model)
            )
            await self._require_credits(db, user_id)
            result = await self.store.regenerate(
                db, summary, self.gateway, prompt=prompt, provider=provider, model=model
            )
            regeneration = summary.credits_used - 1
            credit = await self.ledger.deduct_credits(
                db,
                user_id,
                CREDITS_PER_SUMMARY,
                reason="summary regenerated",
                reference_id=str(summary.id),
                idempotency_key=f"summary:{summary.id}:regenerate:{regeneration}",
            )

        return SummaryOutcome(
            summary=summary,
            result=result,
            credits_deducted=CREDITS_PER_SUMMARY,
            credits_remaining=credit.balance,
        )

    async def delete_summary(self, db: AsyncSession, principal: Principal, summary_id: UUID) -> None:
        await self.store.delete(db, summary_id, principal)
        await self._commit(db, principal.user_id)

    async def get_summary(self, db: AsyncSession, principal: Principal, summary_id: UUID) -> Summary:
        return await self.store.get(db, summary_id, principal)

    async def list_summaries(
        self,
        db: AsyncSession,
        principal: Principal,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> SummaryPage:
        return await self.store.list(db, principal, page=page, limit=limit, search=search)

    # ── Credits ───────────────────────────────────────────────────────────

    @staticmethod
    def _require_self_or_admin(principal: Principal, user_id: UUID) -> None:
        if principal.is_self(user_id) or has_any_role(principal.role, CREDIT_ADMIN_ROLES):
            return
        logger.info("User %s denied access to credits of %s", principal.user_id, user_id)
        raise ForbiddenError(
            "Access denied. You can only manage your own credits.",
            context={"user_id": str(user_id)},
        )

    async def get_user_credits(self, db: AsyncSession, principal: Principal, user_id: UUID) -> int:
        self._require_self_or_admin(principal, user_id)
        return await self.ledger.get_balance(db, user_id)

    async def deduct_user_credit(
        self, db: AsyncSession, principal: Principal, user_id: UUID, amount: int = 1
    ) -> CreditResult:
        """Manual deduction; allowed for the account itself or an admin."""
        self._require_self_or_admin(principal, user_id)
        async with self._credit_unit_of_work(db, user_id):
            credit = await self.ledger.deduct_credits(
                db, user_id, amount, reason=f"manual deduction by {principal.user_id}"
            )
        return credit

    async def set_user_credits(
        self, db: AsyncSession, principal: Principal, user_id: UUID, credits: int
    ) -> User:
        """Administrative absolute balance. Admin only."""
        if not has_any_role(principal.role, CREDIT_ADMIN_ROLES):
            logger.info("Non-admin %s tried to set credits of %s", principal.user_id, user_id)
            raise ForbiddenError("Access denied. Admin role required.")

        async with self._credit_unit_of_work(db, user_id):
            await self.ledger.set_credits(
                db, user_id, credits, reason=f"set by admin {principal.user_id}"
            )
            user = await self._load_user(db, user_id)
        return user

    @staticmethod
    async def _load_user(db: AsyncSession, user_id: UUID) -> User:
        result = await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    @staticmethod
    async def _commit(db: AsyncSession, user_id: UUID) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Commit failed for user %s: %s", user_id, e)
            raise InternalError(context={"user_id": str(user_id), "error_type": type(e).__name__})
