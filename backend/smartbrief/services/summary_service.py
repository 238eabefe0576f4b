"""
SmartBrief Backend — Summary Store
====================================

What:  Owns Summary rows: creation, regeneration, deletion, retrieval, listing,
       and the ownership/role policy that guards each of them.
Why:   Keeping the access policy next to the queries means no route can fetch
       a summary without also passing the visibility check.
How:   Stateless apart from the configured listing policy; every method takes
       the request's AsyncSession and the resolved Principal. Nothing here
       commits; the orchestrator or the session dependency does.

Access policy:
    read (get)             owner, reviewer, editor, admin
    mutate (regen/delete)  owner, editor, admin
    list                   own summaries only, unless the role is in the
                           configured visibility set (default admin/editor/reviewer)

Query plan (list, plain user):
    SELECT ... FROM summaries WHERE owner_id = :uid
    ORDER BY created_at DESC LIMIT :limit OFFSET :offset
    → served by idx_summaries_owner_created_at
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.exceptions import ForbiddenError, InternalError, NotFoundError
from smartbrief.models.summary import Summary, SummaryStatus
from smartbrief.models.user import Role, utc_now
from smartbrief.services.ai_gateway import AiProviderGateway, SummaryResult
from smartbrief.services.auth_service import (
    MUTATE_ANY_ROLES,
    VIEW_ANY_ROLES,
    Principal,
    has_any_role,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class SummaryPage:
    items: List[Summary]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.limit - 1) // self.limit if self.total_count else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class SummaryStore:
    """Persistence and access control for summaries."""

    def __init__(self, list_visible_roles: Iterable[str] = ("admin", "editor", "reviewer")):
        visible = set()
        for name in list_visible_roles:
            try:
                visible.add(Role(name))
            except ValueError:
                logger.warning("Ignoring unknown role %r in list visibility policy", name)
        self._list_visible_roles = frozenset(visible)

    # ── Policy ────────────────────────────────────────────────────────────

    @staticmethod
    def _authorize(summary: Summary, principal: Principal, allowed, action: str) -> None:
        if summary.owner_id == principal.user_id or has_any_role(principal.role, allowed):
            return
        logger.info(
            "Denied %s of summary %s to user %s (role=%s)",
            action, summary.id, principal.user_id, principal.role.value,
        )
        raise ForbiddenError(
            f"Access denied. You can only {action} your own summaries.",
            context={"summary_id": str(summary.id), "user_id": str(principal.user_id)},
        )

    def sees_all_summaries(self, principal: Principal) -> bool:
        return has_any_role(principal.role, self._list_visible_roles)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, summary_id: UUID) -> Summary:
        try:
            result = await db.execute(select(Summary).where(Summary.id == summary_id))
            summary = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to load summary %s: %s", summary_id, e)
            raise InternalError(context={"summary_id": str(summary_id), "error_type": type(e).__name__})

        if summary is None:
            raise NotFoundError(resource="summary", resource_id=str(summary_id))
        return summary

    async def get(self, db: AsyncSession, summary_id: UUID, principal: Principal) -> Summary:
        summary = await self._load(db, summary_id)
        self._authorize(summary, principal, VIEW_ANY_ROLES, "view")
        return summary

    async def get_for_update(self, db: AsyncSession, summary_id: UUID, principal: Principal) -> Summary:
        """Loads a summary the principal is allowed to regenerate or delete."""
        summary = await self._load(db, summary_id)
        self._authorize(summary, principal, MUTATE_ANY_ROLES, "modify")
        return summary

    async def list(
        self,
        db: AsyncSession,
        principal: Principal,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> SummaryPage:
        """
        Newest-first page of the summaries the principal may see.

        `search` is a case-insensitive substring match over the original and
        summary text; LIKE wildcards in the term are matched literally.
        """
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)

        filters = []
        if not self.sees_all_summaries(principal):
            filters.append(Summary.owner_id == principal.user_id)
        if search and search.strip():
            term = search.strip().lower()
            filters.append(
                or_(
                    func.lower(Summary.original_text).contains(term, autoescape=True),
                    func.lower(Summary.summary_text).contains(term, autoescape=True),
                )
            )

        try:
            total_count = (
                await db.execute(select(func.count(Summary.id)).where(*filters))
            ).scalar_one()
            result = await db.execute(
                select(Summary)
                .where(*filters)
                .order_by(Summary.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Failed to list summaries for %s: %s", principal.user_id, e, exc_info=True)
            raise InternalError(context={"error_type": type(e).__name__})

        return SummaryPage(items=items, total_count=total_count, page=page, limit=limit)

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self, db: AsyncSession, owner_id: UUID, original_text: str, result: SummaryResult
    ) -> Summary:
        """
        Persists the outcome of a successful AI call as a completed summary.

        Word counts are derived by the model's attribute validators.
        """
        summary = Summary(
            owner_id=owner_id,
            original_text=original_text,
            summary_text=result.summary_text,
            prompt=result.prompt,
            provider=result.provider.value,
            model=result.model,
            processing_time_ms=result.processing_time_ms,
            credits_used=1,
            status=SummaryStatus.PROCESSING.value,
        )
        summary.transition_to(SummaryStatus.COMPLETED)
        db.add(summary)
        await self._flush(db, "create summary", owner_id)
        logger.info("Summary %s created for user %s", summary.id, owner_id)
        return summary

    @staticmethod
    def effective_selection(
        summary: Summary, provider: Optional[str] = None, model: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """Provider and model a regeneration would use, before catalogue checks."""
        if not provider and not model:
            return summary.provider, summary.model
        if not provider:
            return summary.provider, model
        return provider, model

    async def regenerate(
        self,
        db: AsyncSession,
        summary: Summary,
        gateway: AiProviderGateway,
        prompt: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> SummaryResult:
        """
        Re-summarizes the stored original text and overwrites the result.

        Unspecified values fall back to the ones already on the summary. A new
        provider without a model uses that provider's default model. If the
        AI call fails the summary is left untouched.
        """
        provider, model = self.effective_selection(summary, provider, model)

        result = await gateway.generate_summary(
            text=summary.original_text,
            prompt=prompt if prompt and prompt.strip() else summary.prompt,
            provider=provider,
            model=model,
        )

        summary.summary_text = result.summary_text
        summary.prompt = result.prompt
        summary.provider = result.provider.value
        summary.model = result.model
        summary.processing_time_ms = result.processing_time_ms
        summary.credits_used = (summary.credits_used or 0) + 1
        summary.updated_at = utc_now()
        await self._flush(db, "regenerate summary", summary.owner_id)
        logger.info("Summary %s regenerated (credits_used=%d)", summary.id, summary.credits_used)
        return result

    async def delete(self, db: AsyncSession, summary_id: UUID, principal: Principal) -> None:
        summary = await self.get_for_update(db, summary_id, principal)
        try:
            await db.delete(summary)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to delete summary %s: %s", summary_id, e)
            raise InternalError(context={"summary_id": str(summary_id), "error_type": type(e).__name__})
        logger.info("Summary %s deleted by user %s", summary_id, principal.user_id)

    @staticmethod
    async def _flush(db: AsyncSession, action: str, user_id: UUID) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to %s for user %s: %s", action, user_id, e)
            raise InternalError(context={"user_id": str(user_id), "error_type": type(e).__name__})
