"""
SmartBrief Backend — Summary Store Tests
==========================================

What:  Persistence of completed summaries, the ownership/role policy, list
       visibility with search and pagination, regeneration and deletion.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from smartbrief.exceptions import ForbiddenError, NotFoundError, ProviderError
from smartbrief.models import AIProvider, Role
from smartbrief.services.ai_gateway import SummaryResult
from smartbrief.services.llm_base import TokenUsage
from smartbrief.services.summary_service import SummaryPage, SummaryStore
from smartbrief.text_rules import DEFAULT_PROMPT

from conftest import FIFTEEN_WORDS, SAMPLE_TEXT, principal_for


def _result(text: str = "A compact summary.", provider=AIProvider.GEMINI, model="gemini-1.5-flash-latest"):
    return SummaryResult(
        summary_text=text,
        provider=provider,
        model=model,
        prompt=DEFAULT_PROMPT,
        processing_time_ms=120,
        usage=TokenUsage(),
    )


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_completed_with_counts(self, store, db_session, make_user):
        user = await make_user()

        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())
        await db_session.commit()

        assert summary.id is not None
        assert summary.owner_id == user.id
        assert summary.status == "completed"
        assert summary.word_count_original == 15
        assert summary.word_count_summary == 3
        assert summary.credits_used == 1
        assert summary.provider == "gemini"
        assert summary.processing_time_ms == 120


class TestAccessPolicy:

    @pytest.mark.asyncio
    async def test_owner_can_view(self, store, db_session, make_user):
        owner = await make_user()
        summary = await store.create(db_session, owner.id, FIFTEEN_WORDS, _result())

        loaded = await store.get(db_session, summary.id, principal_for(owner))
        assert loaded.id == summary.id

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, store, db_session, make_user):
        owner = await make_user()
        stranger = await make_user()
        summary = await store.create(db_session, owner.id, FIFTEEN_WORDS, _result())

        with pytest.raises(ForbiddenError, match="only view your own"):
            await store.get(db_session, summary.id, principal_for(stranger))

    @pytest.mark.asyncio
    async def test_reviewer_views_but_cannot_modify(self, store, db_session, make_user):
        owner = await make_user()
        reviewer = await make_user(role=Role.REVIEWER)
        summary = await store.create(db_session, owner.id, FIFTEEN_WORDS, _result())

        await store.get(db_session, summary.id, principal_for(reviewer))
        with pytest.raises(ForbiddenError, match="only modify your own"):
            await store.get_for_update(db_session, summary.id, principal_for(reviewer))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.EDITOR, Role.ADMIN])
    async def test_editor_and_admin_may_modify(self, store, db_session, make_user, role):
        owner = await make_user()
        privileged = await make_user(role=role)
        summary = await store.create(db_session, owner.id, FIFTEEN_WORDS, _result())

        loaded = await store.get_for_update(db_session, summary.id, principal_for(privileged))
        assert loaded.owner_id == owner.id

    @pytest.mark.asyncio
    async def test_missing_summary(self, store, db_session, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await store.get(db_session, uuid.uuid4(), principal_for(user))


class TestList:

    async def _seed(self, store, db_session, owner, texts):
        base = datetime.now(timezone.utc)
        created = []
        for offset, text in enumerate(texts):
            summary = await store.create(db_session, owner.id, text, _result())
            summary.created_at = base + timedelta(seconds=offset)
            created.append(summary)
        await db_session.commit()
        return created

    @pytest.mark.asyncio
    async def test_plain_user_sees_only_own_newest_first(self, store, db_session, make_user):
        alice = await make_user()
        bob = await make_user()
        alice_rows = await self._seed(store, db_session, alice, [FIFTEEN_WORDS, SAMPLE_TEXT])
        await self._seed(store, db_session, bob, [FIFTEEN_WORDS])

        page = await store.list(db_session, principal_for(alice))

        assert page.total_count == 2
        assert [s.id for s in page.items] == [alice_rows[1].id, alice_rows[0].id]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.REVIEWER, Role.EDITOR, Role.ADMIN])
    async def test_privileged_roles_see_everything(self, store, db_session, make_user, role):
        alice = await make_user()
        bob = await make_user()
        viewer = await make_user(role=role)
        await self._seed(store, db_session, alice, [FIFTEEN_WORDS])
        await self._seed(store, db_session, bob, [SAMPLE_TEXT])

        page = await store.list(db_session, principal_for(viewer))
        assert page.total_count == 2

    @pytest.mark.asyncio
    async def test_visibility_policy_is_configurable(self, db_session, make_user):
        narrow = SummaryStore(list_visible_roles=("admin",))
        alice = await make_user()
        reviewer = await make_user(role=Role.REVIEWER)
        await self._seed(narrow, db_session, alice, [FIFTEEN_WORDS])

        page = await narrow.list(db_session, principal_for(reviewer))
        assert page.total_count == 0

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, store, db_session, make_user):
        user = await make_user()
        await self._seed(store, db_session, user, [FIFTEEN_WORDS, SAMPLE_TEXT])

        page = await store.list(db_session, principal_for(user), search="UNRELIABLE networks")
        assert page.total_count == 1
        assert page.items[0].original_text == SAMPLE_TEXT

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, store, db_session, make_user):
        user = await make_user()
        await self._seed(store, db_session, user, [FIFTEEN_WORDS])

        page = await store.list(db_session, principal_for(user), search="%")
        assert page.total_count == 0

    @pytest.mark.asyncio
    async def test_pagination(self, store, db_session, make_user):
        user = await make_user()
        await self._seed(store, db_session, user, [FIFTEEN_WORDS] * 5)

        page = await store.list(db_session, principal_for(user), page=2, limit=2)

        assert len(page.items) == 2
        assert page.total_count == 5
        assert page.total_pages == 3
        assert page.has_next is True
        assert page.has_prev is True

    def test_empty_page_shape(self):
        page = SummaryPage(items=[], total_count=0, page=1, limit=10)
        assert page.total_pages == 0
        assert page.has_next is False
        assert page.has_prev is False


class TestRegenerate:

    @pytest.mark.asyncio
    async def test_keeps_stored_provider_when_omitted(self, store, gateway, db_session, make_user, fake_openai):
        user = await make_user()
        summary = await store.create(
            db_session, user.id, FIFTEEN_WORDS, _result(provider=AIProvider.OPENAI, model="gpt-4o")
        )

        await store.regenerate(db_session, summary, gateway)

        assert fake_openai.calls[0]["model"] == "gpt-4o"
        assert summary.summary_text == "An OpenAI summary."
        assert summary.credits_used == 2
        assert summary.original_text == FIFTEEN_WORDS

    @pytest.mark.asyncio
    async def test_new_provider_uses_its_default_model(self, store, gateway, db_session, make_user):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())

        await store.regenerate(db_session, summary, gateway, provider="openai")

        assert summary.provider == "openai"
        assert summary.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_new_prompt_stored(self, store, gateway, db_session, make_user, fake_gemini):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())

        await store.regenerate(db_session, summary, gateway, prompt="One sentence only:")

        assert fake_gemini.calls[0]["prompt"] == "One sentence only:"
        assert summary.prompt == "One sentence only:"

    @pytest.mark.asyncio
    async def test_blank_prompt_keeps_stored_prompt(self, store, gateway, db_session, make_user, fake_gemini):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())
        await store.regenerate(db_session, summary, gateway, prompt="One sentence only:")

        for blank in ("", "   "):
            await store.regenerate(db_session, summary, gateway, prompt=blank)
            assert fake_gemini.calls[-1]["prompt"] == "One sentence only:"

        assert summary.prompt == "One sentence only:"
        assert summary.credits_used == 4

    @pytest.mark.asyncio
    async def test_effective_selection(self, store, db_session, make_user):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())

        assert store.effective_selection(summary) == ("gemini", "gemini-1.5-flash-latest")
        assert store.effective_selection(summary, model="gemini-1.5-pro") == ("gemini", "gemini-1.5-pro")
        assert store.effective_selection(summary, provider="openai") == ("openai", None)

    @pytest.mark.asyncio
    async def test_failed_call_leaves_summary_untouched(self, store, gateway, db_session, make_user, fake_gemini):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())
        fake_gemini.error = RuntimeError("boom")

        with pytest.raises(ProviderError):
            await store.regenerate(db_session, summary, gateway)

        assert summary.summary_text == "A compact summary."
        assert summary.credits_used == 1


class TestDelete:

    @pytest.mark.asyncio
    async def test_owner_deletes(self, store, db_session, make_user):
        user = await make_user()
        summary = await store.create(db_session, user.id, FIFTEEN_WORDS, _result())
        await db_session.commit()

        await store.delete(db_session, summary.id, principal_for(user))
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await store.get(db_session, summary.id, principal_for(user))

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(self, store, db_session, make_user):
        owner = await make_user()
        stranger = await make_user()
        summary = await store.create(db_session, owner.id, FIFTEEN_WORDS, _result())

        with pytest.raises(ForbiddenError):
            await store.delete(db_session, summary.id, principal_for(stranger))
