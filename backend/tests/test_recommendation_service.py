"""
StudyShare Backend - Recommendation Ranker Unit Tests
======================================================

What:  Prompt rendering, model-output parsing, ordering and the full
       recommend() flow with every collaborator faked.
How:   No database, no network: NoteService, CompletionService and
       AuthService are AsyncMocks; the session factory yields a MagicMock.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from studyshare.config import Settings
from studyshare.exceptions import (
    AIQuotaExceededError,
    AIRateLimitError,
    AIResponseFormatError,
    ConfigurationError,
    DatabaseError,
    ValidationError,
)
from studyshare.models.note import format_average_rating
from studyshare.services.note_service import NoteService
from studyshare.services.recommendation_service import (
    NOTE_SEPARATOR,
    ParseFailure,
    RankedIds,
    RecommendationService,
    build_messages,
    build_notes_context,
    order_by_ids,
    parse_recommended_ids,
    render_note_block,
    restrict_to_candidates,
)


class TestAverageRating:

    def test_average_rounds_to_one_decimal(self):
        assert format_average_rating(9, 2) == "4.5"

    def test_whole_average_keeps_decimal(self):
        assert format_average_rating(12, 3) == "4.0"

    def test_no_ratings_is_zero(self):
        assert format_average_rating(0, 0) == "0"


class TestPromptConstruction:

    def test_note_block_format(self, make_note):
        note = make_note("n1", title="Mitosis", rating_sum=9, rating_count=2)
        block = render_note_block(note)
        assert block == (
            "ID: n1\n"
            "Title: Mitosis\n"
            "Description: Detailed summary\n"
            "Subject: Biology\n"
            "Class: BIO 101\n"
            "Type: lecture\n"
            "Rating: 4.5/5 (2 ratings)"
        )

    def test_missing_description_uses_placeholder(self, make_note):
        block = render_note_block(make_note("n1", description=None))
        assert "Description: No description" in block
        assert "Rating: 0/5 (0 ratings)" in block

    def test_blocks_joined_with_separator(self, make_note):
        context = build_notes_context([make_note("n1"), make_note("n2")])
        assert context.count(NOTE_SEPARATOR) == 1
        assert context.index("ID: n1") < context.index("ID: n2")

    def test_messages_include_filters_when_given(self, make_note):
        messages = build_messages("Photosynthesis", "Biology", "BIO 101", [make_note("n1")])
        assert [m["role"] for m in messages] == ["system", "user"]
        assert "JSON array of exactly 3 note IDs" in messages[0]["content"]
        user = messages[1]["content"]
        assert 'Lesson topic: "Photosynthesis"' in user
        assert "Subject: Biology" in user
        assert "Class: BIO 101" in user
        assert "ID: n1" in user

    def test_messages_omit_absent_filters(self, make_note):
        user = build_messages("Photosynthesis", None, None, [make_note("n1")])[1]["content"]
        assert "\nSubject:" not in user.split("Available notes:")[0]
        assert "\nClass:" not in user.split("Available notes:")[0]


class TestParseRecommendedIds:

    def test_plain_json_array(self):
        assert parse_recommended_ids('["n1", "n2", "n3"]') == RankedIds(["n1", "n2", "n3"])

    def test_array_wrapped_in_prose(self):
        result = parse_recommended_ids('Here you go: ["n1","n2","n3"]')
        assert result == RankedIds(["n1", "n2", "n3"])

    def test_array_in_code_fence(self):
        result = parse_recommended_ids('```json\n[\n  "n2",\n  "n1"\n]\n```')
        assert result == RankedIds(["n2", "n1"])

    def test_fewer_than_three_ids_accepted(self):
        assert parse_recommended_ids('["n1"]') == RankedIds(["n1"])

    def test_no_array_is_failure(self):
        assert isinstance(parse_recommended_ids("I recommend the first note."), ParseFailure)

    def test_broken_json_is_failure(self):
        assert isinstance(parse_recommended_ids('Sure: ["n1", "n2"'), ParseFailure)

    def test_non_string_items_are_failure(self):
        assert isinstance(parse_recommended_ids("[1, 2, 3]"), ParseFailure)

    def test_object_is_failure(self):
        assert isinstance(parse_recommended_ids('{"ids": "n1"}'), ParseFailure)

    def test_empty_is_failure(self):
        assert isinstance(parse_recommended_ids("   "), ParseFailure)


class TestOrdering:

    def test_follows_model_order_not_fetch_order(self, make_note):
        fetched = [make_note("n1"), make_note("n3"), make_note("n2")]
        ordered = order_by_ids(["n2", "n1", "n3"], fetched)
        assert [note.id for note in ordered] == ["n2", "n1", "n3"]

    def test_unknown_ids_dropped(self, make_note):
        ordered = order_by_ids(["n9", "n1"], [make_note("n1")])
        assert [note.id for note in ordered] == ["n1"]

    def test_restrict_keeps_candidates_only(self, make_note):
        candidates = [make_note("n1"), make_note("n2"), make_note("n3"), make_note("n4")]
        ids = restrict_to_candidates(["x", "n2", "n2", "n4", "n1", "n3"], candidates, limit=3)
        assert ids == ["n2", "n4", "n1"]


# ══════════════════════════════════════════════════════════════════════════
# Full flow
# ══════════════════════════════════════════════════════════════════════════


def _build_service(config, candidates=(), hydrated=(), completion_text='["n1"]', user_id=None):
    notes = MagicMock()
    notes.get_school_affinity = AsyncMock(return_value="State University" if user_id else None)
    notes.select_candidates = AsyncMock(return_value=list(candidates))
    notes.fetch_notes_by_ids = AsyncMock(return_value=list(hydrated))

    completion = MagicMock()
    completion.complete = AsyncMock(return_value=completion_text)

    auth = MagicMock()
    auth.resolve_user_id = AsyncMock(return_value=user_id)

    session = MagicMock(name="session")

    @asynccontextmanager
    async def session_factory():
        yield session

    service = RecommendationService(
        notes=notes,
        completion=completion,
        auth=auth,
        session_factory=session_factory,
        config=config,
    )
    return service, notes, completion, auth, session


class TestRecommendFlow:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lesson", [None, "", "   \n\t"])
    async def test_blank_lesson_rejected_without_io(self, test_settings, lesson):
        service, notes, completion, auth, _ = _build_service(test_settings)

        with pytest.raises(ValidationError) as exc_info:
            await service.recommend(lesson)

        assert exc_info.value.message == "Lesson topic is required"
        auth.resolve_user_id.assert_not_awaited()
        notes.select_candidates.assert_not_awaited()
        completion.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_configuration_is_fatal(self):
        config = Settings(
            database_url="",
            supabase_url="",
            supabase_service_role_key="",
            ai_gateway_api_key="",
            _env_file=None,
        )
        service, notes, completion, _, _ = _build_service(config)

        with pytest.raises(ConfigurationError) as exc_info:
            await service.recommend("Photosynthesis")

        assert "AI_GATEWAY_API_KEY" in exc_info.value.context["missing"]
        completion.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_candidates_skips_ai(self, test_settings):
        service, notes, completion, _, _ = _build_service(test_settings, candidates=[])

        result = await service.recommend("Photosynthesis")

        assert result == []
        completion.complete.assert_not_awaited()
        notes.fetch_notes_by_ids.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_notes_in_model_order(self, test_settings, make_note):
        candidates = [make_note("n1"), make_note("n2"), make_note("n3")]
        service, notes, completion, _, session = _build_service(
            test_settings,
            candidates=candidates,
            hydrated=[candidates[0], candidates[2], candidates[1]],
            completion_text='["n2","n1","n3"]',
        )

        result = await service.recommend("  Photosynthesis ", subject="Biology", class_name=" ")

        assert [note.id for note in result] == ["n2", "n1", "n3"]
        notes.select_candidates.assert_awaited_once_with(
            session, None, subject="Biology", class_name=None
        )
        notes.fetch_notes_by_ids.assert_awaited_once_with(session, ["n2", "n1", "n3"])
        messages = completion.complete.await_args.args[0]
        assert 'Lesson topic: "Photosynthesis"' in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_school_affinity_comes_from_caller(self, test_settings, make_note):
        service, notes, _, auth, session = _build_service(
            test_settings,
            candidates=[make_note("n1")],
            hydrated=[make_note("n1")],
            user_id="user-42",
        )

        await service.recommend("Genetics", authorization="Bearer token-abc")

        auth.resolve_user_id.assert_awaited_once_with("Bearer token-abc")
        notes.get_school_affinity.assert_awaited_once_with(session, "user-42")
        assert notes.select_candidates.await_args.args == (session, "State University")

    @pytest.mark.asyncio
    async def test_missing_record_dropped(self, test_settings, make_note):
        candidates = [make_note("n1"), make_note("n9")]
        service, *_ = _build_service(
            test_settings,
            candidates=candidates,
            hydrated=[candidates[0]],
            completion_text='["n9","n1"]',
        )

        result = await service.recommend("Genetics")

        assert [note.id for note in result] == ["n1"]

    @pytest.mark.asyncio
    async def test_ids_outside_candidates_never_hydrated(self, test_settings, make_note):
        service, notes, *_ = _build_service(
            test_settings,
            candidates=[make_note("n1")],
            completion_text='["ghost-1", "ghost-2"]',
        )

        result = await service.recommend("Genetics")

        assert result == []
        notes.fetch_notes_by_ids.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unparsable_output_raises_format_error(self, test_settings, make_note):
        service, notes, *_ = _build_service(
            test_settings,
            candidates=[make_note("n1")],
            completion_text="The best note is n1.",
        )

        with pytest.raises(AIResponseFormatError) as exc_info:
            await service.recommend("Genetics")

        assert exc_info.value.message == "Invalid AI response format"
        assert exc_info.value.status_code == 500
        notes.fetch_notes_by_ids.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AIRateLimitError(), AIQuotaExceededError()])
    async def test_upstream_errors_propagate_unretried(self, test_settings, make_note, error):
        service, _, completion, _, _ = _build_service(
            test_settings, candidates=[make_note("n1")]
        )
        completion.complete = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await service.recommend("Genetics")

        assert completion.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, test_settings):
        service, notes, completion, _, _ = _build_service(test_settings)
        notes.select_candidates = AsyncMock(
            side_effect=DatabaseError(message="connection refused")
        )

        with pytest.raises(DatabaseError, match="connection refused"):
            await service.recommend("Genetics")

        completion.complete.assert_not_awaited()


class TestSessionLifetime:
    """The gateway round trip must not hold a database connection."""

    @pytest.mark.asyncio
    async def test_no_session_open_during_completion(self, test_settings, make_note):
        service, _, completion, _, _ = _build_service(
            test_settings,
            candidates=[make_note("n1")],
            hydrated=[make_note("n1")],
        )
        open_sessions = {"count": 0, "seen_during_completion": None}

        @asynccontextmanager
        async def counting_factory():
            open_sessions["count"] += 1
            try:
                yield MagicMock(name="session")
            finally:
                open_sessions["count"] -= 1

        async def complete(messages, temperature=None):
            open_sessions["seen_during_completion"] = open_sessions["count"]
            return '["n1"]'

        service.session_factory = counting_factory
        completion.complete = AsyncMock(side_effect=complete)

        result = await service.recommend("Genetics")

        assert [note.id for note in result] == ["n1"]
        assert open_sessions["seen_during_completion"] == 0
        assert open_sessions["count"] == 0

    @pytest.mark.asyncio
    async def test_no_transaction_during_completion(
        self, test_settings, db_session, seed_profile, seed_note
    ):
        owner = await seed_profile(school_name="State University", username="ada")
        first = await seed_note(owner, rating_count=3, title="Punnett Squares")
        second = await seed_note(owner, rating_count=7, title="Meiosis")

        @asynccontextmanager
        async def session_factory():
            try:
                yield db_session
            finally:
                await db_session.close()

        in_transaction = []

        async def complete(messages, temperature=None):
            in_transaction.append(db_session.in_transaction())
            return f'["{first.id}", "{second.id}"]'

        completion = MagicMock()
        completion.complete = AsyncMock(side_effect=complete)
        auth = MagicMock()
        auth.resolve_user_id = AsyncMock(return_value=None)

        service = RecommendationService(
            notes=NoteService(config=test_settings),
            completion=completion,
            auth=auth,
            session_factory=session_factory,
            config=test_settings,
        )

        result = await service.recommend("Genetics")

        assert in_transaction == [False]
        assert [note.id for note in result] == [first.id, second.id]
        assert result[0].owner.username == "ada"
