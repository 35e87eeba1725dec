"""
StudyShare Backend - Recommendation Ranker
===========================================

What:  Picks the best notes for a lesson: candidate selection in the database,
       final ordering by a language model.
Who:   POST /api/recommend-notes.

Flow:
    ┌──────────┐   ┌──────────────┐   ┌──────────┐   ┌─────────┐   ┌───────────┐
    │ Validate │──▶│  Candidates  │──▶│  Prompt  │──▶│   AI    │──▶│  Parse &  │
    │  lesson  │   │ (NoteService)│   │          │   │ gateway │   │  hydrate  │
    └──────────┘   └──────────────┘   └──────────┘   └─────────┘   └───────────┘
         │               │ empty → [] (no AI call)
         └─ blank → 400

Model output handling:
    parse_recommended_ids() returns a tagged result, RankedIds or ParseFailure.
    Ids the model returns are kept only if they were among the candidates,
    duplicates are dropped, and at most `recommendation_count` survive. Ids
    with no matching row at hydration time are dropped too; order is the
    model's.
"""

import json
import logging
import re
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.config import Settings, settings as default_settings
from studyshare.database import session_scope
from studyshare.exceptions import AIResponseFormatError, ValidationError
from studyshare.models.note import Note, format_average_rating
from studyshare.services.ai_gateway_service import ai_gateway_service
from studyshare.services.auth_service import AuthService, auth_service
from studyshare.services.llm_base import ChatMessage, CompletionService
from studyshare.services.note_service import NoteService, note_service

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = """You are an AI study assistant that recommends the best notes for students.
Analyze the provided notes and recommend the TOP 3 most relevant notes for the given lesson topic.
Consider:
1. Relevance to the lesson topic
2. Note ratings and popularity
3. Note type (prefer study guides, lecture notes, and exam materials for learning)
4. Description quality and detail

Return ONLY a JSON array of exactly 3 note IDs in order of recommendation (best first).
Format: ["id1", "id2", "id3"]"""

_BRACKETED = re.compile(r"\[.*\]", re.DOTALL)


# ══════════════════════════════════════════════════════════════════════════
# Prompt Construction
# ══════════════════════════════════════════════════════════════════════════

def render_note_block(note: Note) -> str:
    return (
        f"ID: {note.id}\n"
        f"Title: {note.title}\n"
        f"Description: {note.description or 'No description'}\n"
        f"Subject: {note.subject}\n"
        f"Class: {note.class_name}\n"
        f"Type: {note.note_type}\n"
        f"Rating: {format_average_rating(note.rating_sum, note.rating_count)}/5 "
        f"({note.rating_count} ratings)"
    )


def build_notes_context(notes: Iterable[Note]) -> str:
    return NOTE_SEPARATOR.join(render_note_block(note) for note in notes)


def build_messages(
    lesson: str,
    subject: Optional[str],
    class_name: Optional[str],
    candidates: Sequence[Note],
) -> List[ChatMessage]:
    """System instruction plus the user message carrying lesson and candidates."""
    lines = [f'Lesson topic: "{lesson}"']
    if subject:
        lines.append(f"Subject: {subject}")
    if class_name:
        lines.append(f"Class: {class_name}")
    lines.append("")
    lines.append("Available notes:")
    lines.append(build_notes_context(candidates))
    lines.append("")
    lines.append("Recommend the top 3 notes for this lesson.")

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n".join(lines)},
    ]


# ══════════════════════════════════════════════════════════════════════════
# Response Parsing
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RankedIds:
    """Model output that parsed to a JSON array of id strings (any length)."""
    ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = Union[RankedIds, ParseFailure]


def _as_id_list(value: object) -> Optional[List[str]]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return [item.strip() for item in value]
    return None


def parse_recommended_ids(content: str) -> ParseResult:
    """
    Read the model's answer as a JSON array of note ids.

    Tries the whole text first, then the first `[` ... last `]` span, which
    covers arrays wrapped in prose or a code fence.
    """
    text = (content or "").strip()
    if not text:
        return ParseFailure("empty completion")

    try:
        ids = _as_id_list(json.loads(text))
        if ids is not None:
            return RankedIds(ids)
    except ValueError:
        pass

    match = _BRACKETED.search(text)
    if match is None:
        return ParseFailure("no JSON array in completion")
    try:
        ids = _as_id_list(json.loads(match.group(0)))
    except ValueError:
        return ParseFailure("bracketed span is not valid JSON")
    if ids is None:
        return ParseFailure("array does not contain only strings")

    logger.debug("Recovered id array from wrapped completion")
    return RankedIds(ids)


def restrict_to_candidates(
    ids: Sequence[str],
    candidates: Sequence[Note],
    limit: int,
) -> List[str]:
    """Keep candidate ids only, first occurrence wins, at most `limit`."""
    candidate_ids = {note.id for note in candidates}
    kept: List[str] = []
    for note_id in ids:
        if note_id in candidate_ids and note_id not in kept:
            kept.append(note_id)
    dropped = [note_id for note_id in ids if note_id not in candidate_ids]
    if dropped:
        logger.warning("Ignoring %d recommended ids outside the candidate set", len(dropped))
    return kept[:limit]


def order_by_ids(ids: Sequence[str], notes: Iterable[Note]) -> List[Note]:
    """
    Arrange `notes` in the order of `ids`.

    Ids with no matching note are skipped; the rest keep their relative order.
    """
    by_id = {note.id: note for note in notes}
    return [by_id[note_id] for note_id in ids if note_id in by_id]


# ══════════════════════════════════════════════════════════════════════════
# Orchestrator
# ══════════════════════════════════════════════════════════════════════════

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class RecommendationService:
    """
    Stateless orchestrator of the ranking flow.

    Collaborators are injected so tests can swap any of them; the module-level
    `recommendation_service` wires the production singletons.
    """

    def __init__(
        self,
        notes: Optional[NoteService] = None,
        completion: Optional[CompletionService] = None,
        auth: Optional[AuthService] = None,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] = session_scope,
        config: Optional[Settings] = None,
    ):
        self.notes = notes or note_service
        self.completion = completion or ai_gateway_service
        self.auth = auth or auth_service
        self.session_factory = session_factory
        self.config = config or default_settings

    async def recommend(
        self,
        lesson: Optional[str],
        subject: Optional[str] = None,
        class_name: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> List[Note]:
        """
        Recommend up to `recommendation_count` notes for a lesson, best first.

        Args:
            lesson:        Free-text topic; required, non-blank.
            subject:       Optional exact subject filter.
            class_name:    Optional exact class filter.
            authorization: Raw Authorization header, used only for school affinity.

        Returns:
            Hydrated notes (owner eager-loaded) in the model's order. Empty when
            no candidate matched or none of the model's ids survived.

        Raises:
            ValidationError:       blank lesson (400), before any I/O
            ConfigurationError:    missing credentials or connection settings
            AIRateLimitError / AIQuotaExceededError / AIGatewayError
            AIResponseFormatError: model output has no id array
            DatabaseError:         a query failed
        """
        lesson = _clean(lesson)
        if lesson is None:
            raise ValidationError(message="Lesson topic is required", field="lesson")
        subject = _clean(subject)
        class_name = _clean(class_name)

        self.config.validate_required()

        user_id = await self.auth.resolve_user_id(authorization)

        async with self.session_factory() as db:
            school_name = await self.notes.get_school_affinity(db, user_id)
            candidates = await self.notes.select_candidates(
                db, school_name, subject=subject, class_name=class_name
            )
        if not candidates:
            logger.info("No candidate notes for lesson; skipping AI ranking")
            return []

        # No session is open here: the gateway call can take up to ai_timeout
        # and must not pin a pooled connection.
        content = await self.completion.complete(
            build_messages(lesson, subject, class_name, candidates),
            temperature=self.config.ai_temperature,
        )

        parsed = parse_recommended_ids(content)
        if isinstance(parsed, ParseFailure):
            logger.error("Unusable AI response (%s): %.200s", parsed.reason, content)
            raise AIResponseFormatError(context={"reason": parsed.reason})

        ids = restrict_to_candidates(
            parsed.ids, candidates, self.config.recommendation_count
        )
        if not ids:
            return []

        async with self.session_factory() as db:
            hydrated = await self.notes.fetch_notes_by_ids(db, ids)

        recommendations = order_by_ids(ids, hydrated)
        logger.info(
            "Recommended %d of %d candidates",
            len(recommendations),
            len(candidates),
        )
        return recommendations


recommendation_service = RecommendationService()
