"""
StudyShare Backend - Note Service (Read Access to the Platform Database)
=========================================================================

What:  Every query this backend runs against `notes` and `profiles`.
How:   Async SQLAlchemy selects on a session handed in by the caller. Query
       failures are wrapped in DatabaseError carrying the driver's message.
Who:   RecommendationService (affinity, candidates, hydration) and the
       browse/detail routes.

Candidate selection (recommendation flow):

    caller has a school?
      ├── yes → same-school public notes   ORDER BY rating_count DESC LIMIT 30
      │         other-school public notes  ORDER BY rating_count DESC LIMIT 20
      │         result = same-school ++ other-school
      └── no  → all public notes           ORDER BY rating_count DESC LIMIT 50

    Same-school notes always come first, whatever their rating_count.
    With affinity, notes of owners without a school are left out of both tiers.

NoteService holds no state; the two affinity queries run one after the other
on the request's session.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import Select, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, joinedload

from studyshare.config import Settings, settings as default_settings
from studyshare.exceptions import DatabaseError, NotFoundError
from studyshare.models.note import Note
from studyshare.models.profile import Profile

logger = logging.getLogger(__name__)


def _database_error(e: SQLAlchemyError, operation: str) -> DatabaseError:
    """Wrap a driver error, keeping its message for the caller."""
    original = getattr(e, "orig", None)
    message = str(original) if original is not None else str(e)
    logger.error("Database error during %s: %s", operation, message)
    return DatabaseError(
        message=message or "A database error occurred. Please try again later.",
        context={"operation": operation, "error_type": type(e).__name__},
    )


class NoteService:
    """
    Read-side data access for notes.

    Responsibilities:
        - get_school_affinity(): caller's school from their profile
        - select_candidates(): bounded candidate set for AI ranking
        - fetch_notes_by_ids(): batch hydration of recommended ids
        - list_public_notes(): browse/search page
        - get_note(): note detail page
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    # ── Recommendation flow ───────────────────────────────────────────────

    async def get_school_affinity(
        self, db: AsyncSession, user_id: Optional[str]
    ) -> Optional[str]:
        """The caller's `profiles.school_name`, or None (no user, no profile, no school)."""
        if not user_id:
            return None
        try:
            result = await db.execute(
                select(Profile.school_name).where(Profile.id == user_id)
            )
            school_name = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _database_error(e, "get_school_affinity") from e
        return school_name or None

    @staticmethod
    def _candidate_query(
        subject: Optional[str],
        class_name: Optional[str],
    ) -> Select:
        """Public notes joined to their owner, filtered, most-rated first."""
        query = (
            select(Note)
            .join(Note.owner)
            .options(contains_eager(Note.owner))
            .where(Note.is_public.is_(True))
        )
        if subject:
            query = query.where(Note.subject == subject)
        if class_name:
            query = query.where(Note.class_name == class_name)
        return query.order_by(Note.rating_count.desc(), Note.created_at.desc())

    async def select_candidates(
        self,
        db: AsyncSession,
        school_name: Optional[str],
        subject: Optional[str] = None,
        class_name: Optional[str] = None,
    ) -> List[Note]:
        """
        Build the candidate set for AI ranking.

        Returns:
            At most same_school_limit + other_school_limit notes when
            school_name is given (same-school first), otherwise at most
            candidate_limit notes. No duplicates.
        """
        base = self._candidate_query(subject, class_name)

        try:
            if school_name:
                same_school = await db.execute(
                    base.where(Profile.school_name == school_name)
                    .limit(self.config.same_school_limit)
                )
                same_school_notes = list(same_school.scalars().all())

                # SQL `<>`: owners without a school match neither tier
                other_school = await db.execute(
                    base.where(Profile.school_name != school_name)
                    .limit(self.config.other_school_limit)
                )
                other_school_notes = list(other_school.scalars().all())

                candidates = _merge_unique(same_school_notes, other_school_notes)
                logger.info(
                    "Selected %d candidates (%d same-school, %d other-school)",
                    len(candidates),
                    len(same_school_notes),
                    len(other_school_notes),
                )
                return candidates

            result = await db.execute(base.limit(self.config.candidate_limit))
            candidates = _merge_unique(result.scalars().all())
        except SQLAlchemyError as e:
            raise _database_error(e, "select_candidates") from e

        logger.info("Selected %d candidates (no school affinity)", len(candidates))
        return candidates

    async def fetch_notes_by_ids(
        self, db: AsyncSession, note_ids: Sequence[str]
    ) -> List[Note]:
        """Notes with the given ids and their owners, in database order."""
        if not note_ids:
            return []
        try:
            result = await db.execute(
                select(Note)
                .options(joinedload(Note.owner))
                .where(Note.id.in_(list(note_ids)))
            )
            return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            raise _database_error(e, "fetch_notes_by_ids") from e

    # ── Browse / detail ───────────────────────────────────────────────────

    async def list_public_notes(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        subject: Optional[str] = None,
        limit: int = 50,
    ) -> List[Note]:
        """
        Public notes, newest first.

        `search` matches title, class or subject, case-insensitively.
        """
        query = (
            select(Note)
            .options(joinedload(Note.owner))
            .where(Note.is_public.is_(True))
        )
        if search and search.strip():
            term = search.strip()
            query = query.where(
                or_(
                    Note.title.icontains(term, autoescape=True),
                    Note.class_name.icontains(term, autoescape=True),
                    Note.subject.icontains(term, autoescape=True),
                )
            )
        if subject:
            query = query.where(Note.subject == subject)
        query = query.order_by(Note.created_at.desc()).limit(limit)

        try:
            result = await db.execute(query)
            return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            raise _database_error(e, "list_public_notes") from e

    async def get_note(self, db: AsyncSession, note_id: str) -> Note:
        """
        A single public note with its owner.

        Raises:
            NotFoundError: no such note, or it is private (→ 404)
            DatabaseError: query failed (→ 500)
        """
        try:
            result = await db.execute(
                select(Note)
                .options(joinedload(Note.owner))
                .where(Note.id == note_id, Note.is_public.is_(True))
            )
            note = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _database_error(e, "get_note") from e

        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note


def _merge_unique(*groups: Sequence[Note]) -> List[Note]:
    """Concatenate note lists in order, keeping the first occurrence of each id."""
    seen = set()
    merged: List[Note] = []
    for group in groups:
        for note in group:
            if note.id in seen:
                continue
            seen.add(note.id)
            merged.append(note)
    return merged


note_service = NoteService()
