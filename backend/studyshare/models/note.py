"""
StudyShare Backend - Note SQLAlchemy Model
===========================================

What:  ORM mapping of the platform's `notes` table.
How:   Generic SQLAlchemy types (Uuid, DateTime) so the same mapping runs
       against the platform Postgres database and an in-memory SQLite
       database in tests.
Who:   NoteService (candidate selection, hydration, browse, detail).

Query Patterns:
    - Candidates: WHERE is_public [AND subject = :s] [AND class_name = :c]
      [AND owner.school_name (=|<>) :school] ORDER BY rating_count DESC LIMIT n
    - Hydration:  WHERE id IN (:ids), joined to the owner profile
    - Browse:     WHERE is_public ORDER BY created_at DESC

Rating invariant:
    average = rating_sum / rating_count when rating_count > 0, else 0.
    The platform updates both counters together when a rating is written.
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyshare.database import Base
from studyshare.models.profile import Profile


class NoteType(str, enum.Enum):
    """Material-type tag chosen by the uploader."""

    LECTURE = "lecture"
    LAB = "lab"
    ASSIGNMENT = "assignment"
    EXAM = "exam"
    PROJECT = "project"
    STUDY_GUIDE = "study_guide"
    OTHER = "other"


class Note(Base):
    """
    A shared study note.

    `owner` is never lazy-loaded (async sessions cannot); queries that need
    the owner's school or name join or eager-load it explicitly.
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True)

    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("profiles.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    class_name: Mapped[str] = mapped_column(String(255), nullable=False)
    note_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=NoteType.OTHER.value,
    )

    # Storage object written by the platform's upload flow
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    rating_sum: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    owner: Mapped[Profile] = relationship(Profile, lazy="raise")

    @property
    def average_rating(self) -> str:
        return format_average_rating(self.rating_sum, self.rating_count)

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, title='{self.title}', "
            f"rating_count={self.rating_count})>"
        )


def format_average_rating(rating_sum: int, rating_count: int) -> str:
    """
    Average rating rounded to one decimal, as shown in the UI and the prompt.

        >>> format_average_rating(9, 2)
        '4.5'
        >>> format_average_rating(0, 0)
        '0'
    """
    if not rating_count:
        return "0"
    return f"{rating_sum / rating_count:.1f}"
