"""
StudyShare Backend - Profile SQLAlchemy Model
==============================================

What:  ORM mapping of the platform's `profiles` table (one row per user).
Who:   Read by NoteService for school affinity and for the owner's display
       name attached to every note this API returns.

The table is owned and migrated by the platform; this mapping only lists the
columns the service reads.
"""

from typing import Optional

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from studyshare.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    # Same value as the auth user id
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True)

    username: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # School affinity of every note this user owns. NULL means "no school".
    school_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, username='{self.username}')>"
