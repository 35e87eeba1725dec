"""
StudyShare Backend - Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract with the frontend.
How:   FastAPI validates request bodies against these, serializes responses
       through them and builds the OpenAPI docs from them.

Note payloads keep the platform's column names (snake_case) and nest the
owner under `profiles`, so the frontend renders recommendations with the same
code it uses for rows it reads from the platform directly.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from studyshare.models.note import Note, NoteType


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RecommendRequest(BaseModel):
    """
    Body of POST /api/recommend-notes.

    `lesson` is optional at the schema level so a missing or blank topic gets
    the service's own 400 "Lesson topic is required" instead of a 422.
    """
    lesson: Optional[str] = Field(default=None, description="Free-text lesson topic")
    subject: Optional[str] = Field(default=None, description="Exact subject filter")
    class_name: Optional[str] = Field(
        default=None,
        alias="className",
        description="Exact class filter",
    )

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteOwner(BaseModel):
    """Display fields of the note's owner."""
    username: str
    full_name: Optional[str] = None

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    """
    What:  Full representation of a note, owner included.
    Who:   Returned by the recommendation, browse and detail endpoints.
    """
    id: str = Field(description="Note identifier (UUID)")
    user_id: str = Field(description="Owner's user id")
    title: str
    description: Optional[str] = None
    subject: str
    class_name: str
    note_type: NoteType
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    rating_sum: int = Field(ge=0)
    rating_count: int = Field(ge=0)
    average_rating: str = Field(description="rating_sum / rating_count to 1 decimal, or '0'")
    is_public: bool
    created_at: datetime
    profiles: Optional[NoteOwner] = Field(default=None, description="Owner display fields")

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        """Build from an ORM note whose `owner` was eager-loaded."""
        return cls(
            id=note.id,
            user_id=note.user_id,
            title=note.title,
            description=note.description,
            subject=note.subject,
            class_name=note.class_name,
            note_type=note.note_type,
            file_url=note.file_url,
            file_name=note.file_name,
            rating_sum=note.rating_sum,
            rating_count=note.rating_count,
            average_rating=note.average_rating,
            is_public=note.is_public,
            created_at=note.created_at,
            profiles=NoteOwner.model_validate(note.owner) if note.owner else None,
        )


class RecommendResponse(BaseModel):
    """Up to `recommendation_count` notes, best first. Empty when nothing matched."""
    recommendations: List[NoteResponse] = Field(default_factory=list)


class NoteListResponse(BaseModel):
    """Browse page payload."""
    notes: List[NoteResponse] = Field(description="Public notes, newest first")
    count: int = Field(description="Number of notes in this response")


class ErrorResponse(BaseModel):
    """
    Error body for every failure.

    Example:
        {"error": "Lesson topic is required", "request_id": "1a2b3c4d"}
    """
    error: str = Field(description="Human-readable error message")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="connected, disconnected, not_configured")
    ai_gateway: str = Field(description="configured, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
