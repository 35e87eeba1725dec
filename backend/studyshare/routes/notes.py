"""
StudyShare Backend - Notes Route Handlers
==========================================

What:  GET /api/notes (browse/search) and GET /api/notes/{id} (detail).
Who:   The Browse and NoteDetail pages.

Only public notes are visible here; a private note answers 404 exactly like
a missing one.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.database import get_db_session
from studyshare.schemas.note import ErrorResponse, NoteListResponse, NoteResponse
from studyshare.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Browse public notes",
)
async def list_notes(
    response: Response,
    search: Optional[str] = Query(
        default=None,
        max_length=200,
        description="Case-insensitive match on title, class or subject",
    ),
    subject: Optional[str] = Query(default=None, description="Exact subject filter"),
    limit: int = Query(default=50, ge=1, le=100, description="Maximum notes returned"),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    notes = await note_service.list_public_notes(
        db, search=search, subject=subject, limit=limit
    )
    response.headers["X-Total-Count"] = str(len(notes))
    return NoteListResponse(
        notes=[NoteResponse.from_note(note) for note in notes],
        count=len(notes),
    )


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={
        404: {"description": "Note not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Get a single public note",
)
async def get_note(
    note_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    # Invalid UUIDs are rejected by FastAPI with 422 before reaching here
    note = await note_service.get_note(db, str(note_id))
    return NoteResponse.from_note(note)
