"""
StudyShare Backend - Recommendation Route
==========================================

What:  POST /api/recommend-notes, the AI study-assistant endpoint.
How:   Reads the JSON body and the optional Authorization header, delegates
       to RecommendationService, serializes the notes. Every failure is an
       exception turned into `{"error": ...}` by the global handler.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header

from studyshare.schemas.note import (
    ErrorResponse,
    NoteResponse,
    RecommendRequest,
    RecommendResponse,
)
from studyshare.services.recommendation_service import recommendation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Recommendations"])


@router.post(
    "/recommend-notes",
    response_model=RecommendResponse,
    responses={
        200: {"description": "Up to 3 notes, best first", "model": RecommendResponse},
        400: {"description": "Lesson topic missing", "model": ErrorResponse},
        402: {"description": "AI gateway credits exhausted", "model": ErrorResponse},
        429: {"description": "AI gateway rate limited", "model": ErrorResponse},
        500: {"description": "Upstream or server failure", "model": ErrorResponse},
    },
    summary="Recommend notes for a lesson",
    description=(
        "Selects public notes matching the optional subject/class filters, "
        "favouring the caller's school when a bearer token identifies them, "
        "and asks the AI gateway to pick the most relevant ones."
    ),
)
async def recommend_notes(
    payload: RecommendRequest,
    authorization: Optional[str] = Header(default=None),
) -> RecommendResponse:
    notes = await recommendation_service.recommend(
        lesson=payload.lesson,
        subject=payload.subject,
        class_name=payload.class_name,
        authorization=authorization,
    )
    return RecommendResponse(
        recommendations=[NoteResponse.from_note(note) for note in notes]
    )
