"""
StudyShare Backend - Application Package
=========================================

What:  Python service behind the StudyShare note-sharing app.
How:   Layered the same way in every module:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← candidate selection, AI ranking
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← platform Postgres, async sessions
    └─────────────────────────────────────┘

    Persistence, authentication and file storage belong to the managed
    platform. This service only reads from it and calls the AI gateway.
"""

__version__ = "1.0.0"
