"""
StudyShare Backend - API Routes Package
========================================

Route Inventory:
    - recommend.py:  POST /api/recommend-notes  (AI-ranked notes for a lesson)
    - notes.py:      GET  /api/notes            (browse / search public notes)
                     GET  /api/notes/{id}       (note detail)
    - health.py:     GET  /health               (service health check)
"""
