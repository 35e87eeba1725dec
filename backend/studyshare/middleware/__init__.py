"""
StudyShare Backend - Middleware Package
========================================

Middleware Chain (last added runs first):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    - Request ID first, so every log line of the request carries it
    - Access log sees the final status and the full duration
"""
