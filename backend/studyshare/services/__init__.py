"""
StudyShare Backend - Services Layer
====================================

Service Inventory:
    - CompletionService (abstract): chat-completion provider contract
    - AIGatewayService: OpenAI-compatible gateway over httpx
    - AuthService: bearer token → user id through the platform auth API
    - NoteService: every read against the `notes` / `profiles` tables
    - RecommendationService: candidate selection + AI re-ranking flow

Routes stay thin; the flow lives here and is tested without HTTP.
"""
