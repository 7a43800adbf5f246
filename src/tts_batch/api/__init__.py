"""
FastAPI REST API Layer for tts-batch.

    - routes.py: Synthesis, provider and voice endpoints, /health, /metrics
    - admin.py: Admin endpoints (custom voices, users, usage statistics)
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
