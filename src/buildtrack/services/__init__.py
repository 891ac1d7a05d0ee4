"""
buildtrack.services

Service layer: validation rules, workflows and derived financial state.

Responsibilities:
- Own transactions (commit) for multi-step operations.
- Keep routers thin by holding the domain rules here.
"""


# --- Module Notes -----------------------------------------------------------
# Services take an `AsyncSession` and a `Principal`; they never see FastAPI
# request objects.
