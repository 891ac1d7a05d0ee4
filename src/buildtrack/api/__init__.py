"""
buildtrack.api

API package for the BuildTrack service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, request models and the response envelope.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers stay thin: request validation + permission check + delegation to services.
