"""
buildtrack.auth

Authentication/authorization package.

Responsibilities:
- JWT helpers and validation.
- Role to permission lookup.
- FastAPI auth dependencies (Principal + permission checks).
"""
