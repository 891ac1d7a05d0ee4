"""
buildtrack.observability

Structured logging and request context.
"""
