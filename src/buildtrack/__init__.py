"""
buildtrack

Top-level package for the BuildTrack construction project management service.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.3.0"
