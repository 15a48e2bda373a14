"""API routers for Polya Tutor."""

from . import tutor

__all__ = ["tutor"]
