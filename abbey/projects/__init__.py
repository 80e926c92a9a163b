"""Ordered project lists built from compositions."""

from .service import ProjectBook

__all__ = ["ProjectBook"]
