"""In-memory composition collection with a single active document."""

from .service import CompositionRegistry, EditFn

__all__ = ["CompositionRegistry", "EditFn"]
