"""Parser and builder types for the Biscuit Datalog language."""

__version__ = "0.1.0"
__all__ = ["builder", "error", "terms", "expressions", "statements"]