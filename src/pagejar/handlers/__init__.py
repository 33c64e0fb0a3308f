"""Request handlers."""

from .static import Outcome, StaticHandler

__all__ = ["Outcome", "StaticHandler"]
