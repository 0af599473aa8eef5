"""Query module."""

from .query_engine import CAPTURE_FAILED, NO_HISTORY, History, QueryEngine

__all__ = ["CAPTURE_FAILED", "NO_HISTORY", "History", "QueryEngine"]
