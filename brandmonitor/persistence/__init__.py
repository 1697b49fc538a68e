"""Persistence for completed analyses."""

from .analyses import AnalysisStore, SavedAnalysis

__all__ = ["AnalysisStore", "SavedAnalysis"]
