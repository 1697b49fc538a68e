"""
Analysis Pipeline

Stages of a brand-visibility run, sequenced by AnalysisOrchestrator:
prompt generation, competitor resolution, provider fan-out, mention
extraction and ranking, with progress delivered through an emitter.
"""

from .competitors import CompetitorResolver
from .extractor import MentionExtractor, classify_sentiment, extract_mentions
from .fanout import ProviderQueryFanout
from .orchestrator import AnalysisOrchestrator
from .progress import (
    CallbackProgressEmitter,
    NullProgressEmitter,
    ProgressEmitter,
    QueueProgressEmitter,
    error_event,
    format_sse,
    stream_analysis,
)
from .prompts import PromptGenerator
from .ranking import RankingEngine, position_weight, rankings_score, sentiment_weight

__all__ = [
    "AnalysisOrchestrator",
    # Stages
    "PromptGenerator",
    "CompetitorResolver",
    "ProviderQueryFanout",
    "MentionExtractor",
    "extract_mentions",
    "classify_sentiment",
    "RankingEngine",
    "rankings_score",
    "position_weight",
    "sentiment_weight",
    # Progress
    "ProgressEmitter",
    "QueueProgressEmitter",
    "CallbackProgressEmitter",
    "NullProgressEmitter",
    "format_sse",
    "error_event",
    "stream_analysis",
]
