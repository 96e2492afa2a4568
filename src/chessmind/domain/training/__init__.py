"""Search, learning and self-play services for ChessMind."""

from .agent import LearningAgent
from .search import MoveSelector, SearchResult
from .self_play import SelfPlayCollector, SelfPlayEpisode
from .self_play_orchestrator import GameSummary, SelfPlayOrchestrator, TrainingSummary
from .self_play_runner import SelfPlayRunner

__all__ = [
    "GameSummary",
    "LearningAgent",
    "MoveSelector",
    "SearchResult",
    "SelfPlayCollector",
    "SelfPlayEpisode",
    "SelfPlayOrchestrator",
    "SelfPlayRunner",
    "TrainingSummary",
]
