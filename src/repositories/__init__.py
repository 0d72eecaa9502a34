"""
Repositories Layer
Data persistence and query operations for the scoring service.
"""
from .connection import db_manager, DatabaseManager
from .base import BaseRepository
from .deals import DealRepository, DealNotFoundError
from .score_history import ScoreHistoryRepository, ScoringRunRepository
from .score_events import ScoreEventRepository
from .settings_store import ScoringConfigRepository

__all__ = [
    "db_manager",
    "DatabaseManager",
    "BaseRepository",
    "DealRepository",
    "DealNotFoundError",
    "ScoreHistoryRepository",
    "ScoringRunRepository",
    "ScoreEventRepository",
    "ScoringConfigRepository",
]
