"""
Golf tournament live leaderboard.

This package provides:
- Aggregation of per-hole scores into round and tournament totals
- Tie-aware ranking of teams by score to par
- Leaderboard queries over an SQLite score store
- A live WebSocket channel pushing score, leaderboard and position events
"""

from .config import GolfBoardConfig
from .database import DatabaseManager
from .broadcaster import Broadcaster
from .leaderboard import LeaderboardService
from .live import LiveScoreService
from .web_handlers import WebHandlers
from .scoreboard import GolfBoardSystem

__version__ = "1.0.0"
__author__ = "Golf Leaderboard Contributors"

__all__ = [
    "GolfBoardConfig",
    "DatabaseManager",
    "Broadcaster",
    "LeaderboardService",
    "LiveScoreService",
    "WebHandlers",
    "GolfBoardSystem",
]
