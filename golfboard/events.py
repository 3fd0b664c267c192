"""
Live channel events.

Each event goes over the wire as {"type": <kind>, "data": {...}}.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .models import LeaderboardResult, utc_now

SCORE_UPDATE = "ScoreUpdate"
LEADERBOARD_UPDATED = "LeaderboardUpdated"
POSITION_CHANGE = "PositionChange"
VIEWER_JOINED = "ViewerJoined"
VIEWER_LEFT = "ViewerLeft"
ERROR = "Error"


@dataclass(frozen=True)
class LiveEvent:
    type: str
    data: Dict[str, Any]

    def to_message(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


def _timestamp(timestamp: Optional[datetime]) -> str:
    return (timestamp or utc_now()).isoformat()


def score_update(
    tournament_id: int,
    team_name: str,
    hole_number: int,
    strokes: int,
    timestamp: Optional[datetime] = None,
) -> LiveEvent:
    return LiveEvent(
        SCORE_UPDATE,
        {
            "tournament_id": tournament_id,
            "team_name": team_name,
            "hole_number": hole_number,
            "strokes": strokes,
            "message": f"{team_name} scored {strokes} on hole {hole_number}",
            "timestamp": _timestamp(timestamp),
        },
    )


def leaderboard_updated(result: LeaderboardResult) -> LiveEvent:
    return LiveEvent(LEADERBOARD_UPDATED, result.to_dict())


def position_change(
    tournament_id: int,
    team_name: str,
    old_position: int,
    new_position: int,
    timestamp: Optional[datetime] = None,
) -> LiveEvent:
    """
    Announce that a team moved on the board.

    Lower positions are better, so a smaller new position means "up".
    """
    if new_position < old_position:
        direction = "up"
        message = f"{team_name} moved up to #{new_position}!"
    else:
        direction = "down"
        message = f"{team_name} dropped to #{new_position}"

    return LiveEvent(
        POSITION_CHANGE,
        {
            "tournament_id": tournament_id,
            "team_name": team_name,
            "old_position": old_position,
            "new_position": new_position,
            "direction": direction,
            "message": message,
            "timestamp": _timestamp(timestamp),
        },
    )


def viewer_joined(user_name: str, viewer_count: int) -> LiveEvent:
    return LiveEvent(VIEWER_JOINED, {"user_name": user_name, "viewer_count": viewer_count})


def viewer_left(user_name: str, viewer_count: int) -> LiveEvent:
    return LiveEvent(VIEWER_LEFT, {"user_name": user_name, "viewer_count": viewer_count})


def error(message: str) -> LiveEvent:
    return LiveEvent(ERROR, {"message": message})
