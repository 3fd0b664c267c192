"""
Data models for tournaments, teams, rounds, scores and derived leaderboards.

Stored entities mirror the SQLite rows. Aggregates and leaderboard entries
are derived per request and never persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .errors import ScoreValidationError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Tournament:
    tournament_id: int
    name: str
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: str = "Upcoming"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "name": self.name,
            "location": self.location,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "status": self.status,
        }


@dataclass(frozen=True)
class Team:
    team_id: int
    tournament_id: int
    display_name: str
    player1: str
    player2: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "tournament_id": self.tournament_id,
            "display_name": self.display_name,
            "player1": self.player1,
            "player2": self.player2,
        }


@dataclass(frozen=True)
class Round:
    round_id: int
    tournament_id: int
    round_number: int
    date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "tournament_id": self.tournament_id,
            "round_number": self.round_number,
            "date": self.date,
        }


@dataclass(frozen=True)
class ScoreRecord:
    """One hole result, unique per (team_id, round_id, hole_number)."""

    team_id: int
    round_id: int
    hole_number: int
    strokes: int
    par: int
    score_id: Optional[int] = None

    @property
    def to_par(self) -> int:
        return self.strokes - self.par

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score_id": self.score_id,
            "team_id": self.team_id,
            "round_id": self.round_id,
            "hole_number": self.hole_number,
            "strokes": self.strokes,
            "par": self.par,
            "to_par": self.to_par,
        }


@dataclass(frozen=True)
class ScoreSubmission:
    """
    Validated score submission.

    Built only through from_payload, so everything downstream can trust
    the field ranges.
    """

    team_id: int
    round_id: int
    hole_number: int
    strokes: int
    par: int

    FIELDS = ("team_id", "round_id", "hole_number", "strokes", "par")

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        holes_per_round: int = 18,
        min_par: int = 2,
        max_par: int = 7,
        max_strokes: int = 15,
    ) -> "ScoreSubmission":
        """
        Validate a raw mapping (decoded JSON body) into a submission.

        @param payload: Mapping with team_id, round_id, hole_number, strokes, par
        @param holes_per_round: Highest valid hole number
        @param min_par: Lowest realistic par
        @param max_par: Highest realistic par
        @param max_strokes: Highest accepted stroke count for one hole
        @return: ScoreSubmission instance
        @raise ScoreValidationError: With the specific reason on bad input
        """
        if not isinstance(payload, Mapping):
            raise ScoreValidationError("Score submission must be a JSON object")

        values = {}
        for name in cls.FIELDS:
            if name not in payload:
                raise ScoreValidationError(f"Missing field: {name}")
            value = payload[name]
            # bool is an int subclass, reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int):
                raise ScoreValidationError(f"{name} must be an integer")
            values[name] = value

        if values["team_id"] < 1:
            raise ScoreValidationError("team_id must be greater than 0")
        if values["round_id"] < 1:
            raise ScoreValidationError("round_id must be greater than 0")
        if not 1 <= values["hole_number"] <= holes_per_round:
            raise ScoreValidationError(
                f"Hole number must be between 1 and {holes_per_round}"
            )
        if not 1 <= values["strokes"] <= max_strokes:
            raise ScoreValidationError(
                f"Strokes must be between 1 and {max_strokes}"
            )
        if not min_par <= values["par"] <= max_par:
            raise ScoreValidationError(
                f"Par must be between {min_par} and {max_par}"
            )

        return cls(**values)


@dataclass(frozen=True)
class HoleScore:
    """One hole of a round-scope breakdown."""

    hole_number: int
    strokes: int
    par: int

    @property
    def to_par(self) -> int:
        return self.strokes - self.par

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hole_number": self.hole_number,
            "strokes": self.strokes,
            "par": self.par,
            "to_par": self.to_par,
        }


@dataclass(frozen=True)
class RoundAggregate:
    """Totals for one team over one round (or any scope of records)."""

    round_number: int = 0
    strokes_total: int = 0
    par_total: int = 0
    to_par: int = 0
    holes_completed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_number": self.round_number,
            "strokes_total": self.strokes_total,
            "par_total": self.par_total,
            "to_par": self.to_par,
            "holes_completed": self.holes_completed,
        }


@dataclass(frozen=True)
class TeamAggregate:
    """A team's totals over a scope, with the per-round breakdown kept."""

    team_id: int
    display_name: str
    strokes_total: int
    par_total: int
    to_par: int
    holes_completed: int
    rounds: Dict[int, RoundAggregate] = field(default_factory=dict)
    player1: str = ""
    player2: str = ""
    # Only set for single-round scopes
    hole_scores: Optional[List[HoleScore]] = None


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single ranked leaderboard row."""

    team_id: int
    display_name: str
    total_strokes: int
    total_to_par: int
    position: int
    holes_completed: int
    per_round: Dict[int, RoundAggregate] = field(default_factory=dict)
    is_tied: bool = False
    player1: str = ""
    player2: str = ""
    hole_scores: Optional[List[HoleScore]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "team_id": self.team_id,
            "display_name": self.display_name,
            "player1": self.player1,
            "player2": self.player2,
            "total_strokes": self.total_strokes,
            "total_to_par": self.total_to_par,
            "position": self.position,
            "is_tied": self.is_tied,
            "holes_completed": self.holes_completed,
            # JSON object keys are strings
            "per_round": {
                str(number): aggregate.to_dict()
                for number, aggregate in sorted(self.per_round.items())
            },
        }
        if self.hole_scores is not None:
            data["hole_scores"] = [hole.to_dict() for hole in self.hole_scores]
        return data


@dataclass(frozen=True)
class LeaderboardResult:
    tournament_id: int
    tournament_name: str
    entries: List[LeaderboardEntry]
    round_count: int
    last_updated: datetime

    def position_of(self, team_id: int) -> int:
        """
        Position of a team, or 0 when it is not on the board.

        @param team_id: Team to look up
        @return: 1-based position, 0 for unranked
        """
        for entry in self.entries:
            if entry.team_id == team_id:
                return entry.position
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "tournament_name": self.tournament_name,
            "round_count": self.round_count,
            "last_updated": self.last_updated.isoformat(),
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class LeaderboardSummary:
    tournament_id: int
    tournament_name: str
    last_updated: datetime
    top_teams: List[LeaderboardEntry]
    total_teams: int
    completed_rounds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "tournament_name": self.tournament_name,
            "last_updated": self.last_updated.isoformat(),
            "top_teams": [entry.to_dict() for entry in self.top_teams],
            "total_teams": self.total_teams,
            "completed_rounds": self.completed_rounds,
        }


@dataclass(frozen=True)
class TeamPositionView:
    focus_team: LeaderboardEntry
    surrounding_teams: List[LeaderboardEntry]
    total_teams: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "focus_team": self.focus_team.to_dict(),
            "surrounding_teams": [entry.to_dict() for entry in self.surrounding_teams],
            "total_teams": self.total_teams,
        }
