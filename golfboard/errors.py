"""
Exception types for the golf leaderboard service.
"""

from typing import Optional


class GolfBoardError(Exception):
    """Base error; carries the HTTP status the web layer answers with."""

    status = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class NotFoundError(GolfBoardError):
    """Referenced tournament, team or round does not exist."""

    status = 404

    def __init__(
        self,
        kind: str,
        identifier: object,
    ) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class ScoreValidationError(GolfBoardError):
    """Malformed score submission, rejected before any write."""

    status = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConflictAlreadyResolved(GolfBoardError):
    """
    A concurrent insert won the unique (team, round, hole) key.

    Raised inside the store only; the upsert recovers by updating the row
    that now exists.
    """

    status = 409

    def __init__(
        self,
        team_id: int,
        round_id: int,
        hole_number: int,
    ) -> None:
        super().__init__(
            f"Score for team {team_id}, round {round_id}, hole {hole_number} "
            "was inserted concurrently"
        )
        self.key = (team_id, round_id, hole_number)


class TransientStoreFailure(GolfBoardError):
    """The underlying store is unavailable or failed mid-operation."""

    status = 503

    def __init__(
        self,
        operation: str,
        details: str = "",
    ) -> None:
        super().__init__(f"Store failure during {operation}: {details}")
        self.operation = operation
