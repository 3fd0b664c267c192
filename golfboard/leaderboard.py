"""
Leaderboard service: store reads -> aggregation -> ranking.

Every call recomputes from a fresh read of the store. Nothing is cached
between calls, so a result always reflects the latest committed scores.
"""

import logging
from typing import List, Optional

from .aggregation import aggregate_round, aggregate_tournament
from .database import DatabaseManager
from .errors import NotFoundError
from .models import (
    LeaderboardEntry,
    LeaderboardResult,
    LeaderboardSummary,
    TeamPositionView,
    utc_now,
)
from .ranking import position_window, rank_aggregates

logger = logging.getLogger(__name__)


class LeaderboardService:
    """Read-only leaderboard computations; safe to call concurrently."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        summary_size: int = 5,
        window: int = 2,
    ) -> None:
        self.db = db_manager
        self.summary_size = summary_size
        self.window = window

    async def compute_tournament_leaderboard(
        self,
        tournament_id: int,
    ) -> LeaderboardResult:
        """
        Full tournament leaderboard across all rounds.

        Teams without any score are included with zero totals.

        @param tournament_id: Tournament identifier
        @return: LeaderboardResult with ranked entries
        @raise NotFoundError: If the tournament does not exist
        """
        tournament = await self.db.get_tournament(tournament_id)
        teams = await self.db.get_teams(tournament_id)
        rounds = await self.db.get_rounds(tournament_id)
        records = await self.db.get_scores_by_tournament(tournament_id)

        entries = rank_aggregates(aggregate_tournament(teams, rounds, records))

        return LeaderboardResult(
            tournament_id=tournament_id,
            tournament_name=tournament.name,
            entries=entries,
            round_count=len(rounds),
            last_updated=utc_now(),
        )

    async def compute_round_leaderboard(
        self,
        tournament_id: int,
        round_number: int,
    ) -> List[LeaderboardEntry]:
        """
        Leaderboard for a single round.

        A missing round, or a round without scores, is a normal state during
        a live event and yields an empty list.

        @param tournament_id: Tournament identifier
        @param round_number: Round number within the tournament
        @return: Ranked entries for teams that have scores in the round
        """
        round_ = await self.db.get_round_by_number(tournament_id, round_number)
        if round_ is None:
            return []

        records = await self.db.get_scores_by_round(round_.round_id)
        if not records:
            return []

        teams = await self.db.get_teams(tournament_id)
        return rank_aggregates(aggregate_round(teams, round_, records))

    async def get_summary(
        self,
        tournament_id: int,
        top: Optional[int] = None,
    ) -> LeaderboardSummary:
        """
        Top-N entries plus counts, for compact displays.

        @param tournament_id: Tournament identifier
        @param top: Number of entries to include (default from config)
        @return: LeaderboardSummary
        """
        result = await self.compute_tournament_leaderboard(tournament_id)
        size = self.summary_size if top is None else max(0, top)

        return LeaderboardSummary(
            tournament_id=tournament_id,
            tournament_name=result.tournament_name,
            last_updated=result.last_updated,
            top_teams=result.entries[:size],
            total_teams=len(result.entries),
            completed_rounds=result.round_count,
        )

    async def get_team_position(
        self,
        tournament_id: int,
        team_id: int,
        window: Optional[int] = None,
    ) -> TeamPositionView:
        """
        A team's entry and the entries around it.

        @param tournament_id: Tournament identifier
        @param team_id: Team to focus on
        @param window: Entries above and below to include (default from config)
        @return: TeamPositionView
        @raise NotFoundError: If the tournament or the team on its board is absent
        """
        result = await self.compute_tournament_leaderboard(tournament_id)
        window = self.window if window is None else max(0, window)

        surrounding = position_window(result.entries, team_id, window)
        focus = next((e for e in surrounding if e.team_id == team_id), None)
        if focus is None:
            raise NotFoundError("Team", f"{team_id} in tournament {tournament_id}")

        return TeamPositionView(
            focus_team=focus,
            surrounding_teams=surrounding,
            total_teams=len(result.entries),
        )
