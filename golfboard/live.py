"""
Score submission with live notification, plus viewer join/leave handling.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from . import events
from .broadcaster import Broadcaster, Subscriber
from .database import DatabaseManager
from .errors import GolfBoardError, NotFoundError, ScoreValidationError
from .leaderboard import LeaderboardService
from .models import LeaderboardResult, ScoreRecord, ScoreSubmission, utc_now

logger = logging.getLogger(__name__)


class SubmissionOutcome:
    """What a score submission did: the stored record and the position move."""

    def __init__(
        self,
        record: ScoreRecord,
        tournament_id: int,
        team_name: str,
        old_position: int,
        new_position: int,
        leaderboard: LeaderboardResult,
    ) -> None:
        self.record = record
        self.tournament_id = tournament_id
        self.team_name = team_name
        self.old_position = old_position
        self.new_position = new_position
        self.leaderboard = leaderboard

    @property
    def position_changed(self) -> bool:
        return self.old_position > 0 and self.new_position != self.old_position

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data.update(
            {
                "tournament_id": self.tournament_id,
                "team_name": self.team_name,
                "old_position": self.old_position,
                "new_position": self.new_position,
            }
        )
        return data


class LiveScoreService:
    """
    Wraps score writes with leaderboard diffing and live notification.

    The write is the source of truth; notification is best effort and a
    failed delivery never undoes it.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        leaderboard: LeaderboardService,
        broadcaster: Broadcaster,
        config: Any,
    ) -> None:
        self.db = db_manager
        self.leaderboard = leaderboard
        self.broadcaster = broadcaster
        self.config = config
        # Held while a board is computed and queued, so viewers of one
        # tournament never receive an older board after a newer one
        self._board_locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        broadcaster.set_departure_handler(self._announce_departure)

    def parse_submission(self, payload: Mapping[str, Any]) -> ScoreSubmission:
        return ScoreSubmission.from_payload(payload, **self.config.scoring_limits())

    async def submit_score(
        self,
        submission: ScoreSubmission,
    ) -> SubmissionOutcome:
        """
        Store a score and notify the tournament's viewers.

        Steps: capture the team's position, upsert the score, recompute the
        board, then send ScoreUpdate and LeaderboardUpdated, and PositionChange
        when a previously ranked team moved. Store errors propagate and skip
        all notification. An error while recomputing after the write also
        propagates; the score is stored at that point, so callers should
        re-read rather than re-submit.

        @param submission: Validated score submission
        @return: SubmissionOutcome
        @raise NotFoundError: Team or round does not exist
        @raise ScoreValidationError: Team and round belong to different tournaments
        """
        team = await self.db.get_team(submission.team_id)
        round_ = await self.db.get_round(submission.round_id)
        if team.tournament_id != round_.tournament_id:
            raise ScoreValidationError("Team and round must belong to the same tournament")

        tournament_id = round_.tournament_id

        before = await self.leaderboard.compute_tournament_leaderboard(tournament_id)
        old_position = before.position_of(team.team_id)

        record = await self.db.upsert_score(
            submission.team_id,
            submission.round_id,
            submission.hole_number,
            submission.strokes,
            submission.par,
        )
        logger.info(
            "Score stored: %s round %s hole %s -> %s (par %s)",
            team.display_name, round_.round_number, record.hole_number,
            record.strokes, record.par,
        )

        async with self._board_locks[tournament_id]:
            try:
                after = await self.leaderboard.compute_tournament_leaderboard(tournament_id)
            except GolfBoardError:
                logger.error(
                    "Score for team %s was stored but the leaderboard of tournament %s "
                    "could not be recomputed; viewers were not notified",
                    team.team_id, tournament_id,
                )
                raise
            new_position = after.position_of(team.team_id)

            outcome = SubmissionOutcome(
                record, tournament_id, team.display_name, old_position, new_position, after
            )

            if self.config.is_live_enabled():
                await self._announce(outcome)

        return outcome

    async def _announce(self, outcome: SubmissionOutcome) -> None:
        timestamp = utc_now()
        tournament_id = outcome.tournament_id

        await self.broadcaster.broadcast(
            tournament_id,
            events.score_update(
                tournament_id,
                outcome.team_name,
                outcome.record.hole_number,
                outcome.record.strokes,
                timestamp,
            ),
        )
        await self.broadcaster.broadcast(
            tournament_id, events.leaderboard_updated(outcome.leaderboard)
        )

        if outcome.position_changed:
            logger.info(
                "%s moved from #%s to #%s in tournament %s",
                outcome.team_name, outcome.old_position, outcome.new_position,
                tournament_id,
            )
            await self.broadcaster.broadcast(
                tournament_id,
                events.position_change(
                    tournament_id,
                    outcome.team_name,
                    outcome.old_position,
                    outcome.new_position,
                    timestamp,
                ),
            )

    async def delete_score(
        self,
        team_id: int,
        round_id: int,
        hole_number: int,
    ) -> bool:
        """
        Delete a score and push the corrected leaderboard.

        @return: True if a score was deleted
        @raise NotFoundError: If the round does not exist
        """
        round_ = await self.db.get_round(round_id)
        deleted = await self.db.delete_score(team_id, round_id, hole_number)
        if deleted:
            logger.info("Deleted score for team %s round %s hole %s", team_id, round_id, hole_number)
            await self.refresh(round_.tournament_id)
        return deleted

    async def refresh(self, tournament_id: int) -> LeaderboardResult:
        """
        Recompute a tournament leaderboard and push it to all its viewers.

        @param tournament_id: Tournament identifier
        @return: The freshly computed leaderboard
        @raise NotFoundError: If the tournament does not exist
        """
        async with self._board_locks[tournament_id]:
            result = await self.leaderboard.compute_tournament_leaderboard(tournament_id)
            if self.config.is_live_enabled():
                await self.broadcaster.broadcast(tournament_id, events.leaderboard_updated(result))
        return result

    async def reset_tournament(
        self,
        tournament_id: int,
        delete_tournament: bool = False,
    ) -> Dict[str, int]:
        """
        Clear a tournament's teams, rounds and scores, optionally deleting it.

        Viewers get the emptied board, or an Error event when the tournament
        itself was deleted.

        @param tournament_id: Tournament identifier
        @param delete_tournament: Also delete the tournament
        @return: Deleted row counts per table
        @raise NotFoundError: If the tournament does not exist
        """
        deleted = await self.db.reset_tournament(tournament_id, delete_tournament)

        if not delete_tournament:
            await self.refresh(tournament_id)
        elif self.config.is_live_enabled():
            await self.broadcaster.broadcast(
                tournament_id, events.error(f"Tournament {tournament_id} was deleted")
            )
        return deleted

    async def join(
        self,
        subscriber: Subscriber,
        tournament_id: int,
        user_name: Optional[str] = None,
    ) -> bool:
        """
        Subscribe a connection to a tournament channel.

        The joiner is added to the channel before its snapshot is computed,
        and both happen under the tournament's board lock, so any later
        board reaches it after the snapshot. Everyone else in the channel
        gets ViewerJoined; re-joining the same tournament only resends the
        board. An unknown tournament only produces an Error event for the
        joiner.

        @param subscriber: Connection joining
        @param tournament_id: Tournament to watch
        @param user_name: Display name of the viewer
        @return: True if joined
        """
        if user_name:
            subscriber.user_name = user_name

        try:
            await self.db.get_tournament(tournament_id)
        except NotFoundError as e:
            await self._reject(subscriber, tournament_id, e)
            return False

        rejoin = subscriber.tournament_id == tournament_id
        if subscriber.tournament_id is not None and not rejoin:
            await self.leave(subscriber)

        async with self._board_locks[tournament_id]:
            count = await self.broadcaster.add(tournament_id, subscriber)
            try:
                result = await self.leaderboard.compute_tournament_leaderboard(tournament_id)
            except NotFoundError as e:
                # Deleted while joining
                await self.broadcaster.remove(subscriber.connection_id)
                subscriber.tournament_id = None
                await self._reject(subscriber, tournament_id, e)
                return False
            await self.broadcaster.send_to(subscriber, events.leaderboard_updated(result))

        if not rejoin:
            await self.broadcaster.broadcast(
                tournament_id,
                events.viewer_joined(subscriber.user_name, count),
                exclude=subscriber.connection_id,
            )
        return True

    async def _reject(
        self,
        subscriber: Subscriber,
        tournament_id: int,
        error: NotFoundError,
    ) -> None:
        logger.info(
            "Viewer %s asked for unknown tournament %s",
            subscriber.connection_id, tournament_id,
        )
        await self.broadcaster.send_to(subscriber, events.error(error.message))

    async def leave(self, subscriber: Subscriber) -> None:
        """Take a connection out of its channel and tell the others."""
        removed = await self.broadcaster.remove(subscriber.connection_id)
        if removed is None:
            return
        tournament_id = removed.tournament_id
        removed.tournament_id = None
        await self._announce_departure(subscriber, tournament_id)

    async def disconnect(self, subscriber: Subscriber) -> None:
        """Connection closed: leave its channel and stop its delivery task."""
        tournament_id = await self.broadcaster.discard(subscriber)
        if tournament_id is not None:
            await self._announce_departure(subscriber, tournament_id)

    async def _announce_departure(
        self,
        subscriber: Subscriber,
        tournament_id: int,
    ) -> None:
        count = self.broadcaster.viewer_count(tournament_id)
        logger.info(
            "Viewer %s left tournament %s, %s watching",
            subscriber.user_name, tournament_id, count,
        )
        await self.broadcaster.broadcast(
            tournament_id, events.viewer_left(subscriber.user_name, count)
        )
