"""
Web route handlers for the golf leaderboard API and live channel.
"""

import json
import logging
import uuid
from typing import Any, Optional

from aiohttp import WSMsgType, web

from . import events
from .broadcaster import Broadcaster, Subscriber
from .database import DatabaseManager
from .errors import GolfBoardError, ScoreValidationError
from .leaderboard import LeaderboardService
from .live import LiveScoreService

logger = logging.getLogger(__name__)


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Any,
) -> web.StreamResponse:
    """Render GolfBoardError subclasses as JSON error bodies."""
    try:
        return await handler(request)
    except GolfBoardError as e:
        if e.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, e.message)
        return web.json_response({"error": e.message}, status=e.status)


def _query_int(
    request: web.Request,
    name: str,
    default: Optional[int] = None,
) -> Optional[int]:
    value = request.query.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": f"{name} must be an integer"}),
            content_type="application/json",
        )


async def _json_body(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise ScoreValidationError("Request body must be valid JSON") from e


def _require_text(body: Any, name: str) -> str:
    value = body.get(name) if isinstance(body, dict) else None
    if not isinstance(value, str) or not value.strip():
        raise ScoreValidationError(f"{name} is required")
    return value.strip()


class WebHandlers:
    """Handles web routes and responses."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        leaderboard: LeaderboardService,
        live: LiveScoreService,
        broadcaster: Broadcaster,
        config: Any,
    ) -> None:
        self.db = db_manager
        self.leaderboard = leaderboard
        self.live = live
        self.broadcaster = broadcaster
        self.config = config

    async def web_index(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Service description.

        @param _: Unused request parameter
        @return: JSON response with title and live status
        """
        return web.json_response(
            {
                "title": self.config.get("tournament_title"),
                "live_updates": self.config.is_live_enabled(),
            }
        )

    # Tournament, team and round plumbing

    async def web_api_tournaments(
        self,
        _: web.Request,
    ) -> web.Response:
        tournaments = await self.db.list_tournaments()
        return web.json_response({"tournaments": [t.to_dict() for t in tournaments]})

    async def web_api_create_tournament(
        self,
        request: web.Request,
    ) -> web.Response:
        body = await _json_body(request)
        tournament = await self.db.create_tournament(
            _require_text(body, "name"),
            location=body.get("location"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
        )
        return web.json_response(tournament.to_dict(), status=201)

    async def web_api_create_team(
        self,
        request: web.Request,
    ) -> web.Response:
        tournament_id = int(request.match_info["tournament_id"])
        body = await _json_body(request)
        team = await self.db.create_team(
            tournament_id,
            _require_text(body, "display_name"),
            _require_text(body, "player1"),
            _require_text(body, "player2"),
        )
        return web.json_response(team.to_dict(), status=201)

    async def web_api_create_round(
        self,
        request: web.Request,
    ) -> web.Response:
        tournament_id = int(request.match_info["tournament_id"])
        body = await _json_body(request)
        round_number = body.get("round_number") if isinstance(body, dict) else None
        if isinstance(round_number, bool) or not isinstance(round_number, int) or round_number < 1:
            raise ScoreValidationError("round_number must be a positive integer")

        round_ = await self.db.create_round(tournament_id, round_number, body.get("date"))
        return web.json_response(round_.to_dict(), status=201)

    # Leaderboards

    async def web_api_leaderboard(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Full tournament leaderboard.

        @param request: HTTP request with tournament_id in the path
        @return: JSON leaderboard, 404 if the tournament does not exist
        """
        tournament_id = int(request.match_info["tournament_id"])
        result = await self.leaderboard.compute_tournament_leaderboard(tournament_id)
        return web.json_response(result.to_dict())

    async def web_api_round_leaderboard(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Single round leaderboard.

        @param request: HTTP request with tournament_id and round_number in the path
        @return: JSON list of ranked entries; empty when the round has no scores
        """
        tournament_id = int(request.match_info["tournament_id"])
        round_number = int(request.match_info["round_number"])
        entries = await self.leaderboard.compute_round_leaderboard(tournament_id, round_number)

        return web.json_response(
            {
                "tournament_id": tournament_id,
                "round_number": round_number,
                "entries": [entry.to_dict() for entry in entries],
            }
        )

    async def web_api_summary(
        self,
        request: web.Request,
    ) -> web.Response:
        tournament_id = int(request.match_info["tournament_id"])
        summary = await self.leaderboard.get_summary(tournament_id, _query_int(request, "top"))
        return web.json_response(summary.to_dict())

    async def web_api_team_position(
        self,
        request: web.Request,
    ) -> web.Response:
        tournament_id = int(request.match_info["tournament_id"])
        team_id = int(request.match_info["team_id"])
        view = await self.leaderboard.get_team_position(
            tournament_id, team_id, _query_int(request, "window")
        )
        return web.json_response(view.to_dict())

    async def web_api_refresh(
        self,
        request: web.Request,
    ) -> web.Response:
        tournament_id = int(request.match_info["tournament_id"])
        result = await self.live.refresh(tournament_id)
        logger.info("Leaderboard manually refreshed for tournament %s", tournament_id)

        return web.json_response(
            {
                "message": "Leaderboard refreshed successfully",
                "timestamp": result.last_updated.isoformat(),
                "viewers": self.broadcaster.viewer_count(tournament_id),
            }
        )

    # Scores

    async def web_api_scores(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Score listing with optional team_id, round_id and tournament_id filters.

        @param request: HTTP request with optional query filters
        @return: JSON list of score records
        """
        scores = await self.db.list_scores(
            team_id=_query_int(request, "team_id"),
            round_id=_query_int(request, "round_id"),
            tournament_id=_query_int(request, "tournament_id"),
        )
        return web.json_response({"scores": [score.to_dict() for score in scores]})

    async def web_api_submit_score(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Create or update a score and notify live viewers.

        @param request: HTTP request with a JSON score submission body
        @return: 201 JSON response with the stored score and position move
        """
        submission = self.live.parse_submission(await _json_body(request))
        outcome = await self.live.submit_score(submission)
        return web.json_response(outcome.to_dict(), status=201)

    async def web_api_delete_score(
        self,
        request: web.Request,
    ) -> web.Response:
        team_id = int(request.match_info["team_id"])
        round_id = int(request.match_info["round_id"])
        hole_number = int(request.match_info["hole_number"])

        deleted = await self.live.delete_score(team_id, round_id, hole_number)
        if not deleted:
            return web.json_response({"error": "Score not found"}, status=404)
        return web.json_response({"deleted": True})

    # Admin

    async def web_api_reset_tournament(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Remove a tournament's teams, rounds and scores.

        With ?deleteTournament=true (or 1/yes) the tournament goes too.

        @param request: HTTP request with tournament_id in the path
        @return: 200 with deleted counts, 204 when the tournament was deleted
        """
        tournament_id = int(request.match_info["tournament_id"])
        flag = request.query.get("deleteTournament", "").lower()
        delete_tournament = flag in ("true", "1", "yes")

        deleted = await self.live.reset_tournament(tournament_id, delete_tournament)
        if delete_tournament:
            return web.Response(status=204)
        return web.json_response(
            {"message": "Tournament data reset successfully", "deleted": deleted}
        )

    # Live channel

    async def web_ws(
        self,
        request: web.Request,
    ) -> web.WebSocketResponse:
        """
        WebSocket live channel.

        Clients send {"action": "join", "tournament_id": n, "user_name": s},
        {"action": "leave"} or {"action": "refresh"}; the server pushes events.

        @param request: HTTP upgrade request
        @return: The WebSocket response once the connection closes
        """
        ws = web.WebSocketResponse(heartbeat=self.config.get("live", "heartbeat"))
        await ws.prepare(request)

        subscriber = self.broadcaster.create_subscriber(
            uuid.uuid4().hex, ws.send_json, on_evict=ws.close
        )
        logger.debug("Live connection opened: %s", subscriber.connection_id)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    try:
                        await self._handle_ws_message(subscriber, msg.data)
                    except GolfBoardError as e:
                        logger.error(
                            "Live request from %s failed: %s",
                            subscriber.connection_id, e.message,
                        )
                        await self.broadcaster.send_to(subscriber, events.error(e.message))
                elif msg.type == WSMsgType.ERROR:
                    logger.warning(
                        "Live connection %s closed with error: %s",
                        subscriber.connection_id, ws.exception(),
                    )
        finally:
            await self.live.disconnect(subscriber)
            logger.debug("Live connection closed: %s", subscriber.connection_id)

        return ws

    async def _handle_ws_message(
        self,
        subscriber: Subscriber,
        data: str,
    ) -> None:
        try:
            message = json.loads(data)
        except ValueError:
            await self.broadcaster.send_to(subscriber, events.error("Invalid JSON message"))
            return

        if not isinstance(message, dict):
            await self.broadcaster.send_to(subscriber, events.error("Message must be an object"))
            return

        action = message.get("action")

        if action == "join":
            tournament_id = message.get("tournament_id")
            if isinstance(tournament_id, bool) or not isinstance(tournament_id, int):
                await self.broadcaster.send_to(
                    subscriber, events.error("tournament_id must be an integer")
                )
                return
            user_name = message.get("user_name")
            await self.live.join(
                subscriber,
                tournament_id,
                user_name if isinstance(user_name, str) else None,
            )
        elif action == "leave":
            await self.live.leave(subscriber)
        elif action == "refresh":
            if subscriber.tournament_id is None:
                await self.broadcaster.send_to(
                    subscriber, events.error("Join a tournament before refreshing")
                )
                return
            await self.live.refresh(subscriber.tournament_id)
        else:
            await self.broadcaster.send_to(
                subscriber, events.error(f"Unknown action: {action}")
            )
