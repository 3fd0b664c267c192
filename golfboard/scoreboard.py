"""
Main GolfBoardSystem class that wires all components together.
"""

import asyncio
import logging
from typing import Optional

from aiohttp import web, web_runner
import aiohttp_cors

from .broadcaster import Broadcaster
from .config import GolfBoardConfig
from .database import DatabaseManager
from .leaderboard import LeaderboardService
from .live import LiveScoreService
from .web_handlers import WebHandlers, error_middleware

logger = logging.getLogger(__name__)


class GolfBoardSystem:
    """Async golf tournament leaderboard with an HTTP API and live channel."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        db_path: str = "golfboard.db",
        config: Optional[GolfBoardConfig] = None,
        config_path: str = "golfboard_config.json",
    ) -> None:
        self.host = host
        self.port = port
        self.db_path = db_path

        # Load configuration
        self.config = config if config is not None else GolfBoardConfig(config_path)

        # Initialize components; the broadcaster lives as long as the app
        self.db = DatabaseManager(db_path)
        self.broadcaster = Broadcaster(
            queue_size=self.config.get("live", "queue_size"),
            send_timeout=self.config.get("live", "send_timeout"),
        )
        self.leaderboard = LeaderboardService(
            self.db,
            summary_size=self.config.get("leaderboard", "summary_size"),
            window=self.config.get("leaderboard", "position_window"),
        )
        self.live = LiveScoreService(self.db, self.leaderboard, self.broadcaster, self.config)
        self.web_handlers = WebHandlers(
            self.db, self.leaderboard, self.live, self.broadcaster, self.config
        )

    async def init_db(self) -> None:
        """
        Initialize the database.

        Creates database tables and performs any necessary setup.
        """
        await self.db.init_db()

    async def _on_startup(self, _: web.Application) -> None:
        await self.init_db()

    async def _on_shutdown(self, _: web.Application) -> None:
        await self.broadcaster.close()

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with all routes.

        @return: Configured web.Application
        """
        app = web.Application(middlewares=[error_middleware])
        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)

        # Setup CORS
        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )

        h = self.web_handlers
        tournament = r"/api/tournaments/{tournament_id:\d+}"
        board = r"/api/leaderboard/{tournament_id:\d+}"

        app.router.add_get("/", h.web_index)

        # Tournament plumbing
        app.router.add_get("/api/tournaments", h.web_api_tournaments)
        app.router.add_post("/api/tournaments", h.web_api_create_tournament)
        app.router.add_post(tournament + "/teams", h.web_api_create_team)
        app.router.add_post(tournament + "/rounds", h.web_api_create_round)

        # Leaderboards
        app.router.add_get(board, h.web_api_leaderboard)
        app.router.add_get(board + r"/round/{round_number:\d+}", h.web_api_round_leaderboard)
        app.router.add_get(board + "/summary", h.web_api_summary)
        app.router.add_get(board + r"/team/{team_id:\d+}/position", h.web_api_team_position)
        app.router.add_post(board + "/refresh", h.web_api_refresh)

        # Scores
        app.router.add_get("/api/scores", h.web_api_scores)
        app.router.add_post("/api/scores", h.web_api_submit_score)
        app.router.add_delete(
            r"/api/scores/{team_id:\d+}/{round_id:\d+}/{hole_number:\d+}",
            h.web_api_delete_score,
        )

        # Admin
        app.router.add_delete(
            r"/api/admin/reset-tournament/{tournament_id:\d+}",
            h.web_api_reset_tournament,
        )

        # Add CORS to all HTTP routes; the websocket route is added afterwards
        for route in list(app.router.routes()):
            cors.add(route)

        app.router.add_get("/ws", h.web_ws)

        return app

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind the server to (default uses configured host)
        @param port: Port number to use (default uses configured port)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.host
        if port is None:
            port = self.port

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        logger.info("Web server running on http://%s:%s", host, port)
        return app_runner

    async def run_server(self) -> None:
        """Run the web server until cancelled or interrupted."""
        runner = await self.start_web_server()

        logger.info(
            "%s leaderboard running: API http://%s:%s/api, live ws://%s:%s/ws",
            self.config.get("tournament_title"),
            self.host, self.port, self.host, self.port,
        )

        try:
            await asyncio.Event().wait()
        finally:
            logger.info("Shutting down web server...")
            await runner.cleanup()
