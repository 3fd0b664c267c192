#!/usr/bin/env python3
"""
Async golf tournament leaderboard server.
Serves the leaderboard HTTP API and pushes live updates to WebSocket viewers.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from golfboard.config import GolfBoardConfig
from golfboard.logger import setup_logging
from golfboard.scoreboard import GolfBoardSystem


async def main():
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="Golf tournament leaderboard server with HTTP API and live updates",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("WEB_PORT", "8080")),
        help="HTTP/WebSocket server port (env: WEB_PORT)"
    )
    parser.add_argument(
        "--db",
        default=os.getenv("DB_PATH", "golfboard.db"),
        help="SQLite database file path (env: DB_PATH)"
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "golfboard_config.json"),
        help="Configuration file path (env: CONFIG_PATH)"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (env: HOST)"
    )

    args = parser.parse_args()

    config_path = Path(args.config)

    if config_path.exists() and not config_path.is_file():
        print(f"Error: {args.config} exists but is not a file")
        return

    config = GolfBoardConfig(args.config)
    logger = setup_logging(config)

    system = GolfBoardSystem(
        host=args.host,
        port=args.port,
        db_path=args.db,
        config=config,
    )

    logger.info("Starting %s leaderboard", config.get("tournament_title"))
    await system.run_server()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.getLogger("golfboard").info("Server interrupted")
