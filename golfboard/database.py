"""
Score store: SQLite persistence for tournaments, teams, rounds and scores.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import aiosqlite

from .errors import (
    ConflictAlreadyResolved,
    GolfBoardError,
    NotFoundError,
    ScoreValidationError,
    TransientStoreFailure,
)
from .models import Round, ScoreRecord, Team, Tournament

logger = logging.getLogger(__name__)

TOURNAMENT_COLUMNS = "tournament_id, name, location, start_date, end_date, status"
TEAM_COLUMNS = "team_id, tournament_id, display_name, player1, player2"
ROUND_COLUMNS = "round_id, tournament_id, round_number, date"
SCORE_COLUMNS = "s.score_id, s.team_id, s.round_id, s.hole_number, s.strokes, s.par"


class DatabaseManager:
    """Async SQLite store; every operation opens its own short-lived connection."""

    def __init__(
        self,
        db_path: str,
        timeout: float = 5.0,
    ) -> None:
        self.db_path = db_path
        self.timeout = timeout

    @asynccontextmanager
    async def _connect(self, operation: str) -> AsyncIterator[Any]:
        """
        Open a connection, mapping driver failures to TransientStoreFailure.

        Integrity errors are left to the caller, which knows what they mean.

        @param operation: Name of the operation, used in errors and logs
        """
        try:
            async with aiosqlite.connect(self.db_path, timeout=self.timeout) as db:
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.IntegrityError:
            raise
        except aiosqlite.Error as e:
            logger.error("Store failure during %s: %s", operation, e)
            raise TransientStoreFailure(operation, str(e)) from e

    async def init_db(self) -> None:
        """
        Initialize the SQLite database with schema and indexes.

        Creates tables, indexes, and performs schema migrations if needed.
        """
        async with self._connect("init_db") as db:
            # WAL lets readers run while a score write is in progress
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
            await db.execute("PRAGMA temp_store=MEMORY")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS tournaments (
                    tournament_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    location TEXT,
                    start_date TEXT,
                    end_date TEXT,
                    status TEXT NOT NULL DEFAULT 'Upcoming'
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS teams (
                    team_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tournament_id INTEGER NOT NULL
                        REFERENCES tournaments(tournament_id) ON DELETE CASCADE,
                    display_name TEXT NOT NULL,
                    player1 TEXT NOT NULL,
                    player2 TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS rounds (
                    round_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tournament_id INTEGER NOT NULL
                        REFERENCES tournaments(tournament_id) ON DELETE CASCADE,
                    round_number INTEGER NOT NULL,
                    date TEXT
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    score_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    team_id INTEGER NOT NULL REFERENCES teams(team_id),
                    round_id INTEGER NOT NULL REFERENCES rounds(round_id),
                    hole_number INTEGER NOT NULL,
                    strokes INTEGER NOT NULL,
                    par INTEGER NOT NULL,
                    updated_at DATETIME
                )
            """)

            await db.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_round_tournament_number
                ON rounds(tournament_id, round_number)
            """)
            await db.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_score_team_round_hole
                ON scores(team_id, round_id, hole_number)
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_score_round
                ON scores(round_id)
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_team_tournament
                ON teams(tournament_id)
            """)

            await db.commit()

            await self._migrate_schema(db)

    async def _migrate_schema(
        self,
        db: Any,
    ) -> None:
        """
        Handle database schema migrations.

        @param db: Active database connection
        """
        cursor = await db.execute("PRAGMA table_info(scores)")
        columns = await cursor.fetchall()
        column_names = [column[1] for column in columns]

        if "updated_at" not in column_names:
            # Databases created before scores tracked their last write
            logger.info("Migrating database schema to add scores.updated_at column")

            # SQLite refuses non-constant defaults on ADD COLUMN
            await db.execute("ALTER TABLE scores ADD COLUMN updated_at DATETIME")
            await db.execute("UPDATE scores SET updated_at = CURRENT_TIMESTAMP")
            await db.commit()

    # Tournaments, teams and rounds

    async def create_tournament(
        self,
        name: str,
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Tournament:
        async with self._connect("create_tournament") as db:
            cursor = await db.execute(
                "INSERT INTO tournaments (name, location, start_date, end_date) "
                "VALUES (?, ?, ?, ?)",
                (name, location, start_date, end_date),
            )
            await db.commit()
            return Tournament(cursor.lastrowid, name, location, start_date, end_date)

    async def get_tournament(
        self,
        tournament_id: int,
    ) -> Tournament:
        """
        Get a tournament by id.

        @param tournament_id: Tournament identifier
        @return: Tournament
        @raise NotFoundError: If the tournament does not exist
        """
        async with self._connect("get_tournament") as db:
            return await self._fetch_tournament(db, tournament_id)

    async def _fetch_tournament(
        self,
        db: Any,
        tournament_id: int,
    ) -> Tournament:
        cursor = await db.execute(
            f"SELECT {TOURNAMENT_COLUMNS} FROM tournaments WHERE tournament_id = ?",
            (tournament_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError("Tournament", tournament_id)
        return Tournament(*row)

    async def list_tournaments(self) -> List[Tournament]:
        async with self._connect("list_tournaments") as db:
            cursor = await db.execute(
                f"SELECT {TOURNAMENT_COLUMNS} FROM tournaments ORDER BY tournament_id"
            )
            return [Tournament(*row) for row in await cursor.fetchall()]

    async def create_team(
        self,
        tournament_id: int,
        display_name: str,
        player1: str,
        player2: str,
    ) -> Team:
        async with self._connect("create_team") as db:
            await self._fetch_tournament(db, tournament_id)
            cursor = await db.execute(
                "INSERT INTO teams (tournament_id, display_name, player1, player2) "
                "VALUES (?, ?, ?, ?)",
                (tournament_id, display_name, player1, player2),
            )
            await db.commit()
            return Team(cursor.lastrowid, tournament_id, display_name, player1, player2)

    async def get_team(
        self,
        team_id: int,
    ) -> Team:
        async with self._connect("get_team") as db:
            cursor = await db.execute(
                f"SELECT {TEAM_COLUMNS} FROM teams WHERE team_id = ?",
                (team_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                raise NotFoundError("Team", team_id)
            return Team(*row)

    async def get_teams(
        self,
        tournament_id: int,
    ) -> List[Team]:
        """
        Get all teams of a tournament.

        @param tournament_id: Tournament identifier
        @return: Teams ordered by id
        @raise NotFoundError: If the tournament does not exist
        """
        async with self._connect("get_teams") as db:
            await self._fetch_tournament(db, tournament_id)
            cursor = await db.execute(
                f"SELECT {TEAM_COLUMNS} FROM teams WHERE tournament_id = ? "
                "ORDER BY team_id",
                (tournament_id,),
            )
            return [Team(*row) for row in await cursor.fetchall()]

    async def create_round(
        self,
        tournament_id: int,
        round_number: int,
        date: Optional[str] = None,
    ) -> Round:
        """
        Create a round; round numbers are unique within a tournament.

        @param tournament_id: Owning tournament
        @param round_number: 1-based round number
        @param date: Optional ISO date string
        @return: Created Round
        @raise GolfBoardError: 409 if the round number is already taken
        """
        async with self._connect("create_round") as db:
            await self._fetch_tournament(db, tournament_id)
            try:
                cursor = await db.execute(
                    "INSERT INTO rounds (tournament_id, round_number, date) "
                    "VALUES (?, ?, ?)",
                    (tournament_id, round_number, date),
                )
            except aiosqlite.IntegrityError as e:
                raise GolfBoardError(
                    f"Round {round_number} already exists in tournament {tournament_id}",
                    status=409,
                ) from e
            await db.commit()
            return Round(cursor.lastrowid, tournament_id, round_number, date)

    async def get_round(
        self,
        round_id: int,
    ) -> Round:
        async with self._connect("get_round") as db:
            cursor = await db.execute(
                f"SELECT {ROUND_COLUMNS} FROM rounds WHERE round_id = ?",
                (round_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                raise NotFoundError("Round", round_id)
            return Round(*row)

    async def get_round_by_number(
        self,
        tournament_id: int,
        round_number: int,
    ) -> Optional[Round]:
        """
        Look up a round by its number.

        @param tournament_id: Tournament identifier
        @param round_number: Round number within the tournament
        @return: Round, or None if there is no such round
        """
        async with self._connect("get_round_by_number") as db:
            cursor = await db.execute(
                f"SELECT {ROUND_COLUMNS} FROM rounds "
                "WHERE tournament_id = ? AND round_number = ?",
                (tournament_id, round_number),
            )
            row = await cursor.fetchone()
            return Round(*row) if row else None

    async def get_rounds(
        self,
        tournament_id: int,
    ) -> List[Round]:
        """
        Get all rounds of a tournament.

        @param tournament_id: Tournament identifier
        @return: Rounds ordered by round number
        @raise NotFoundError: If the tournament does not exist
        """
        async with self._connect("get_rounds") as db:
            await self._fetch_tournament(db, tournament_id)
            cursor = await db.execute(
                f"SELECT {ROUND_COLUMNS} FROM rounds WHERE tournament_id = ? "
                "ORDER BY round_number",
                (tournament_id,),
            )
            return [Round(*row) for row in await cursor.fetchall()]

    # Scores

    async def list_scores(
        self,
        team_id: Optional[int] = None,
        round_id: Optional[int] = None,
        tournament_id: Optional[int] = None,
    ) -> List[ScoreRecord]:
        """
        Range scan over scores with optional filters.

        The tournament filter joins through both teams and rounds so a score
        is only returned when its team and round belong to that tournament.

        @param team_id: Restrict to one team
        @param round_id: Restrict to one round
        @param tournament_id: Restrict to one tournament
        @return: Score records ordered by round number then hole number
        """
        clauses = []
        params: List[Any] = []

        if team_id is not None:
            clauses.append("s.team_id = ?")
            params.append(team_id)
        if round_id is not None:
            clauses.append("s.round_id = ?")
            params.append(round_id)
        if tournament_id is not None:
            clauses.append("r.tournament_id = ? AND t.tournament_id = ?")
            params.extend([tournament_id, tournament_id])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._connect("list_scores") as db:
            cursor = await db.execute(
                f"""
                SELECT {SCORE_COLUMNS}
                FROM scores s
                JOIN rounds r ON s.round_id = r.round_id
                JOIN teams t ON s.team_id = t.team_id
                {where}
                ORDER BY r.round_number, s.team_id, s.hole_number
            """,
                params,
            )
            return [self._to_record(row) for row in await cursor.fetchall()]

    async def get_scores_by_team_and_round(
        self,
        team_id: int,
        round_id: int,
    ) -> List[ScoreRecord]:
        return await self.list_scores(team_id=team_id, round_id=round_id)

    async def get_scores_by_round(
        self,
        round_id: int,
    ) -> List[ScoreRecord]:
        return await self.list_scores(round_id=round_id)

    async def get_scores_by_tournament(
        self,
        tournament_id: int,
    ) -> List[ScoreRecord]:
        return await self.list_scores(tournament_id=tournament_id)

    async def upsert_score(
        self,
        team_id: int,
        round_id: int,
        hole_number: int,
        strokes: int,
        par: int,
    ) -> ScoreRecord:
        """
        Create the score for (team, round, hole) or update it if present.

        The read and the write run in one IMMEDIATE transaction, so writes to
        the same key are serialized; the last committed one wins.

        @param team_id: Team identifier
        @param round_id: Round identifier
        @param hole_number: Hole number
        @param strokes: Strokes taken
        @param par: Par of the hole
        @return: The stored ScoreRecord
        """
        async with self._connect("upsert_score") as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT score_id FROM scores "
                    "WHERE team_id = ? AND round_id = ? AND hole_number = ?",
                    (team_id, round_id, hole_number),
                )
                existing = await cursor.fetchone()

                if existing:
                    score_id = await self._update_score(
                        db, team_id, round_id, hole_number, strokes, par
                    )
                    logger.debug(
                        "Updated score for team %s round %s hole %s: %s (par %s)",
                        team_id, round_id, hole_number, strokes, par,
                    )
                else:
                    try:
                        score_id = await self._insert_score(
                            db, team_id, round_id, hole_number, strokes, par
                        )
                        logger.debug(
                            "Added score for team %s round %s hole %s: %s (par %s)",
                            team_id, round_id, hole_number, strokes, par,
                        )
                    except ConflictAlreadyResolved as conflict:
                        logger.info("%s; updating existing row", conflict.message)
                        score_id = await self._update_score(
                            db, team_id, round_id, hole_number, strokes, par
                        )

                await db.commit()
            except BaseException:
                await db.rollback()
                raise

        return ScoreRecord(team_id, round_id, hole_number, strokes, par, score_id)

    async def _insert_score(
        self,
        db: Any,
        team_id: int,
        round_id: int,
        hole_number: int,
        strokes: int,
        par: int,
    ) -> int:
        try:
            cursor = await db.execute(
                "INSERT INTO scores "
                "(team_id, round_id, hole_number, strokes, par, updated_at) "
                "VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)",
                (team_id, round_id, hole_number, strokes, par),
            )
        except aiosqlite.IntegrityError as e:
            if "UNIQUE" in str(e).upper():
                raise ConflictAlreadyResolved(team_id, round_id, hole_number) from e
            raise ScoreValidationError(
                f"Team {team_id} and round {round_id} must both exist"
            ) from e
        return cursor.lastrowid

    async def _update_score(
        self,
        db: Any,
        team_id: int,
        round_id: int,
        hole_number: int,
        strokes: int,
        par: int,
    ) -> int:
        await db.execute(
            "UPDATE scores SET strokes = ?, par = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE team_id = ? AND round_id = ? AND hole_number = ?",
            (strokes, par, team_id, round_id, hole_number),
        )
        cursor = await db.execute(
            "SELECT score_id FROM scores "
            "WHERE team_id = ? AND round_id = ? AND hole_number = ?",
            (team_id, round_id, hole_number),
        )
        row = await cursor.fetchone()
        if row is None:
            raise TransientStoreFailure(
                "upsert_score", "score row vanished during update"
            )
        return row[0]

    async def delete_score(
        self,
        team_id: int,
        round_id: int,
        hole_number: int,
    ) -> bool:
        """
        Delete one score.

        @return: True if a row was deleted, False if there was none
        """
        async with self._connect("delete_score") as db:
            cursor = await db.execute(
                "DELETE FROM scores "
                "WHERE team_id = ? AND round_id = ? AND hole_number = ?",
                (team_id, round_id, hole_number),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def reset_tournament(
        self,
        tournament_id: int,
        delete_tournament: bool = False,
    ) -> Dict[str, int]:
        """
        Remove all scores, rounds and teams of a tournament in one transaction.

        @param tournament_id: Tournament identifier
        @param delete_tournament: Also delete the tournament row itself
        @return: Number of deleted rows per table
        @raise NotFoundError: If the tournament does not exist
        """
        deleted: Dict[str, int] = {}

        async with self._connect("reset_tournament") as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                await self._fetch_tournament(db, tournament_id)

                cursor = await db.execute(
                    "DELETE FROM scores WHERE round_id IN "
                    "(SELECT round_id FROM rounds WHERE tournament_id = ?) "
                    "OR team_id IN "
                    "(SELECT team_id FROM teams WHERE tournament_id = ?)",
                    (tournament_id, tournament_id),
                )
                deleted["scores"] = cursor.rowcount

                for table in ("rounds", "teams"):
                    cursor = await db.execute(
                        f"DELETE FROM {table} WHERE tournament_id = ?",
                        (tournament_id,),
                    )
                    deleted[table] = cursor.rowcount

                if delete_tournament:
                    cursor = await db.execute(
                        "DELETE FROM tournaments WHERE tournament_id = ?",
                        (tournament_id,),
                    )
                    deleted["tournaments"] = cursor.rowcount

                await db.commit()
            except BaseException:
                await db.rollback()
                raise

        logger.info("Reset tournament %s: %s", tournament_id, deleted)
        return deleted

    @staticmethod
    def _to_record(row: Any) -> ScoreRecord:
        score_id, team_id, round_id, hole_number, strokes, par = row
        return ScoreRecord(team_id, round_id, hole_number, strokes, par, score_id)
