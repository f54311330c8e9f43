"""SQLite-backed durable store for stat records, scoring rules and points."""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Tuple

import pandas as pd

from src.projections.config import TEXT_COLUMNS
from src.projections.models import ProjectionSource, StatRecord
from src.scoring.config import STORE_PATH, STORE_TIMEOUT_SECONDS
from src.scoring.errors import DuplicateKeyError, NameConflictError, PersistenceError
from src.scoring.models import ComputedPoints, ScoringCategory, ScoringRule

logger = logging.getLogger(__name__)

_KEY_COLUMNS = ("player_id", "projection_source")
_STAT_COLUMNS = [f.name for f in fields(StatRecord)]
_NUMERIC_STAT_COLUMNS = [
    c for c in _STAT_COLUMNS if c not in _KEY_COLUMNS and c not in TEXT_COLUMNS
]
_WEIGHT_COLUMNS = [category.value for category in ScoringCategory]

# SQLite caps host parameters per statement
_MAX_IN_PARAMS = 500


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _persistence_error(error: sqlite3.Error) -> PersistenceError:
    message = str(error).lower()
    transient = isinstance(error, sqlite3.OperationalError) and (
        "locked" in message or "busy" in message
    )
    return PersistenceError(f"Store operation failed: {error}", transient=transient)


def _stat_params(record: StatRecord) -> Tuple:
    """Column values for *record*; unset stats are stored as 0."""
    row = record.to_dict()
    for col in _NUMERIC_STAT_COLUMNS:
        if row[col] is None:
            row[col] = 0.0
    for col in TEXT_COLUMNS:
        if col not in _KEY_COLUMNS and row[col] is None:
            row[col] = ""
    return tuple(row[col] for col in _STAT_COLUMNS)


def _points_from_row(row: sqlite3.Row) -> ComputedPoints:
    return ComputedPoints(
        player_id=row["player_id"],
        projection_source=ProjectionSource(row["projection_source"]),
        scoring_rule_name=row["scoring_rule_name"],
        amount=row["amount"],
    )


class ProjectionStore:
    """Durable store for StatRecords, ScoringRules and ComputedPoints.

    Every public method runs in its own transaction on a fresh
    connection unless a ``conn`` from :meth:`connect` is passed in, in
    which case the caller owns that connection. A file path is required;
    ``:memory:`` databases are not shared between connections.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path is not None else STORE_PATH
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    def connect(self) -> sqlite3.Connection:
        """Open a private connection to the store."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.db_path, timeout=STORE_TIMEOUT_SECONDS)
        except sqlite3.Error as e:
            raise _persistence_error(e) from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(
        self, conn: Optional[sqlite3.Connection] = None
    ) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error, wrap sqlite errors."""
        owns = conn is None
        try:
            if owns:
                conn = self.connect()
            try:
                with conn:
                    yield conn
            finally:
                if owns:
                    conn.close()
        except sqlite3.Error as e:
            raise _persistence_error(e) from e
        except pd.errors.DatabaseError as e:
            # pandas wraps the sqlite error raised by read_sql_query
            if isinstance(e.__cause__, sqlite3.Error):
                raise _persistence_error(e.__cause__) from e
            raise PersistenceError(f"Store operation failed: {e}") from e

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        numeric = ",\n".join(
            f"{col} REAL NOT NULL DEFAULT 0" for col in _NUMERIC_STAT_COLUMNS
        )
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS stat_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                player_id TEXT,
                projection_source TEXT,
                player_name TEXT NOT NULL DEFAULT '',
                position TEXT NOT NULL DEFAULT '',
                team TEXT NOT NULL DEFAULT '',
                {numeric},
                UNIQUE (player_id, projection_source)
            )
            """
        )
        weights = ",\n".join(
            f"{col} REAL NOT NULL DEFAULT 0" for col in _WEIGHT_COLUMNS
        )
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS scoring_rules (
                name TEXT PRIMARY KEY,
                {weights},
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS computed_points (
                player_id TEXT NOT NULL,
                projection_source TEXT NOT NULL,
                scoring_rule_name TEXT NOT NULL,
                amount REAL NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (player_id, projection_source, scoring_rule_name)
            )
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_computed_points_rule
            ON computed_points (scoring_rule_name)
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS recompute_cursors (
                scoring_rule_name TEXT PRIMARY KEY,
                next_offset INTEGER NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    # Stat records
    # ------------------------------------------------------------------
    def add_stat_records(
        self,
        records: Iterable[StatRecord],
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Insert records, ignoring any whose (player, source) already exists.

        Returns:
            Number of records inserted.
        """
        placeholders = ", ".join("?" for _ in _STAT_COLUMNS)
        rows = [_stat_params(record) for record in records]

        with self._transaction(conn) as c:
            cur = c.executemany(
                f"INSERT INTO stat_records ({', '.join(_STAT_COLUMNS)}) "
                f"VALUES ({placeholders}) "
                "ON CONFLICT (player_id, projection_source) DO NOTHING",
                rows,
            )
            inserted = max(cur.rowcount, 0)

        logger.debug("Inserted %d of %d stat records", inserted, len(rows))
        return inserted

    def replace_stat_record(
        self, record: StatRecord, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        """Store *record*, overwriting the existing one for its key.

        Points computed from the overwritten record are deleted in the
        same transaction, along with every resume cursor, so the next pass
        for any rule scans from the start.

        Returns:
            Number of cached points entries removed.
        """
        if record.player_id is None or record.projection_source is None:
            raise ValueError("replace_stat_record requires a keyed record")

        placeholders = ", ".join("?" for _ in _STAT_COLUMNS)
        updates = ", ".join(
            f"{col} = excluded.{col}" for col in _STAT_COLUMNS if col not in _KEY_COLUMNS
        )
        with self._transaction(conn) as c:
            removed = c.execute(
                "DELETE FROM computed_points "
                "WHERE player_id = ? AND projection_source = ?",
                (record.player_id, record.projection_source.value),
            ).rowcount
            c.execute("DELETE FROM recompute_cursors")
            c.execute(
                f"INSERT INTO stat_records ({', '.join(_STAT_COLUMNS)}) "
                f"VALUES ({placeholders}) "
                f"ON CONFLICT (player_id, projection_source) DO UPDATE SET {updates}",
                _stat_params(record),
            )
        return removed

    def get_stat_record(
        self,
        player_id: str,
        projection_source: ProjectionSource,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[StatRecord]:
        with self._transaction(conn) as c:
            row = c.execute(
                "SELECT * FROM stat_records "
                "WHERE player_id = ? AND projection_source = ?",
                (player_id, projection_source.value),
            ).fetchone()
        return StatRecord.from_dict(dict(row)) if row else None

    def count_stat_records(self, conn: Optional[sqlite3.Connection] = None) -> int:
        with self._transaction(conn) as c:
            return c.execute("SELECT COUNT(*) FROM stat_records").fetchone()[0]

    def fetch_stat_records(
        self,
        offset: int,
        limit: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> List[StatRecord]:
        """One page of records in insertion order."""
        with self._transaction(conn) as c:
            rows = c.execute(
                "SELECT * FROM stat_records ORDER BY id LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [StatRecord.from_dict(dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Scoring rules
    # ------------------------------------------------------------------
    def _insert_rule_sql(self, verb: str) -> str:
        columns = ["name", *_WEIGHT_COLUMNS, "created_at"]
        placeholders = ", ".join("?" for _ in columns)
        return f"{verb} INTO scoring_rules ({', '.join(columns)}) VALUES ({placeholders})"

    @staticmethod
    def _rule_params(rule: ScoringRule) -> Tuple:
        return (rule.name, *(rule.weight(c) for c in ScoringCategory), _now())

    def insert_scoring_rule(
        self, rule: ScoringRule, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        """Insert *rule*; raises NameConflictError if the name is taken."""
        with self._transaction(conn) as c:
            try:
                c.execute(self._insert_rule_sql("INSERT"), self._rule_params(rule))
            except sqlite3.IntegrityError as e:
                raise NameConflictError(
                    f"A scoring rule named {rule.name!r} already exists"
                ) from e

    def insert_scoring_rule_if_absent(
        self, rule: ScoringRule, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        """Insert *rule* unless its name exists. Returns True if inserted."""
        with self._transaction(conn) as c:
            cur = c.execute(
                self._insert_rule_sql("INSERT OR IGNORE"), self._rule_params(rule)
            )
            return cur.rowcount == 1

    def get_scoring_rule(
        self, name: str, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[ScoringRule]:
        with self._transaction(conn) as c:
            row = c.execute(
                "SELECT * FROM scoring_rules WHERE name = ?", (name,)
            ).fetchone()
        return ScoringRule.from_dict(dict(row)) if row else None

    def list_scoring_rules(
        self, conn: Optional[sqlite3.Connection] = None
    ) -> List[ScoringRule]:
        with self._transaction(conn) as c:
            rows = c.execute(
                "SELECT * FROM scoring_rules ORDER BY created_at, name"
            ).fetchall()
        return [ScoringRule.from_dict(dict(row)) for row in rows]

    def count_scoring_rules(
        self, name: Optional[str] = None, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        """Count all rules, or those matching *name* exactly."""
        with self._transaction(conn) as c:
            if name is None:
                return c.execute("SELECT COUNT(*) FROM scoring_rules").fetchone()[0]
            return c.execute(
                "SELECT COUNT(*) FROM scoring_rules WHERE name = ?", (name,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Computed points
    # ------------------------------------------------------------------
    def get_computed_points(
        self,
        player_id: str,
        projection_source: ProjectionSource,
        scoring_rule_name: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[ComputedPoints]:
        with self._transaction(conn) as c:
            row = c.execute(
                "SELECT * FROM computed_points WHERE player_id = ? "
                "AND projection_source = ? AND scoring_rule_name = ?",
                (player_id, projection_source.value, scoring_rule_name),
            ).fetchone()
        return _points_from_row(row) if row else None

    def count_computed_points(
        self,
        player_id: Optional[str] = None,
        projection_source: Optional[ProjectionSource] = None,
        scoring_rule_name: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Count entries matching whichever key fields are given."""
        clauses, params = [], []
        if player_id is not None:
            clauses.append("player_id = ?")
            params.append(player_id)
        if projection_source is not None:
            clauses.append("projection_source = ?")
            params.append(projection_source.value)
        if scoring_rule_name is not None:
            clauses.append("scoring_rule_name = ?")
            params.append(scoring_rule_name)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._transaction(conn) as c:
            return c.execute(
                f"SELECT COUNT(*) FROM computed_points{where}", params
            ).fetchone()[0]

    @staticmethod
    def _points_params(points: ComputedPoints) -> Tuple:
        return (
            points.player_id,
            points.projection_source.value,
            points.scoring_rule_name,
            float(points.amount),
            _now(),
        )

    _INSERT_POINTS = (
        "INTO computed_points "
        "(player_id, projection_source, scoring_rule_name, amount, created_at) "
        "VALUES (?, ?, ?, ?, ?)"
    )

    def insert_computed_points(
        self, points: ComputedPoints, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        """Insert *points*; raises DuplicateKeyError if the key exists."""
        with self._transaction(conn) as c:
            try:
                c.execute("INSERT " + self._INSERT_POINTS, self._points_params(points))
            except sqlite3.IntegrityError as e:
                raise DuplicateKeyError(
                    f"Points already computed for {points.key}"
                ) from e

    def insert_computed_points_if_absent(
        self, points: ComputedPoints, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        """Atomically insert *points* unless the key exists. True if inserted."""
        with self._transaction(conn) as c:
            cur = c.execute(
                "INSERT OR IGNORE " + self._INSERT_POINTS, self._points_params(points)
            )
            return cur.rowcount == 1

    def existing_point_keys(
        self,
        scoring_rule_name: str,
        keys: Iterable[Tuple[str, ProjectionSource]],
        conn: Optional[sqlite3.Connection] = None,
    ) -> Set[Tuple[str, ProjectionSource]]:
        """Subset of (player_id, source) *keys* already cached for the rule."""
        wanted = set(keys)
        player_ids = sorted({pid for pid, _ in wanted})
        found: Set[Tuple[str, ProjectionSource]] = set()

        with self._transaction(conn) as c:
            for start in range(0, len(player_ids), _MAX_IN_PARAMS):
                chunk = player_ids[start:start + _MAX_IN_PARAMS]
                marks = ", ".join("?" for _ in chunk)
                rows = c.execute(
                    "SELECT player_id, projection_source FROM computed_points "
                    f"WHERE scoring_rule_name = ? AND player_id IN ({marks})",
                    (scoring_rule_name, *chunk),
                ).fetchall()
                for row in rows:
                    key = (row["player_id"], ProjectionSource(row["projection_source"]))
                    if key in wanted:
                        found.add(key)
        return found

    def commit_points_batch(
        self,
        entries: Iterable[ComputedPoints],
        scoring_rule_name: str,
        next_offset: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Write a batch of points and the resume offset in one transaction.

        Entries whose key already exists are left alone.

        Returns:
            Number of entries inserted.
        """
        rows = [self._points_params(points) for points in entries]
        with self._transaction(conn) as c:
            inserted = 0
            if rows:
                cur = c.executemany("INSERT OR IGNORE " + self._INSERT_POINTS, rows)
                inserted = max(cur.rowcount, 0)
            c.execute(
                "INSERT INTO recompute_cursors (scoring_rule_name, next_offset, updated_at) "
                "VALUES (?, ?, ?) ON CONFLICT (scoring_rule_name) DO UPDATE SET "
                "next_offset = excluded.next_offset, updated_at = excluded.updated_at",
                (scoring_rule_name, next_offset, _now()),
            )
        return inserted

    # ------------------------------------------------------------------
    # Resume cursors
    # ------------------------------------------------------------------
    def get_recompute_cursor(
        self, scoring_rule_name: str, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        """Offset after the last committed batch for the rule, or 0."""
        with self._transaction(conn) as c:
            row = c.execute(
                "SELECT next_offset FROM recompute_cursors WHERE scoring_rule_name = ?",
                (scoring_rule_name,),
            ).fetchone()
        return row["next_offset"] if row else 0

    def clear_recompute_cursor(
        self, scoring_rule_name: str, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        with self._transaction(conn) as c:
            c.execute(
                "DELETE FROM recompute_cursors WHERE scoring_rule_name = ?",
                (scoring_rule_name,),
            )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def points_frame(
        self,
        scoring_rule_name: str,
        projection_source: Optional[ProjectionSource] = None,
        position: Optional[str] = None,
    ) -> pd.DataFrame:
        """Computed points joined with player details, best first.

        *position* keeps players listed at that position, including
        multi-position players ("C, 1B" matches both "C" and "1B").

        Columns: player_id, player_name, team, position,
        projection_source, amount.
        """
        query = (
            "SELECT p.player_id, s.player_name, s.team, s.position, "
            "p.projection_source, p.amount "
            "FROM computed_points p "
            "JOIN stat_records s ON s.player_id = p.player_id "
            "AND s.projection_source = p.projection_source "
            "WHERE p.scoring_rule_name = ?"
        )
        params: List = [scoring_rule_name]
        if projection_source is not None:
            query += " AND p.projection_source = ?"
            params.append(projection_source.value)
        if position is not None:
            query += " AND (', ' || UPPER(s.position) || ',') LIKE ?"
            params.append(f"%, {position.strip().upper()},%")
        query += " ORDER BY p.amount DESC, s.player_name"

        with self._transaction() as c:
            return pd.read_sql_query(query, c, params=params)
