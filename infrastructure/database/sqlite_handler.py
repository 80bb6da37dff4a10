import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from infrastructure.database.ops.activity_log import ActivityOperations
from infrastructure.database.ops.analytics import AnalyticsOperations
from infrastructure.database.ops.environment import EnvironmentOperations
from infrastructure.database.ops.plants import PlantOperations
from infrastructure.database.ops.recommendations import RecommendationOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    PlantOperations,
    EnvironmentOperations,
    ActivityOperations,
    AnalyticsOperations,
    RecommendationOperations,
):
    """Thread-safe SQLite handler with one connection per thread."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_path.parent}")

    # --- Lifecycle ------------------------------------------------------------
    def init_db(self) -> None:
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
            with self._connections_lock:
                self._connections.append(connection)
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False, timeout=10.0)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL lets the scheduler's batch workers read while another thread writes."""
        if self._database_path != ":memory:":
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=OFF")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_all(self) -> None:
        """Close every connection opened by any thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for connection in connections:
            try:
                connection.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection: %s", exc)
        if getattr(self._local, "connection", None) is not None:
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()

    def ping(self) -> bool:
        """Connectivity check used by the hourly health check."""
        try:
            row = self.get_db().execute("SELECT 1 AS health").fetchone()
            return row is not None and row["health"] == 1
        except sqlite3.Error as exc:
            logger.error("Database ping failed: %s", exc)
            return False

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            db.executescript(
                """
                CREATE TABLE IF NOT EXISTS plants (
                    plant_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    strain TEXT,
                    stage TEXT NOT NULL DEFAULT 'seedling',
                    growing_medium TEXT DEFAULT 'soil',
                    tent_id INTEGER,
                    planted_at TEXT,
                    stage_started_at TEXT,
                    node_count INTEGER,
                    created_at TEXT
                );

                CREATE TABLE IF NOT EXISTS environment_logs (
                    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tent_id INTEGER,
                    timestamp TEXT NOT NULL,
                    temperature REAL,
                    humidity REAL,
                    vpd REAL,
                    co2 REAL,
                    ppfd REAL
                );
                CREATE INDEX IF NOT EXISTS idx_environment_logs_tent_time
                    ON environment_logs (tent_id, timestamp);

                CREATE TABLE IF NOT EXISTS activity_logs (
                    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plant_id INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    activity_type TEXT NOT NULL,
                    value REAL,
                    notes TEXT,
                    payload TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_activity_logs_plant_time
                    ON activity_logs (plant_id, timestamp);

                CREATE TABLE IF NOT EXISTS analytics_data (
                    analytics_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plant_id INTEGER NOT NULL,
                    calculation_date TEXT NOT NULL,
                    yield_prediction REAL,
                    growth_rate REAL,
                    environmental_efficiency TEXT,
                    recommendations TEXT,
                    created_at TEXT,
                    updated_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_analytics_data_plant_date
                    ON analytics_data (plant_id, calculation_date);

                CREATE TABLE IF NOT EXISTS recommendations (
                    recommendation_id TEXT PRIMARY KEY,
                    plant_id INTEGER NOT NULL,
                    category TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT,
                    updated_at TEXT
                );

                CREATE TABLE IF NOT EXISTS recommendation_feedback (
                    feedback_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recommendation_id TEXT NOT NULL,
                    plant_id INTEGER NOT NULL,
                    implemented INTEGER NOT NULL,
                    effectiveness TEXT,
                    notes TEXT,
                    outcome TEXT,
                    created_at TEXT
                );

                CREATE TABLE IF NOT EXISTS recommendation_history (
                    history_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recommendation_id TEXT NOT NULL UNIQUE,
                    plant_id INTEGER NOT NULL,
                    recommendation TEXT,
                    implemented INTEGER NOT NULL DEFAULT 0,
                    effectiveness TEXT,
                    notes TEXT,
                    outcome TEXT,
                    created_at TEXT,
                    updated_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_recommendation_history_plant
                    ON recommendation_history (plant_id, created_at);
                """
            )
        logger.info("Database tables ensured at %s", self._database_path)
