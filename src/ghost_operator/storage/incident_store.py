"""
SQLite-based incident history for Ghost Operator.

Stores incidents with their affected services, error markers, remediation
actions and post-mortems, and answers the "similar incidents" query the
history advisor relies on.
"""
import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..constants import DEFAULT_SIMILAR_INCIDENT_LIMIT
from ..exceptions import StoreUnavailableError
from ..models import (
    HistoricalIncident,
    Incident,
    PastRemediation,
    PostMortem,
    RemediationAction,
    coerce_timestamp,
)
from .base import IncidentStore

logger = logging.getLogger(__name__)


class SQLiteIncidentStore(IncidentStore):
    """
    SQLite-backed ``IncidentStore``.

    Every public call runs in a worker thread with its own connection and
    swallows database errors into a neutral result after logging them.

    Example:
        >>> store = SQLiteIncidentStore("ghost_operator.db")
        >>> await store.create_incident(incident)
        >>> similar = await store.find_similar_incidents({"redis"}, set())
    """

    def __init__(
        self,
        db_path: str | Path = "ghost_operator.db",
        similar_limit: int = DEFAULT_SIMILAR_INCIDENT_LIMIT,
    ):
        """
        Initialize incident store.

        Args:
            db_path: Path to SQLite database file
            similar_limit: Cap on ``find_similar_incidents`` results
        """
        self.db_path = Path(db_path)
        self.similar_limit = similar_limit
        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS incidents (
                    incident_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    summary TEXT,
                    severity TEXT NOT NULL,
                    root_cause TEXT,
                    detected_at TEXT NOT NULL,
                    detected_timestamp REAL NOT NULL,
                    resolved_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS incident_services (
                    incident_id TEXT NOT NULL,
                    service_name TEXT NOT NULL,
                    FOREIGN KEY (incident_id) REFERENCES incidents(incident_id),
                    PRIMARY KEY (incident_id, service_name)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS incident_errors (
                    incident_id TEXT NOT NULL,
                    error_code TEXT NOT NULL,
                    FOREIGN KEY (incident_id) REFERENCES incidents(incident_id),
                    PRIMARY KEY (incident_id, error_code)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS remediations (
                    action_id TEXT PRIMARY KEY,
                    incident_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    target_service TEXT NOT NULL,
                    description TEXT NOT NULL,
                    reasoning TEXT,
                    executed_at TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    validated INTEGER,
                    FOREIGN KEY (incident_id) REFERENCES incidents(incident_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS post_mortems (
                    incident_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    timeline TEXT NOT NULL,
                    root_cause TEXT NOT NULL,
                    impact TEXT NOT NULL,
                    remediation TEXT NOT NULL,
                    lessons_learned TEXT NOT NULL,
                    generated_at TEXT NOT NULL,
                    FOREIGN KEY (incident_id) REFERENCES incidents(incident_id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_incidents_detected
                ON incidents(detected_timestamp DESC)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_services_name
                ON incident_services(service_name)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_remediations_incident
                ON remediations(incident_id)
            """)

            conn.commit()
            logger.info(f"Incident store initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open incident store at {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    async def _submit(self, operation: str, fn: Callable, *args, default: Any = None) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.error(f"Error in {operation}: {e}")
            return default

    # Writes

    async def create_incident(self, incident: Incident) -> bool:
        return await self._submit(
            "create_incident", self._create_incident, incident, default=False
        )

    def _create_incident(self, incident: Incident) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                INSERT OR REPLACE INTO incidents (
                    incident_id, title, summary, severity, root_cause,
                    detected_at, detected_timestamp, resolved_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                incident.id,
                incident.title,
                incident.summary,
                incident.severity.value,
                incident.root_cause,
                incident.detected_at.isoformat(),
                incident.detected_at.timestamp(),
                incident.resolved_at.isoformat() if incident.resolved_at else None,
            ))

            for service in sorted(incident.services):
                cursor.execute("""
                    INSERT OR IGNORE INTO incident_services (incident_id, service_name)
                    VALUES (?, ?)
                """, (incident.id, service))

            for error in sorted(incident.errors):
                cursor.execute("""
                    INSERT OR IGNORE INTO incident_errors (incident_id, error_code)
                    VALUES (?, ?)
                """, (incident.id, error))

            conn.commit()
            logger.debug(f"Stored incident {incident.id}")
            return True

    async def add_remediation(self, incident_id: str, action: RemediationAction) -> bool:
        return await self._submit(
            "add_remediation", self._add_remediation, incident_id, action, default=False
        )

    def _add_remediation(self, incident_id: str, action: RemediationAction) -> bool:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO remediations (
                    action_id, incident_id, type, target_service, description,
                    reasoning, executed_at, success, validated
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                action.id,
                incident_id,
                action.type.value,
                action.target_service,
                action.description,
                action.reasoning,
                action.executed_at.isoformat(),
                int(action.success),
                None if action.validated is None else int(action.validated),
            ))
            conn.commit()
            return True

    async def update_validation(self, action_id: str, validated: bool) -> bool:
        return await self._submit(
            "update_validation", self._update_validation, action_id, validated, default=False
        )

    def _update_validation(self, action_id: str, validated: bool) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE remediations SET validated = ? WHERE action_id = ?",
                (int(validated), action_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    async def mark_resolved(self, incident_id: str, resolved_at: datetime) -> bool:
        return await self._submit(
            "mark_resolved", self._mark_resolved, incident_id, resolved_at, default=False
        )

    def _mark_resolved(self, incident_id: str, resolved_at: datetime) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE incidents SET resolved_at = ? WHERE incident_id = ?",
                (resolved_at.isoformat(), incident_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    async def add_post_mortem(self, post_mortem: PostMortem) -> bool:
        return await self._submit(
            "add_post_mortem", self._add_post_mortem, post_mortem, default=False
        )

    def _add_post_mortem(self, pm: PostMortem) -> bool:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO post_mortems (
                    incident_id, title, timeline, root_cause, impact,
                    remediation, lessons_learned, generated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                pm.incident_id,
                pm.title,
                pm.timeline,
                pm.root_cause,
                pm.impact,
                pm.remediation,
                pm.lessons_learned,
                pm.generated_at.isoformat(),
            ))
            conn.commit()
            return True

    # Reads

    async def find_similar_incidents(
        self,
        services: Iterable[str],
        errors: Iterable[str],
        exclude_id: Optional[str] = None,
    ) -> List[HistoricalIncident]:
        return await self._submit(
            "find_similar_incidents",
            self._find_similar_incidents,
            sorted({s.lower() for s in services}),
            sorted(set(errors)),
            exclude_id,
            default=[],
        )

    def _find_similar_incidents(
        self,
        services: List[str],
        errors: List[str],
        exclude_id: Optional[str],
    ) -> List[HistoricalIncident]:
        if services:
            placeholders = ','.join('?' * len(services))
            match_clause = f"""
                incident_id IN (
                    SELECT incident_id FROM incident_services
                    WHERE LOWER(service_name) IN ({placeholders})
                )
            """
            params: List[Any] = list(services)
        elif errors:
            placeholders = ','.join('?' * len(errors))
            match_clause = f"""
                incident_id IN (
                    SELECT incident_id FROM incident_errors
                    WHERE error_code IN ({placeholders})
                )
            """
            params = list(errors)
        else:
            return []

        query = f"SELECT incident_id FROM incidents WHERE {match_clause}"
        if exclude_id:
            query += " AND incident_id != ?"
            params.append(exclude_id)
        query += " ORDER BY detected_timestamp DESC, rowid DESC LIMIT ?"
        params.append(self.similar_limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._load_incident(conn, r['incident_id']) for r in rows]

    async def get_incident(self, incident_id: str) -> Optional[HistoricalIncident]:
        return await self._submit("get_incident", self._get_incident, incident_id)

    def _get_incident(self, incident_id: str) -> Optional[HistoricalIncident]:
        with self._get_connection() as conn:
            exists = conn.execute(
                "SELECT 1 FROM incidents WHERE incident_id = ?", (incident_id,)
            ).fetchone()
            if not exists:
                return None
            return self._load_incident(conn, incident_id)

    def _load_incident(self, conn: sqlite3.Connection, incident_id: str) -> HistoricalIncident:
        row = conn.execute(
            "SELECT * FROM incidents WHERE incident_id = ?", (incident_id,)
        ).fetchone()

        services = [
            r['service_name'] for r in conn.execute(
                "SELECT service_name FROM incident_services WHERE incident_id = ? "
                "ORDER BY service_name", (incident_id,)
            )
        ]
        errors = [
            r['error_code'] for r in conn.execute(
                "SELECT error_code FROM incident_errors WHERE incident_id = ? "
                "ORDER BY error_code", (incident_id,)
            )
        ]
        remediations = [
            PastRemediation(type=r['type'], success=bool(r['success']))
            for r in conn.execute(
                "SELECT type, success FROM remediations WHERE incident_id = ? "
                "ORDER BY executed_at, rowid", (incident_id,)
            )
        ]

        return HistoricalIncident(
            id=row['incident_id'],
            title=row['title'],
            severity=row['severity'],
            detected_at=coerce_timestamp(row['detected_at']),
            services=services,
            errors=errors,
            root_cause=row['root_cause'],
            remediations=remediations,
            resolved_at=coerce_timestamp(row['resolved_at']) if row['resolved_at'] else None,
        )

    async def get_stats(self) -> Dict[str, Any]:
        return await self._submit("get_stats", self._get_stats, default={})

    def _get_stats(self) -> Dict[str, Any]:
        with self._get_connection() as conn:
            def count(sql: str) -> int:
                return conn.execute(sql).fetchone()[0]

            return {
                'incidents': count("SELECT COUNT(*) FROM incidents"),
                'resolved': count("SELECT COUNT(*) FROM incidents WHERE resolved_at IS NOT NULL"),
                'services': count("SELECT COUNT(DISTINCT service_name) FROM incident_services"),
                'errors': count("SELECT COUNT(DISTINCT error_code) FROM incident_errors"),
                'root_causes': count(
                    "SELECT COUNT(DISTINCT root_cause) FROM incidents WHERE root_cause IS NOT NULL"
                ),
                'remediations': count("SELECT COUNT(*) FROM remediations"),
                'failed_remediations': count("SELECT COUNT(*) FROM remediations WHERE success = 0"),
                'post_mortems': count("SELECT COUNT(*) FROM post_mortems"),
            }
