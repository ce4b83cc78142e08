"""DuckDB Storage Adapter.

This adapter implements the RegistryStoragePort contract for persisting the
registry to DuckDB, an in-process database with full ACID transactions.

Security Impact:
    - Every mutation runs in one transaction: counter increment, entity insert,
      index updates and the audit event commit together or roll back together
    - Claim finalisation is a conditional UPDATE on ``status = 'pending'``
    - The audit trail table is append-only

Architecture:
    - Implements RegistryStoragePort (Hexagonal Architecture)
    - Isolated from domain services - only depends on ports and models
    - One connection shared behind a lock; DuckDB connections are not safe
      for concurrent use from several threads
"""

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

import duckdb

from medclaim.domain.enums import ClaimStatus, EventType, Role
from medclaim.domain.models import (
    Claim,
    MedicalRecord,
    RegistryEvent,
    RegistryStatistics,
)
from medclaim.domain.ports import RegistryStoragePort, Result, StorageError
from medclaim.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)

_COUNTERS = ("record", "claim", "verified", "event")

_RECORD_COLUMNS = "record_id, patient, hospital, content_ref, cost, created_at"
_CLAIM_COLUMNS = "claim_id, record_id, insurer, status, created_at, processed_at"


class DuckDBRegistryAdapter(RegistryStoragePort):
    """DuckDB implementation of RegistryStoragePort.

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        from medclaim.infrastructure.config_manager import ConfigManager

        adapter = DuckDBRegistryAdapter(db_config=ConfigManager.from_environment().get_database_config())
        registry = ClaimRegistry(adapter, administrator=admin)
        ```
    """

    backend_name = "duckdb"

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        db_path: Optional[str] = None
    ):
        """Initialize DuckDB adapter.

        If both db_config and db_path are provided, db_config takes precedence.
        If neither is provided, defaults to an in-memory database.

        Raises:
            StorageError: Config is not a DuckDB config, or the database
                directory does not exist
        """
        if db_config:
            if db_config.db_type != "duckdb":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = db_config.db_path or ":memory:"
        elif db_path:
            self.db_path = db_path
        else:
            self.db_path = ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        self._lock = threading.RLock()

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection (created lazily, then reused)."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        return self._connection

    @contextmanager
    def _transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run a block in one transaction under the adapter lock."""
        with self._lock:
            if not self._initialized:
                init_result = self.initialize_schema()
                if not init_result.is_success():
                    raise StorageError(init_result.error, operation="initialize_schema")
            conn = self._get_connection()
            conn.begin()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    @contextmanager
    def _reader(self) -> Iterator[duckdb.DuckDBPyConnection]:
        with self._lock:
            if not self._initialized:
                init_result = self.initialize_schema()
                if not init_result.is_success():
                    raise StorageError(init_result.error, operation="initialize_schema")
            yield self._get_connection()

    def _failure(self, operation: str, error: Exception, **details: Any) -> Result:
        error_msg = f"Failed to {operation.replace('_', ' ')}: {str(error)}"
        logger.error(error_msg, exc_info=True)
        return Result.failure_result(
            StorageError(error_msg, operation=operation, details=details),
            error_type="StorageError",
            error_details={"operation": operation, **details},
        )

    @staticmethod
    def _next_value(conn: duckdb.DuckDBPyConnection, counter: str) -> int:
        row = conn.execute("SELECT value FROM registry_counters WHERE name = ?", [counter]).fetchone()
        next_value = row[0] + 1
        conn.execute("UPDATE registry_counters SET value = ? WHERE name = ?", [next_value, counter])
        return next_value

    def _log_event(
        self,
        conn: duckdb.DuckDBPyConnection,
        event_type: EventType,
        actor: str,
        entity_id: Optional[str],
        details: Optional[dict] = None
    ) -> str:
        """Append an audit event inside the caller's transaction."""
        event_id = str(uuid.uuid4())
        conn.execute("""
            INSERT INTO registry_events (
                event_id, event_seq, event_type, event_timestamp, actor, entity_id, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """, [
            event_id,
            self._next_value(conn, "event"),
            event_type.value,
            datetime.now(),
            actor,
            entity_id,
            json.dumps(details or {}),
        ])
        logger.debug(f"Logged registry event: {event_type.value} (ID: {event_id})")
        return event_id

    @staticmethod
    def _row_to_record(row: tuple) -> MedicalRecord:
        return MedicalRecord(
            record_id=row[0],
            patient=row[1],
            hospital=row[2],
            content_ref=row[3],
            cost=int(row[4]),
            created_at=row[5],
        )

    @staticmethod
    def _row_to_claim(row: tuple) -> Claim:
        return Claim(
            claim_id=row[0],
            record_id=row[1],
            insurer=row[2],
            status=ClaimStatus(row[3]),
            created_at=row[4],
            processed_at=row[5],
        )

    @staticmethod
    def _check_role(role: Role) -> None:
        if role not in (Role.HOSPITAL, Role.INSURER):
            raise StorageError(f"No verified set for role '{role.value}'", operation="verified_set")

    def initialize_schema(self) -> Result[None]:
        """Initialize database schema (tables, counters, indexes).

        Creates tables for:
        - registry_meta: administrator identity
        - registry_counters: monotonic id counters
        - verified_identities: hospital and insurer sets
        - medical_records, claims: primary entities
        - patient_records, patient_claims, hospital_patients: derived indices
        - registry_events: append-only audit trail

        Returns:
            Result[None]: Success or failure result
        """
        with self._lock:
            try:
                conn = self._get_connection()

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS registry_meta (
                        key VARCHAR PRIMARY KEY,
                        value VARCHAR NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS registry_counters (
                        name VARCHAR PRIMARY KEY,
                        value BIGINT NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS verified_identities (
                        role VARCHAR NOT NULL,
                        identity VARCHAR NOT NULL,
                        seq BIGINT NOT NULL,
                        added_by VARCHAR NOT NULL,
                        added_at TIMESTAMP NOT NULL,
                        PRIMARY KEY (role, identity)
                    )
                """)

                # Costs are unsigned 256-bit amounts, wider than any DuckDB integer type,
                # so they are stored as decimal text.
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS medical_records (
                        record_id BIGINT PRIMARY KEY,
                        patient VARCHAR NOT NULL,
                        hospital VARCHAR NOT NULL,
                        content_ref VARCHAR NOT NULL,
                        cost VARCHAR NOT NULL,
                        created_at TIMESTAMP NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS claims (
                        claim_id BIGINT PRIMARY KEY,
                        record_id BIGINT NOT NULL,
                        insurer VARCHAR NOT NULL,
                        status VARCHAR NOT NULL,
                        created_at TIMESTAMP NOT NULL,
                        processed_at TIMESTAMP
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS patient_records (
                        patient VARCHAR NOT NULL,
                        record_id BIGINT NOT NULL,
                        PRIMARY KEY (patient, record_id)
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS patient_claims (
                        patient VARCHAR NOT NULL,
                        claim_id BIGINT NOT NULL,
                        PRIMARY KEY (patient, claim_id)
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS hospital_patients (
                        hospital VARCHAR NOT NULL,
                        patient VARCHAR NOT NULL,
                        first_record_id BIGINT NOT NULL,
                        PRIMARY KEY (hospital, patient)
                    )
                """)

                # Append-only audit trail; details are JSON text
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS registry_events (
                        event_id VARCHAR PRIMARY KEY,
                        event_seq BIGINT NOT NULL,
                        event_type VARCHAR NOT NULL,
                        event_timestamp TIMESTAMP NOT NULL,
                        actor VARCHAR NOT NULL,
                        entity_id VARCHAR,
                        details VARCHAR
                    )
                """)

                for counter in _COUNTERS:
                    conn.execute(
                        "INSERT OR IGNORE INTO registry_counters (name, value) VALUES (?, 0)",
                        [counter]
                    )

                conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_record ON claims(record_id)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_events_type ON registry_events(event_type)")

                self._initialized = True
                logger.info("Registry schema initialized successfully")
                return Result.success_result(None)

            except Exception as e:
                error_msg = f"Failed to initialize schema: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    StorageError(error_msg, operation="initialize_schema"),
                    error_type="StorageError"
                )

    def get_administrator(self) -> Result[Optional[str]]:
        try:
            with self._reader() as conn:
                row = conn.execute(
                    "SELECT value FROM registry_meta WHERE key = 'administrator'"
                ).fetchone()
                return Result.success_result(row[0] if row else None)
        except Exception as e:
            return self._failure("get_administrator", e)

    def set_administrator(self, identity: str) -> Result[None]:
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT value FROM registry_meta WHERE key = 'administrator'"
                ).fetchone()
                if row is not None:
                    raise StorageError("Administrator is already set", operation="set_administrator")
                conn.execute(
                    "INSERT INTO registry_meta (key, value) VALUES ('administrator', ?)",
                    [identity]
                )
            return Result.success_result(None)
        except Exception as e:
            return self._failure("set_administrator", e)

    def add_verified(self, role: Role, identity: str, actor: str) -> Result[bool]:
        try:
            self._check_role(role)
            with self._transaction() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM verified_identities WHERE role = ? AND identity = ?",
                    [role.value, identity]
                ).fetchone()
                if exists:
                    return Result.success_result(False)
                conn.execute("""
                    INSERT INTO verified_identities (role, identity, seq, added_by, added_at)
                    VALUES (?, ?, ?, ?, ?)
                """, [role.value, identity, self._next_value(conn, "verified"), actor, datetime.now()])
                event_type = EventType.HOSPITAL_ADDED if role is Role.HOSPITAL else EventType.INSURER_ADDED
                self._log_event(conn, event_type, actor, identity)
            return Result.success_result(True)
        except Exception as e:
            return self._failure("add_verified", e, role=role.value)

    def is_verified(self, role: Role, identity: str) -> Result[bool]:
        try:
            self._check_role(role)
            with self._reader() as conn:
                row = conn.execute(
                    "SELECT 1 FROM verified_identities WHERE role = ? AND identity = ?",
                    [role.value, identity]
                ).fetchone()
                return Result.success_result(row is not None)
        except Exception as e:
            return self._failure("is_verified", e, role=role.value)

    def list_verified(self, role: Role) -> Result[list[str]]:
        try:
            self._check_role(role)
            with self._reader() as conn:
                rows = conn.execute(
                    "SELECT identity FROM verified_identities WHERE role = ? ORDER BY seq",
                    [role.value]
                ).fetchall()
                return Result.success_result([row[0] for row in rows])
        except Exception as e:
            return self._failure("list_verified", e, role=role.value)

    def insert_record(
        self,
        patient: str,
        hospital: str,
        content_ref: str,
        cost: int
    ) -> Result[MedicalRecord]:
        try:
            with self._transaction() as conn:
                record = MedicalRecord(
                    record_id=self._next_value(conn, "record"),
                    patient=patient,
                    hospital=hospital,
                    content_ref=content_ref,
                    cost=cost,
                )
                conn.execute(f"""
                    INSERT INTO medical_records ({_RECORD_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?)
                """, [
                    record.record_id,
                    record.patient,
                    record.hospital,
                    record.content_ref,
                    str(record.cost),
                    record.created_at,
                ])
                conn.execute(
                    "INSERT INTO patient_records (patient, record_id) VALUES (?, ?)",
                    [record.patient, record.record_id]
                )
                conn.execute(
                    "INSERT OR IGNORE INTO hospital_patients (hospital, patient, first_record_id) VALUES (?, ?, ?)",
                    [record.hospital, record.patient, record.record_id]
                )
                self._log_event(
                    conn,
                    EventType.RECORD_SUBMITTED,
                    hospital,
                    str(record.record_id),
                    {"patient": patient, "cost": cost},
                )
            logger.debug(f"Persisted medical record {record.record_id}")
            return Result.success_result(record)
        except Exception as e:
            return self._failure("insert_record", e, patient=patient)

    def get_record(self, record_id: int) -> Result[Optional[MedicalRecord]]:
        try:
            with self._reader() as conn:
                row = conn.execute(
                    f"SELECT {_RECORD_COLUMNS} FROM medical_records WHERE record_id = ?",
                    [record_id]
                ).fetchone()
                return Result.success_result(self._row_to_record(row) if row else None)
        except Exception as e:
            return self._failure("get_record", e, record_id=record_id)

    def insert_claim(self, record_id: int, patient: str, insurer: str) -> Result[Claim]:
        try:
            with self._transaction() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM medical_records WHERE record_id = ?", [record_id]
                ).fetchone()
                if not exists:
                    raise StorageError(f"Record {record_id} does not exist", operation="insert_claim")
                claim = Claim(
                    claim_id=self._next_value(conn, "claim"),
                    record_id=record_id,
                    insurer=insurer,
                    status=ClaimStatus.PENDING,
                )
                conn.execute(f"""
                    INSERT INTO claims ({_CLAIM_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?)
                """, [
                    claim.claim_id,
                    claim.record_id,
                    claim.insurer,
                    claim.status.value,
                    claim.created_at,
                    None,
                ])
                conn.execute(
                    "INSERT INTO patient_claims (patient, claim_id) VALUES (?, ?)",
                    [patient, claim.claim_id]
                )
                self._log_event(
                    conn,
                    EventType.CLAIM_SUBMITTED,
                    patient,
                    str(claim.claim_id),
                    {"record_id": record_id, "insurer": insurer},
                )
            logger.debug(f"Persisted claim {claim.claim_id} on record {record_id}")
            return Result.success_result(claim)
        except Exception as e:
            return self._failure("insert_claim", e, record_id=record_id)

    def get_claim(self, claim_id: int) -> Result[Optional[Claim]]:
        try:
            with self._reader() as conn:
                row = conn.execute(
                    f"SELECT {_CLAIM_COLUMNS} FROM claims WHERE claim_id = ?",
                    [claim_id]
                ).fetchone()
                return Result.success_result(self._row_to_claim(row) if row else None)
        except Exception as e:
            return self._failure("get_claim", e, claim_id=claim_id)

    def get_latest_claim_for_record(self, record_id: int) -> Result[Optional[Claim]]:
        try:
            with self._reader() as conn:
                row = conn.execute(f"""
                    SELECT {_CLAIM_COLUMNS} FROM claims
                    WHERE record_id = ?
                    ORDER BY claim_id DESC
                    LIMIT 1
                """, [record_id]).fetchone()
                return Result.success_result(self._row_to_claim(row) if row else None)
        except Exception as e:
            return self._failure("get_latest_claim_for_record", e, record_id=record_id)

    def finalize_claim(self, claim_id: int, status: ClaimStatus, actor: str) -> Result[Optional[Claim]]:
        try:
            if not status.is_terminal:
                raise StorageError("A claim can only be finalized to a terminal status", operation="finalize_claim")
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT record_id, status FROM claims WHERE claim_id = ?", [claim_id]
                ).fetchone()
                if row is None:
                    raise StorageError(f"Claim {claim_id} does not exist", operation="finalize_claim")
                if row[1] != ClaimStatus.PENDING.value:
                    return Result.success_result(None)
                conn.execute("""
                    UPDATE claims SET status = ?, processed_at = ?
                    WHERE claim_id = ? AND status = ?
                """, [status.value, datetime.now(), claim_id, ClaimStatus.PENDING.value])
                self._log_event(
                    conn,
                    EventType.CLAIM_VALIDATED,
                    actor,
                    str(claim_id),
                    {"record_id": row[0], "status": status.value},
                )
                updated = conn.execute(
                    f"SELECT {_CLAIM_COLUMNS} FROM claims WHERE claim_id = ?", [claim_id]
                ).fetchone()
            return Result.success_result(self._row_to_claim(updated))
        except Exception as e:
            return self._failure("finalize_claim", e, claim_id=claim_id)

    def records_of(self, patient: str) -> Result[list[int]]:
        try:
            with self._reader() as conn:
                rows = conn.execute(
                    "SELECT record_id FROM patient_records WHERE patient = ? ORDER BY record_id",
                    [patient]
                ).fetchall()
                return Result.success_result([row[0] for row in rows])
        except Exception as e:
            return self._failure("records_of", e, patient=patient)

    def claims_of(self, patient: str) -> Result[list[int]]:
        try:
            with self._reader() as conn:
                rows = conn.execute(
                    "SELECT claim_id FROM patient_claims WHERE patient = ? ORDER BY claim_id",
                    [patient]
                ).fetchall()
                return Result.success_result([row[0] for row in rows])
        except Exception as e:
            return self._failure("claims_of", e, patient=patient)

    def patients_of(self, hospital: str) -> Result[list[str]]:
        try:
            with self._reader() as conn:
                rows = conn.execute(
                    "SELECT patient FROM hospital_patients WHERE hospital = ? ORDER BY first_record_id",
                    [hospital]
                ).fetchall()
                return Result.success_result([row[0] for row in rows])
        except Exception as e:
            return self._failure("patients_of", e, hospital=hospital)

    def get_events(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[EventType] = None
    ) -> Result[list[RegistryEvent]]:
        try:
            query = """
                SELECT event_id, event_type, event_timestamp, actor, entity_id, details
                FROM registry_events
            """
            params: list = []
            if event_type is not None:
                query += " WHERE event_type = ?"
                params.append(event_type.value)
            query += f" ORDER BY event_seq DESC LIMIT {int(limit)} OFFSET {int(offset)}"

            with self._reader() as conn:
                rows = conn.execute(query, params).fetchall()

            events = [
                RegistryEvent(
                    event_id=row[0],
                    event_type=EventType(row[1]),
                    event_timestamp=row[2],
                    actor=row[3],
                    entity_id=row[4],
                    details=json.loads(row[5]) if row[5] else {},
                )
                for row in rows
            ]
            return Result.success_result(events)
        except Exception as e:
            return self._failure("get_events", e)

    def get_statistics(self) -> Result[RegistryStatistics]:
        try:
            with self._reader() as conn:
                record_count = conn.execute("SELECT COUNT(*) FROM medical_records").fetchone()[0]
                claim_count = conn.execute("SELECT COUNT(*) FROM claims").fetchone()[0]
                role_rows = conn.execute(
                    "SELECT role, COUNT(*) FROM verified_identities GROUP BY role"
                ).fetchall()
                status_rows = conn.execute(
                    "SELECT status, COUNT(*) FROM claims GROUP BY status"
                ).fetchall()

            role_counts = {row[0]: row[1] for row in role_rows}
            by_status = {status.value: 0 for status in ClaimStatus}
            by_status.update({row[0]: row[1] for row in status_rows})
            return Result.success_result(RegistryStatistics(
                record_count=record_count,
                claim_count=claim_count,
                hospital_count=role_counts.get(Role.HOSPITAL.value, 0),
                insurer_count=role_counts.get(Role.INSURER.value, 0),
                claims_by_status=by_status,
            ))
        except Exception as e:
            return self._failure("get_statistics", e)

    def close(self) -> None:
        """Close storage connection and release resources."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    self._connection = None
                    self._initialized = False
                    logger.info("Closed DuckDB connection")
                except Exception as e:
                    logger.warning(f"Error closing connection: {str(e)}")
