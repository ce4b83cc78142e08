"""In-Memory Storage Adapter.

This adapter implements the RegistryStoragePort contract with plain Python
containers guarded by one lock. It is the default for tests and for
``MC_DB_TYPE=memory``.

Architecture:
    - Implements RegistryStoragePort (Hexagonal Architecture)
    - Every method runs inside one critical section, so each mutation
      (counter, entity, indices, event) is applied as a unit
    - Index bookkeeping lives in RegistryIndex, a derived structure that
      is only written next to its primary entity
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Optional

from medclaim.domain.enums import ClaimStatus, EventType, Role
from medclaim.domain.models import (
    Claim,
    MedicalRecord,
    RegistryEvent,
    RegistryStatistics,
)
from medclaim.domain.ports import RegistryStoragePort, Result, StorageError

logger = logging.getLogger(__name__)


class RegistryIndex:
    """Derived lookups: patient -> records, patient -> claims, hospital -> patients.

    ``patients_of`` is deduplicated: a hospital that treats the same patient
    twice lists that patient once, at the position of the first treatment.
    """

    def __init__(self):
        self._patient_records: dict[str, list[int]] = {}
        self._patient_claims: dict[str, list[int]] = {}
        self._hospital_patients: dict[str, list[str]] = {}
        self._record_claims: dict[int, list[int]] = {}

    def add_record(self, record: MedicalRecord) -> None:
        self._patient_records.setdefault(record.patient, []).append(record.record_id)
        patients = self._hospital_patients.setdefault(record.hospital, [])
        if record.patient not in patients:
            patients.append(record.patient)

    def add_claim(self, claim: Claim, patient: str) -> None:
        self._patient_claims.setdefault(patient, []).append(claim.claim_id)
        self._record_claims.setdefault(claim.record_id, []).append(claim.claim_id)

    def records_of(self, patient: str) -> list[int]:
        return list(self._patient_records.get(patient, []))

    def claims_of(self, patient: str) -> list[int]:
        return list(self._patient_claims.get(patient, []))

    def patients_of(self, hospital: str) -> list[str]:
        return list(self._hospital_patients.get(hospital, []))

    def latest_claim_id(self, record_id: int) -> Optional[int]:
        claim_ids = self._record_claims.get(record_id)
        return claim_ids[-1] if claim_ids else None


class InMemoryRegistryAdapter(RegistryStoragePort):
    """Process-local registry storage.

    Example Usage:
        ```python
        adapter = InMemoryRegistryAdapter()
        registry = ClaimRegistry(adapter, administrator=admin)
        ```
    """

    backend_name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._administrator: Optional[str] = None
        self._verified: dict[Role, list[str]] = {Role.HOSPITAL: [], Role.INSURER: []}
        self._records: dict[int, MedicalRecord] = {}
        self._claims: dict[int, Claim] = {}
        self._record_counter = 0
        self._claim_counter = 0
        self._index = RegistryIndex()
        self._events: list[RegistryEvent] = []
        self._initialized = False

    @staticmethod
    def _check_role(role: Role) -> None:
        if role not in (Role.HOSPITAL, Role.INSURER):
            raise StorageError(f"No verified set for role '{role.value}'", operation="verified_set")

    def _failure(self, operation: str, error: Exception, **details: Any) -> Result:
        error_msg = f"Failed to {operation.replace('_', ' ')}: {str(error)}"
        logger.error(error_msg, exc_info=True)
        return Result.failure_result(
            StorageError(error_msg, operation=operation, details=details),
            error_type="StorageError",
            error_details={"operation": operation, **details},
        )

    @staticmethod
    def _new_event(
        event_type: EventType,
        actor: str,
        entity_id: Optional[str],
        details: Optional[dict] = None
    ) -> RegistryEvent:
        return RegistryEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            event_timestamp=datetime.now(),
            actor=actor,
            entity_id=entity_id,
            details=details or {},
        )

    def initialize_schema(self) -> Result[None]:
        self._initialized = True
        return Result.success_result(None)

    def get_administrator(self) -> Result[Optional[str]]:
        with self._lock:
            return Result.success_result(self._administrator)

    def set_administrator(self, identity: str) -> Result[None]:
        with self._lock:
            if self._administrator is not None:
                return Result.failure_result(
                    StorageError("Administrator is already set", operation="set_administrator"),
                    error_type="StorageError",
                )
            self._administrator = identity
            return Result.success_result(None)

    def add_verified(self, role: Role, identity: str, actor: str) -> Result[bool]:
        try:
            self._check_role(role)
            with self._lock:
                members = self._verified[role]
                if identity in members:
                    return Result.success_result(False)
                event_type = EventType.HOSPITAL_ADDED if role is Role.HOSPITAL else EventType.INSURER_ADDED
                event = self._new_event(event_type, actor, identity)
                members.append(identity)
                self._events.append(event)
                return Result.success_result(True)
        except Exception as e:
            return self._failure("add_verified", e, role=role.value)

    def is_verified(self, role: Role, identity: str) -> Result[bool]:
        try:
            self._check_role(role)
            with self._lock:
                return Result.success_result(identity in self._verified[role])
        except Exception as e:
            return self._failure("is_verified", e, role=role.value)

    def list_verified(self, role: Role) -> Result[list[str]]:
        try:
            self._check_role(role)
            with self._lock:
                return Result.success_result(list(self._verified[role]))
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
            with self._lock:
                # Build everything before touching state so a failure leaves
                # the counter untouched.
                record = MedicalRecord(
                    record_id=self._record_counter + 1,
                    patient=patient,
                    hospital=hospital,
                    content_ref=content_ref,
                    cost=cost,
                )
                event = self._new_event(
                    EventType.RECORD_SUBMITTED,
                    hospital,
                    str(record.record_id),
                    {"patient": patient, "cost": cost},
                )
                self._record_counter = record.record_id
                self._records[record.record_id] = record
                self._index.add_record(record)
                self._events.append(event)
                return Result.success_result(record)
        except Exception as e:
            return self._failure("insert_record", e, patient=patient)

    def get_record(self, record_id: int) -> Result[Optional[MedicalRecord]]:
        with self._lock:
            return Result.success_result(self._records.get(record_id))

    def insert_claim(self, record_id: int, patient: str, insurer: str) -> Result[Claim]:
        try:
            with self._lock:
                if record_id not in self._records:
                    raise StorageError(f"Record {record_id} does not exist", operation="insert_claim")
                claim = Claim(
                    claim_id=self._claim_counter + 1,
                    record_id=record_id,
                    insurer=insurer,
                    status=ClaimStatus.PENDING,
                )
                event = self._new_event(
                    EventType.CLAIM_SUBMITTED,
                    patient,
                    str(claim.claim_id),
                    {"record_id": record_id, "insurer": insurer},
                )
                self._claim_counter = claim.claim_id
                self._claims[claim.claim_id] = claim
                self._index.add_claim(claim, patient)
                self._events.append(event)
                return Result.success_result(claim)
        except Exception as e:
            return self._failure("insert_claim", e, record_id=record_id)

    def get_claim(self, claim_id: int) -> Result[Optional[Claim]]:
        with self._lock:
            return Result.success_result(self._claims.get(claim_id))

    def get_latest_claim_for_record(self, record_id: int) -> Result[Optional[Claim]]:
        with self._lock:
            claim_id = self._index.latest_claim_id(record_id)
            return Result.success_result(self._claims.get(claim_id) if claim_id else None)

    def finalize_claim(self, claim_id: int, status: ClaimStatus, actor: str) -> Result[Optional[Claim]]:
        try:
            if not status.is_terminal:
                raise StorageError("A claim can only be finalized to a terminal status", operation="finalize_claim")
            with self._lock:
                claim = self._claims.get(claim_id)
                if claim is None:
                    raise StorageError(f"Claim {claim_id} does not exist", operation="finalize_claim")
                if not claim.is_pending:
                    return Result.success_result(None)
                updated = claim.model_copy(update={"status": status, "processed_at": datetime.now()})
                event = self._new_event(
                    EventType.CLAIM_VALIDATED,
                    actor,
                    str(claim_id),
                    {"record_id": claim.record_id, "status": status.value},
                )
                self._claims[claim_id] = updated
                self._events.append(event)
                return Result.success_result(updated)
        except Exception as e:
            return self._failure("finalize_claim", e, claim_id=claim_id)

    def records_of(self, patient: str) -> Result[list[int]]:
        with self._lock:
            return Result.success_result(self._index.records_of(patient))

    def claims_of(self, patient: str) -> Result[list[int]]:
        with self._lock:
            return Result.success_result(self._index.claims_of(patient))

    def patients_of(self, hospital: str) -> Result[list[str]]:
        with self._lock:
            return Result.success_result(self._index.patients_of(hospital))

    def get_events(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[EventType] = None
    ) -> Result[list[RegistryEvent]]:
        with self._lock:
            events = [
                event for event in reversed(self._events)
                if event_type is None or event.event_type == event_type
            ]
            return Result.success_result(events[offset:offset + limit])

    def get_statistics(self) -> Result[RegistryStatistics]:
        with self._lock:
            by_status = {status.value: 0 for status in ClaimStatus}
            for claim in self._claims.values():
                by_status[claim.status.value] += 1
            return Result.success_result(RegistryStatistics(
                record_count=len(self._records),
                claim_count=len(self._claims),
                hospital_count=len(self._verified[Role.HOSPITAL]),
                insurer_count=len(self._verified[Role.INSURER]),
                claims_by_status=by_status,
            ))
