"""Claim Registry - the explicitly owned registry state object.

The registry is constructed once around a storage adapter and passed by
reference to every caller (API, CLI, tests). There is no process-wide
singleton inside the domain.

Security Impact:
    - A single re-entrant write lock serializes every mutation into one
      total order
    - Every operation validates all preconditions before any state change
    - Adapters apply each mutation atomically, so a rejection or crash
      never leaves a counter incremented without its entity

Architecture:
    - Composes IdentityRegistry, RecordStore, ClaimWorkflow and QueryFacade
    - Depends only on the RegistryStoragePort abstraction
    - Roles are data (set membership and owner fields), checked by plain
      conditionals in the services

Example Usage:
    ```python
    storage = InMemoryRegistryAdapter()
    registry = ClaimRegistry(storage, administrator="0xadmin...")
    registry.add_hospital(admin, hospital)
    registry.add_insurer(admin, insurer)
    record_id = registry.submit_medical_record(hospital, patient, "bafy...", 1000)
    claim_id = registry.submit_claim(patient, record_id, insurer)
    registry.validate_claim(insurer, claim_id, approve=True)
    assert registry.get_claim_status(claim_id) is ClaimStatus.APPROVED
    ```
"""

import logging
import threading
from typing import Optional

from medclaim.domain.enums import ClaimStatus, EventType, Role
from medclaim.domain.models import (
    Claim,
    MedicalRecord,
    RecordClaimView,
    RegistryEvent,
    RegistryStatistics,
)
from medclaim.domain.policy import RegistryPolicy
from medclaim.domain.ports import RegistryStoragePort, StorageError
from medclaim.domain.services import (
    ClaimWorkflow,
    IdentityRegistry,
    QueryFacade,
    RecordStore,
)

logger = logging.getLogger(__name__)


class ClaimRegistry:
    """Record/claim registry with role-based authorization.

    Parameters:
        storage: Storage adapter implementing RegistryStoragePort
        administrator: Administrator identity; required for a fresh store,
            optional (but must match) for a store that already has one
        policy: Duplicate-verification and record-limit policy

    Raises:
        StorageError: Schema initialization failed
        InvalidInputError: Missing or mismatched administrator
    """

    def __init__(
        self,
        storage: RegistryStoragePort,
        administrator: Optional[str] = None,
        policy: Optional[RegistryPolicy] = None
    ):
        self.storage = storage
        self.policy = policy or RegistryPolicy()
        self._lock = threading.RLock()

        init_result = storage.initialize_schema()
        if not init_result.is_success():
            raise StorageError(
                f"Failed to initialize registry storage: {init_result.error}",
                operation="initialize_schema",
            )

        self.identities = IdentityRegistry(storage, self._lock, self.policy)
        self.records = RecordStore(storage, self._lock, self.identities)
        self.claims = ClaimWorkflow(storage, self._lock, self.identities, self.records)
        self.queries = QueryFacade(storage, self._lock, self.identities, self.records, self.claims)

        self.identities.bootstrap(administrator)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_hospital(self, caller: str, address: str) -> bool:
        return self.identities.add_hospital(caller, address)

    def add_insurer(self, caller: str, address: str) -> bool:
        return self.identities.add_insurer(caller, address)

    # Dashboard clients call this operation addInsurance.
    add_insurance = add_insurer

    def submit_medical_record(self, caller: str, patient: str, content_ref: str, cost: int) -> int:
        return self.records.submit_medical_record(caller, patient, content_ref, cost)

    def submit_claim(self, caller: str, record_id: int, insurer: str) -> int:
        return self.claims.submit_claim(caller, record_id, insurer)

    def validate_claim(self, caller: str, claim_id: int, approve: bool) -> ClaimStatus:
        return self.claims.validate_claim(caller, claim_id, approve)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def administrator(self) -> str:
        return self.queries.administrator

    def is_hospital(self, address: str) -> bool:
        return self.queries.is_hospital(address)

    def is_insurer(self, address: str) -> bool:
        return self.queries.is_insurer(address)

    def list_hospitals(self) -> list[str]:
        return self.queries.list_hospitals()

    def list_insurers(self) -> list[str]:
        return self.queries.list_insurers()

    def get_record(self, record_id: int) -> MedicalRecord:
        return self.queries.get_record(record_id)

    def get_claim(self, claim_id: int) -> Claim:
        return self.queries.get_claim(claim_id)

    def get_claim_status(self, claim_id: int) -> ClaimStatus:
        return self.queries.get_claim_status(claim_id)

    def get_record_and_claim_details(self, record_id: int) -> RecordClaimView:
        return self.queries.get_record_and_claim_details(record_id)

    def records_of(self, patient: str) -> list[int]:
        return self.queries.records_of(patient)

    def claims_of(self, patient: str) -> list[int]:
        return self.queries.claims_of(patient)

    def patients_of(self, hospital: str) -> list[str]:
        return self.queries.patients_of(hospital)

    def resolve_role(self, identity: str) -> Role:
        return self.queries.resolve_role(identity)

    def get_events(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[EventType] = None
    ) -> list[RegistryEvent]:
        return self.queries.get_events(limit=limit, offset=offset, event_type=event_type)

    def statistics(self) -> RegistryStatistics:
        return self.queries.statistics()

    def close(self) -> None:
        """Close the underlying storage adapter."""
        self.storage.close()
