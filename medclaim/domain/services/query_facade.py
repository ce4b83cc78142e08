"""Query Facade - read-only composition for dashboards and services.

Never mutates. Composite reads hold the registry lock so they observe one
consistent snapshot and never a half-applied mutation.
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
    normalize_identity,
)
from medclaim.domain.ports import RegistryStoragePort
from medclaim.domain.services.base import RegistryService
from medclaim.domain.services.claim_workflow import ClaimWorkflow
from medclaim.domain.services.identity_registry import IdentityRegistry
from medclaim.domain.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class QueryFacade(RegistryService):
    """Read-only accessors over identities, records, claims and indices."""

    def __init__(
        self,
        storage: RegistryStoragePort,
        lock: threading.RLock,
        identities: IdentityRegistry,
        records: RecordStore,
        claims: ClaimWorkflow
    ):
        super().__init__(storage, lock)
        self.identities = identities
        self.records = records
        self.claims = claims

    @property
    def administrator(self) -> str:
        return self.identities.administrator

    def is_hospital(self, address: str) -> bool:
        return self.identities.is_hospital(address)

    def is_insurer(self, address: str) -> bool:
        return self.identities.is_insurer(address)

    def list_hospitals(self) -> list[str]:
        return self.identities.list_hospitals()

    def list_insurers(self) -> list[str]:
        return self.identities.list_insurers()

    def get_record(self, record_id: int) -> MedicalRecord:
        return self.records.get_record(record_id)

    def get_claim(self, claim_id: int) -> Claim:
        return self.claims.get_claim(claim_id)

    def get_claim_status(self, claim_id: int) -> ClaimStatus:
        return self.claims.get_claim_status(claim_id)

    def get_record_and_claim_details(self, record_id: int) -> RecordClaimView:
        return self.claims.get_record_and_claim_details(record_id)

    def records_of(self, patient: str) -> list[int]:
        return self._unwrap(self.storage.records_of(normalize_identity(patient)), "records_of")

    def claims_of(self, patient: str) -> list[int]:
        return self._unwrap(self.storage.claims_of(normalize_identity(patient)), "claims_of")

    def patients_of(self, hospital: str) -> list[str]:
        return self._unwrap(self.storage.patients_of(normalize_identity(hospital)), "patients_of")

    def resolve_role(self, identity: str) -> Role:
        """Dashboard role of an identity.

        Precedence: administrator, then verified hospital, then verified
        insurer; everyone else is a patient.
        """
        with self._lock:
            if self.identities.is_administrator(identity):
                return Role.ADMIN
            if self.identities.is_hospital(identity):
                return Role.HOSPITAL
            if self.identities.is_insurer(identity):
                return Role.INSURER
            return Role.PATIENT

    def get_events(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[EventType] = None
    ) -> list[RegistryEvent]:
        return self._unwrap(
            self.storage.get_events(limit=limit, offset=offset, event_type=event_type),
            "get_events",
        )

    def statistics(self) -> RegistryStatistics:
        with self._lock:
            return self._unwrap(self.storage.get_statistics(), "get_statistics")
