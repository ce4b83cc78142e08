"""Record Store - creation and retrieval of medical records.

Security Impact:
    - Only verified hospitals can create records
    - Records are immutable once created: there is no update or delete
    - The submitting hospital is always the caller, never an argument
"""

import logging
import threading
from typing import Any

from medclaim.domain.models import MAX_COST, MedicalRecord, is_null_identity, normalize_identity
from medclaim.domain.ports import (
    InvalidInputError,
    NotFoundError,
    RegistryStoragePort,
    UnauthorizedError,
)
from medclaim.domain.services.base import RegistryService
from medclaim.domain.services.identity_registry import IdentityRegistry

logger = logging.getLogger(__name__)


def coerce_id(value: Any) -> int:
    """Interpret a record or claim id; anything unusable maps to 0 (absent)."""
    if isinstance(value, bool):
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return number if number > 0 else 0


class RecordStore(RegistryService):
    """Medical record creation and lookup."""

    def __init__(
        self,
        storage: RegistryStoragePort,
        lock: threading.RLock,
        identities: IdentityRegistry
    ):
        super().__init__(storage, lock)
        self.identities = identities

    def submit_medical_record(self, caller: str, patient: str, content_ref: str, cost: int) -> int:
        """Create a record for ``patient`` on behalf of hospital ``caller``.

        Parameters:
            caller: Submitting identity (must be a verified hospital)
            patient: Patient identity (must not be null)
            content_ref: Reference to the uploaded clinical payload, stored verbatim
            cost: Non-negative integer treatment cost

        Returns:
            The newly assigned record id

        Raises:
            UnauthorizedError: Caller is not a verified hospital
            InvalidInputError: Null patient, empty content reference, bad cost,
                or the per-patient record limit is reached
        """
        with self._lock:
            hospital = normalize_identity(caller)
            if not self.identities.is_hospital(hospital):
                logger.warning(f"Rejected record submission from unverified caller {hospital!r}")
                raise UnauthorizedError(
                    "Caller is not a verified hospital.",
                    details={"caller": hospital},
                )

            patient_id = normalize_identity(patient)
            if is_null_identity(patient_id):
                raise InvalidInputError("Patient identity must not be empty or the zero address.")
            if not isinstance(content_ref, str) or not content_ref.strip():
                raise InvalidInputError("Content reference must not be empty.")
            if isinstance(cost, bool) or not isinstance(cost, int):
                raise InvalidInputError(f"Cost must be an integer amount. Got: {cost!r}")
            if cost < 0:
                raise InvalidInputError(f"Cost must not be negative. Got: {cost}")
            if cost > MAX_COST:
                raise InvalidInputError("Cost exceeds the maximum unsigned 256-bit amount.")

            limit = self.identities.policy.max_records_per_patient
            if limit is not None:
                existing = self._unwrap(self.storage.records_of(patient_id), "records_of")
                if len(existing) >= limit:
                    raise InvalidInputError(
                        f"Patient {patient_id} already has the maximum of {limit} records.",
                        details={"patient": patient_id, "limit": limit},
                    )

            record = self._unwrap(
                self.storage.insert_record(patient_id, hospital, content_ref, cost),
                "insert_record",
            )
            logger.info(
                f"Record {record.record_id} submitted by hospital {hospital} for patient {patient_id}"
            )
            return record.record_id

    def get_record(self, record_id: int) -> MedicalRecord:
        """Fetch a record.

        Raises:
            NotFoundError: Id is 0, negative, or not yet assigned
        """
        number = coerce_id(record_id)
        record = None
        if number:
            record = self._unwrap(self.storage.get_record(number), "get_record")
        if record is None:
            raise NotFoundError("Record not found.", details={"record_id": record_id})
        return record
