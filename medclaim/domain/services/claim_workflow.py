"""Claim Workflow - the registry's only state machine.

Claims are created ``pending`` against an existing record and move exactly
once to ``approved`` or ``rejected``::

    pending --approve(True)--> approved
    pending --approve(False)--> rejected

Both outcomes are terminal. Any later validation fails with
AlreadyProcessedError.

Security Impact:
    - Only the record's patient can claim against it
    - Only the insurer named on the claim can validate it
    - The pending check and the status write are one conditional storage
      write, so concurrent validations produce exactly one winner
"""

import logging
import threading
from typing import Optional

from medclaim.domain.enums import ClaimStatus
from medclaim.domain.models import Claim, RecordClaimView, normalize_identity
from medclaim.domain.ports import (
    AlreadyProcessedError,
    InvalidInputError,
    NotFoundError,
    RegistryStoragePort,
    UnauthorizedError,
)
from medclaim.domain.services.base import RegistryService
from medclaim.domain.services.identity_registry import IdentityRegistry
from medclaim.domain.services.record_store import RecordStore, coerce_id

logger = logging.getLogger(__name__)


class ClaimWorkflow(RegistryService):
    """Claim submission and validation."""

    def __init__(
        self,
        storage: RegistryStoragePort,
        lock: threading.RLock,
        identities: IdentityRegistry,
        records: RecordStore
    ):
        super().__init__(storage, lock)
        self.identities = identities
        self.records = records

    def submit_claim(self, caller: str, record_id: int, insurer: str) -> int:
        """Open a pending claim on ``record_id`` addressed to ``insurer``.

        Checks run in this order: the record must exist, the caller must be
        its patient, and the insurer must be verified.

        Returns:
            The newly assigned claim id

        Raises:
            NotFoundError: Record does not exist
            UnauthorizedError: Caller is not the record's patient
            InvalidInputError: Insurer is not a verified insurer
        """
        with self._lock:
            record = self.records.get_record(record_id)

            caller_id = normalize_identity(caller)
            if caller_id != record.patient:
                logger.warning(
                    f"Rejected claim on record {record.record_id} from non-owner {caller_id!r}"
                )
                raise UnauthorizedError(
                    "Not the data owner.",
                    details={"record_id": record.record_id, "caller": caller_id},
                )

            insurer_id = normalize_identity(insurer)
            if not self.identities.is_insurer(insurer_id):
                raise InvalidInputError(
                    "Insurer is not a verified insurance party.",
                    details={"insurer": insurer_id},
                )

            claim = self._unwrap(
                self.storage.insert_claim(record.record_id, record.patient, insurer_id),
                "insert_claim",
            )
            logger.info(
                f"Claim {claim.claim_id} submitted on record {record.record_id} to insurer {insurer_id}"
            )
            return claim.claim_id

    def validate_claim(self, caller: str, claim_id: int, approve: bool) -> ClaimStatus:
        """Approve or reject a pending claim.

        Returns:
            The terminal status written

        Raises:
            NotFoundError: Claim does not exist
            UnauthorizedError: Caller is not the claim's insurer
            AlreadyProcessedError: Claim is no longer pending
        """
        with self._lock:
            claim = self.get_claim(claim_id)

            caller_id = normalize_identity(caller)
            if caller_id != claim.insurer:
                logger.warning(f"Rejected validation of claim {claim.claim_id} from {caller_id!r}")
                raise UnauthorizedError(
                    "Not the insurance party.",
                    details={"claim_id": claim.claim_id, "caller": caller_id},
                )

            if not claim.is_pending:
                raise AlreadyProcessedError(
                    "Claim already processed.",
                    details={"claim_id": claim.claim_id, "status": claim.status.value},
                )

            target = ClaimStatus.APPROVED if approve else ClaimStatus.REJECTED
            updated = self._unwrap(
                self.storage.finalize_claim(claim.claim_id, target, actor=caller_id),
                "finalize_claim",
            )
            if updated is None:
                # Another writer sharing the store finalized it first.
                raise AlreadyProcessedError(
                    "Claim already processed.",
                    details={"claim_id": claim.claim_id},
                )
            logger.info(f"Claim {claim.claim_id} {updated.status.value} by insurer {caller_id}")
            return updated.status

    def get_claim(self, claim_id: int) -> Claim:
        """Fetch a claim.

        Raises:
            NotFoundError: Id is 0, negative, or not yet assigned
        """
        number = coerce_id(claim_id)
        claim = None
        if number:
            claim = self._unwrap(self.storage.get_claim(number), "get_claim")
        if claim is None:
            raise NotFoundError("Claim not found.", details={"claim_id": claim_id})
        return claim

    def get_claim_status(self, claim_id: int) -> ClaimStatus:
        return self.get_claim(claim_id).status

    def get_record_and_claim_details(self, record_id: int) -> RecordClaimView:
        """Join a record with the latest claim referencing it (read-only)."""
        with self._lock:
            record = self.records.get_record(record_id)
            latest: Optional[Claim] = self._unwrap(
                self.storage.get_latest_claim_for_record(record.record_id),
                "get_latest_claim_for_record",
            )
            return RecordClaimView.compose(record, latest)
