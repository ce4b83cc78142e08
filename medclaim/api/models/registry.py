"""Request and response models for the registry endpoints.

Entities (records, claims, events and statistics)
are returned as the domain models themselves; this module only holds the
request bodies, the small wrapper responses and the record details view.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from medclaim.domain.enums import ClaimStatus, Role
from medclaim.domain.models import RecordClaimView, RegistryEvent

NOT_CLAIMED = "not_claimed"


class IdentityRequest(BaseModel):
    address: str = Field(..., description="Identity to verify")


class IdentityAddedResponse(BaseModel):
    """``added`` is False when the identity was already verified."""
    address: str
    added: bool


class IdentityListResponse(BaseModel):
    identities: list[str]


class AdministratorResponse(BaseModel):
    administrator: str


class RoleResponse(BaseModel):
    identity: str
    role: Role


class RecordSubmitRequest(BaseModel):
    patient: str
    content_ref: str = Field(..., description="Reference returned by the content store")
    cost: int = Field(..., description="Treatment cost (non-negative integer)")


class RecordSubmitResponse(BaseModel):
    record_id: int


class RecordDetailsResponse(BaseModel):
    """Record joined with its latest claim.

    ``claim_status`` is ``not_claimed`` when no claim references the record;
    ``claim_id`` and ``insurer`` are null in that case.
    """
    record_id: int
    patient: str
    hospital: str
    content_ref: str
    cost: int
    claim_id: Optional[int] = None
    claim_status: str = Field(..., description="Claim status, or 'not_claimed'")
    insurer: Optional[str] = None

    @classmethod
    def from_view(cls, view: RecordClaimView) -> "RecordDetailsResponse":
        return cls(
            record_id=view.record_id,
            patient=view.patient,
            hospital=view.hospital,
            content_ref=view.content_ref,
            cost=view.cost,
            claim_id=view.claim_id,
            claim_status=view.claim_status.value if view.is_claimed else NOT_CLAIMED,
            insurer=view.insurer,
        )


class ClaimSubmitRequest(BaseModel):
    record_id: int
    insurer: str


class ClaimSubmitResponse(BaseModel):
    claim_id: int


class ValidateClaimRequest(BaseModel):
    approve: bool


class ClaimStatusResponse(BaseModel):
    """Claim status with its numeric code (0 pending, 1 approved, 2 rejected)."""
    claim_id: int
    status: ClaimStatus
    code: int

    @classmethod
    def of(cls, claim_id: int, status: ClaimStatus) -> "ClaimStatusResponse":
        return cls(claim_id=claim_id, status=status, code=status.code)


class IdListResponse(BaseModel):
    ids: list[int]


class PatientListResponse(BaseModel):
    patients: list[str]


class EventsResponse(BaseModel):
    events: list[RegistryEvent]
    limit: int
    offset: int


class UploadRequest(BaseModel):
    content: Any = None
    metadata: Optional[dict[str, Any]] = None


class UploadResponse(BaseModel):
    content_ref: str
