"""Registry Entity Definitions.

This module defines the canonical entities held by the claim registry:
medical records, claims, the record/claim join view, and audit events.

Security Impact:
    - Records and claims are immutable value objects (frozen models)
    - Only a content reference is kept, never clinical document bytes
    - Identity fields are normalised so role checks compare like with like

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Storage adapters construct these models from their own row formats
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medclaim.domain.enums import ClaimStatus, EventType

ZERO_IDENTITY = "0x" + "0" * 40
# Costs are unsigned 256-bit amounts.
MAX_COST = 2 ** 256 - 1

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_identity(value: Optional[Any]) -> str:
    """Normalise an identity for storage and comparison.

    Wallet-style addresses (``0x`` followed by 40 hex digits) compare
    case-insensitively and are lower-cased. Anything else is an opaque
    identity, trimmed of surrounding whitespace and otherwise kept verbatim.

    Parameters:
        value: Raw identity (may be None)

    Returns:
        Normalised identity string (empty string for None)
    """
    if value is None:
        return ""
    text = str(value).strip()
    if _HEX_ADDRESS.match(text):
        return text.lower()
    return text


def is_null_identity(value: Optional[Any]) -> bool:
    """Check whether an identity is empty or the all-zero address."""
    normalized = normalize_identity(value)
    return not normalized or normalized == ZERO_IDENTITY


def _require_identity(value: str) -> str:
    normalized = normalize_identity(value)
    if is_null_identity(normalized):
        raise ValueError("Identity must not be empty or the zero address")
    return normalized


class MedicalRecord(BaseModel):
    """One treatment event for one patient, created by one hospital.

    Parameters:
        record_id: Registry-assigned identifier (>= 1)
        patient: Identity owning the record for authorization purposes
        hospital: Verified hospital that submitted the record
        content_ref: Opaque reference to off-registry content (e.g. an IPFS CID)
        cost: Treatment cost as a non-negative integer amount
        created_at: Submission timestamp
    """
    model_config = ConfigDict(frozen=True)

    record_id: int = Field(..., ge=1, description="Record identifier")
    patient: str = Field(..., description="Patient identity")
    hospital: str = Field(..., description="Submitting hospital identity")
    content_ref: str = Field(..., min_length=1, description="Content reference")
    cost: int = Field(..., ge=0, le=MAX_COST, description="Treatment cost")
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("patient", "hospital")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        return _require_identity(v)


class Claim(BaseModel):
    """A reimbursement request by a record's patient to one named insurer.

    Parameters:
        claim_id: Registry-assigned identifier (>= 1)
        record_id: Record the claim refers to
        insurer: Verified insurer asked to validate the claim
        status: Current lifecycle status
        created_at: Submission timestamp
        processed_at: When the claim left ``pending`` (None while pending)
    """
    model_config = ConfigDict(frozen=True)

    claim_id: int = Field(..., ge=1, description="Claim identifier")
    record_id: int = Field(..., ge=1, description="Referenced record identifier")
    insurer: str = Field(..., description="Insurer identity")
    status: ClaimStatus = Field(default=ClaimStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.now)
    processed_at: Optional[datetime] = None

    @field_validator("insurer")
    @classmethod
    def validate_insurer(cls, v: str) -> str:
        return _require_identity(v)

    @property
    def is_pending(self) -> bool:
        return self.status is ClaimStatus.PENDING


class RecordClaimView(BaseModel):
    """Read-only join of a record with the latest claim referencing it.

    ``claim_status`` is None when no claim references the record
    ("not claimed"); that is a property of the view, not a claim state.
    """
    model_config = ConfigDict(frozen=True)

    record_id: int
    patient: str
    hospital: str
    content_ref: str
    cost: int
    claim_id: Optional[int] = None
    claim_status: Optional[ClaimStatus] = None
    insurer: Optional[str] = None

    @property
    def is_claimed(self) -> bool:
        return self.claim_status is not None

    @classmethod
    def compose(cls, record: MedicalRecord, claim: Optional[Claim]) -> "RecordClaimView":
        return cls(
            record_id=record.record_id,
            patient=record.patient,
            hospital=record.hospital,
            content_ref=record.content_ref,
            cost=record.cost,
            claim_id=claim.claim_id if claim else None,
            claim_status=claim.status if claim else None,
            insurer=claim.insurer if claim else None,
        )


class RegistryEvent(BaseModel):
    """Append-only audit entry written with the mutation it describes."""
    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: EventType
    event_timestamp: datetime
    actor: str
    entity_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)


class RegistryStatistics(BaseModel):
    """Dashboard counters."""
    record_count: int = 0
    claim_count: int = 0
    hospital_count: int = 0
    insurer_count: int = 0
    claims_by_status: dict[str, int] = Field(default_factory=dict)
