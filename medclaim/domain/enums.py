"""Domain enumerations for the claim registry."""

from enum import Enum


class ClaimStatus(str, Enum):
    """Lifecycle status of a claim.

    A claim is created ``PENDING`` and moves exactly once to ``APPROVED`` or
    ``REJECTED``. Both of those are terminal.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def code(self) -> int:
        """Numeric status code (0 pending, 1 approved, 2 rejected)."""
        return _STATUS_CODES[self]

    @property
    def is_terminal(self) -> bool:
        return self is not ClaimStatus.PENDING


_STATUS_CODES = {
    ClaimStatus.PENDING: 0,
    ClaimStatus.APPROVED: 1,
    ClaimStatus.REJECTED: 2,
}


class Role(str, Enum):
    """Role an identity plays in the registry."""
    ADMIN = "admin"
    HOSPITAL = "hospital"
    INSURER = "insurer"
    PATIENT = "patient"


class EventType(str, Enum):
    """Audit trail event types, one per successful mutation."""
    HOSPITAL_ADDED = "HOSPITAL_ADDED"
    INSURER_ADDED = "INSURER_ADDED"
    RECORD_SUBMITTED = "RECORD_SUBMITTED"
    CLAIM_SUBMITTED = "CLAIM_SUBMITTED"
    CLAIM_VALIDATED = "CLAIM_VALIDATED"
