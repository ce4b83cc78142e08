"""Domain layer for the MedClaim registry.

This module contains the registry entities, the storage port and the
services implementing authorization and the claim state machine.
All domain models are pure Python with no external dependencies beyond Pydantic.
"""

from .enums import ClaimStatus, EventType, Role
from .models import (
    Claim,
    MedicalRecord,
    RecordClaimView,
    RegistryEvent,
    RegistryStatistics,
)
from .policy import RegistryPolicy
from .registry import ClaimRegistry

__all__ = [
    "ClaimStatus",
    "EventType",
    "Role",
    "Claim",
    "MedicalRecord",
    "RecordClaimView",
    "RegistryEvent",
    "RegistryStatistics",
    "RegistryPolicy",
    "ClaimRegistry",
]
