"""API Pydantic models."""

from medclaim.api.models.health import HealthResponse, StorageHealth
from medclaim.api.models.registry import (
    AdministratorResponse,
    ClaimStatusResponse,
    ClaimSubmitRequest,
    ClaimSubmitResponse,
    EventsResponse,
    IdentityAddedResponse,
    IdentityListResponse,
    IdentityRequest,
    IdListResponse,
    NOT_CLAIMED,
    PatientListResponse,
    RecordDetailsResponse,
    RecordSubmitRequest,
    RecordSubmitResponse,
    RoleResponse,
    UploadRequest,
    UploadResponse,
    ValidateClaimRequest,
)

__all__ = [
    "AdministratorResponse",
    "ClaimStatusResponse",
    "ClaimSubmitRequest",
    "ClaimSubmitResponse",
    "EventsResponse",
    "HealthResponse",
    "IdentityAddedResponse",
    "IdentityListResponse",
    "IdentityRequest",
    "IdListResponse",
    "NOT_CLAIMED",
    "PatientListResponse",
    "RecordDetailsResponse",
    "RecordSubmitRequest",
    "RecordSubmitResponse",
    "RoleResponse",
    "StorageHealth",
    "UploadRequest",
    "UploadResponse",
    "ValidateClaimRequest",
]
