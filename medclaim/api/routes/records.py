"""Medical record endpoints."""

from fastapi import APIRouter, status

from medclaim.api.dependencies import CallerDep, RegistryDep
from medclaim.api.models.registry import (
    RecordDetailsResponse,
    RecordSubmitRequest,
    RecordSubmitResponse,
)
from medclaim.domain.models import MedicalRecord

router = APIRouter(prefix="/api/records", tags=["records"])


@router.post("", response_model=RecordSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_medical_record(
    body: RecordSubmitRequest,
    registry: RegistryDep,
    caller: CallerDep
) -> RecordSubmitResponse:
    """Submit a medical record. The caller must be a verified hospital."""
    record_id = registry.submit_medical_record(caller, body.patient, body.content_ref, body.cost)
    return RecordSubmitResponse(record_id=record_id)


@router.get("/{record_id}", response_model=MedicalRecord)
def get_record(record_id: int, registry: RegistryDep) -> MedicalRecord:
    return registry.get_record(record_id)


@router.get("/{record_id}/details", response_model=RecordDetailsResponse)
def get_record_and_claim_details(record_id: int, registry: RegistryDep) -> RecordDetailsResponse:
    """Record joined with its latest claim; an unclaimed record reports ``not_claimed``."""
    return RecordDetailsResponse.from_view(registry.get_record_and_claim_details(record_id))
