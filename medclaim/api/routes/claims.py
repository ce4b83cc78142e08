"""Claim endpoints: submission, lookup and validation."""

from fastapi import APIRouter, status

from medclaim.api.dependencies import CallerDep, RegistryDep
from medclaim.api.models.registry import (
    ClaimStatusResponse,
    ClaimSubmitRequest,
    ClaimSubmitResponse,
    ValidateClaimRequest,
)
from medclaim.domain.models import Claim

router = APIRouter(prefix="/api/claims", tags=["claims"])


@router.post("", response_model=ClaimSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_claim(body: ClaimSubmitRequest, registry: RegistryDep, caller: CallerDep) -> ClaimSubmitResponse:
    """Open a claim on a record. The caller must be the record's patient."""
    claim_id = registry.submit_claim(caller, body.record_id, body.insurer)
    return ClaimSubmitResponse(claim_id=claim_id)


@router.get("/{claim_id}", response_model=Claim)
def get_claim(claim_id: int, registry: RegistryDep) -> Claim:
    return registry.get_claim(claim_id)


@router.get("/{claim_id}/status", response_model=ClaimStatusResponse)
def get_claim_status(claim_id: int, registry: RegistryDep) -> ClaimStatusResponse:
    return ClaimStatusResponse.of(claim_id, registry.get_claim_status(claim_id))


@router.post("/{claim_id}/validate", response_model=ClaimStatusResponse)
def validate_claim(
    claim_id: int,
    body: ValidateClaimRequest,
    registry: RegistryDep,
    caller: CallerDep
) -> ClaimStatusResponse:
    """Approve or reject a pending claim. The caller must be the claim's insurer."""
    new_status = registry.validate_claim(caller, claim_id, body.approve)
    return ClaimStatusResponse.of(claim_id, new_status)
