"""Index endpoints: a patient's records and claims, a hospital's patients."""

from fastapi import APIRouter

from medclaim.api.dependencies import RegistryDep
from medclaim.api.models.registry import IdListResponse, PatientListResponse

router = APIRouter(prefix="/api", tags=["indices"])


@router.get("/patients/{patient}/records", response_model=IdListResponse)
def records_of(patient: str, registry: RegistryDep) -> IdListResponse:
    return IdListResponse(ids=registry.records_of(patient))


@router.get("/patients/{patient}/claims", response_model=IdListResponse)
def claims_of(patient: str, registry: RegistryDep) -> IdListResponse:
    return IdListResponse(ids=registry.claims_of(patient))


@router.get("/hospitals/{hospital}/patients", response_model=PatientListResponse)
def patients_of(hospital: str, registry: RegistryDep) -> PatientListResponse:
    """Distinct patients of a hospital, in order of first treatment."""
    return PatientListResponse(patients=registry.patients_of(hospital))
