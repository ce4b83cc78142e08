"""Identity endpoints: administrator, verified hospitals and insurers, roles."""

from fastapi import APIRouter

from medclaim.api.dependencies import CallerDep, RegistryDep
from medclaim.api.models.registry import (
    AdministratorResponse,
    IdentityAddedResponse,
    IdentityListResponse,
    IdentityRequest,
    RoleResponse,
)
from medclaim.domain.models import normalize_identity

router = APIRouter(prefix="/api/identities", tags=["identities"])


@router.get("/admin", response_model=AdministratorResponse)
def get_administrator(registry: RegistryDep) -> AdministratorResponse:
    return AdministratorResponse(administrator=registry.administrator)


@router.get("/hospitals", response_model=IdentityListResponse)
def list_hospitals(registry: RegistryDep) -> IdentityListResponse:
    return IdentityListResponse(identities=registry.list_hospitals())


@router.post("/hospitals", response_model=IdentityAddedResponse)
def add_hospital(body: IdentityRequest, registry: RegistryDep, caller: CallerDep) -> IdentityAddedResponse:
    """Verify a hospital. Administrator only."""
    added = registry.add_hospital(caller, body.address)
    return IdentityAddedResponse(address=normalize_identity(body.address), added=added)


@router.get("/insurers", response_model=IdentityListResponse)
def list_insurers(registry: RegistryDep) -> IdentityListResponse:
    return IdentityListResponse(identities=registry.list_insurers())


@router.post("/insurers", response_model=IdentityAddedResponse)
def add_insurer(body: IdentityRequest, registry: RegistryDep, caller: CallerDep) -> IdentityAddedResponse:
    """Verify an insurer. Administrator only."""
    added = registry.add_insurer(caller, body.address)
    return IdentityAddedResponse(address=normalize_identity(body.address), added=added)


@router.get("/{identity}/role", response_model=RoleResponse)
def resolve_role(identity: str, registry: RegistryDep) -> RoleResponse:
    """Dashboard role of an identity (admin, hospital, insurer or patient)."""
    return RoleResponse(identity=normalize_identity(identity), role=registry.resolve_role(identity))
