"""Health check endpoint for the registry API."""

import logging
import time

from fastapi import APIRouter

from medclaim.api.dependencies import RegistryDep
from medclaim.api.models.health import HealthResponse, StorageHealth
from medclaim.domain.registry import ClaimRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


def check_storage_health(registry: ClaimRegistry) -> StorageHealth:
    """Check storage connectivity by reading the registry counters.

    Security Impact:
        - Only checks connectivity, no registry contents are exposed
    """
    storage_type = getattr(registry.storage, "backend_name", "unknown")
    start_time = time.time()
    try:
        registry.statistics()
    except Exception as e:
        logger.warning(f"Storage health check failed: {str(e)}")
        return StorageHealth(status="disconnected", type=storage_type, response_time_ms=None)

    response_time = (time.time() - start_time) * 1000
    return StorageHealth(
        status="connected",
        type=storage_type,
        response_time_ms=round(response_time, 2),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(registry: RegistryDep) -> HealthResponse:
    """Health check endpoint.

    Returns "healthy" when storage answers and "unhealthy" otherwise.
    """
    storage = check_storage_health(registry)
    status = "healthy" if storage.status == "connected" else "unhealthy"
    return HealthResponse(status=status, storage=storage)
