"""Dependency injection for the registry API.

The registry and the content-store client are built once per process and
shared by every request. Tests replace them through
``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from medclaim.domain.registry import ClaimRegistry
from medclaim.infrastructure.content_store import ContentStoreClient
from medclaim.infrastructure.settings import settings
from medclaim.main import create_registry

logger = logging.getLogger(__name__)


@lru_cache()
def get_registry() -> ClaimRegistry:
    """Get the registry instance (cached).

    Raises:
        InvalidInputError: No administrator configured for a fresh store
        StorageError: Storage could not be initialized
    """
    logger.debug(f"Creating registry on {settings.db_config.db_type} storage")
    return create_registry()


@lru_cache()
def get_content_store() -> ContentStoreClient:
    return ContentStoreClient(settings.content_store_config)


def get_caller(x_caller: Annotated[Optional[str], Header()] = None) -> str:
    """Identity performing the request, taken from the ``X-Caller`` header.

    A missing header is the empty identity, which holds no role.
    """
    return x_caller or ""


# Type aliases for dependency injection
RegistryDep = Annotated[ClaimRegistry, Depends(get_registry)]
ContentStoreDep = Annotated[ContentStoreClient, Depends(get_content_store)]
CallerDep = Annotated[str, Depends(get_caller)]
