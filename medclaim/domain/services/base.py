"""Shared plumbing for registry services."""

import logging
import threading
from typing import TypeVar

from medclaim.domain.ports import RegistryStoragePort, Result, StorageError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RegistryService:
    """Base class holding the storage adapter and the registry write lock.

    Parameters:
        storage: Storage adapter owned by the registry
        lock: Re-entrant lock serializing every mutation (single writer)
    """

    def __init__(self, storage: RegistryStoragePort, lock: threading.RLock):
        self.storage = storage
        self._lock = lock

    @staticmethod
    def _unwrap(result: Result[T], operation: str) -> T:
        """Return a Result's value or raise StorageError for a failed Result."""
        if result.is_success():
            return result.value
        logger.error(f"Storage operation '{operation}' failed: {result.error}")
        raise StorageError(
            result.error or f"Storage operation '{operation}' failed",
            operation=operation,
            details=result.error_details,
        )
