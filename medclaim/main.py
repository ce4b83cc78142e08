"""Composition root for the medical claim registry.

Builds the storage adapter selected by configuration and wraps it in a
ClaimRegistry. The API, the CLI and scripts all construct their registry
through these functions.

Architecture:
    - Adapters are selected by DatabaseConfig.db_type
    - Registry policy and administrator come from RegistryConfig
"""

import logging
from typing import Optional

from medclaim.adapters.storage import DuckDBRegistryAdapter, InMemoryRegistryAdapter
from medclaim.domain.ports import RegistryStoragePort
from medclaim.domain.registry import ClaimRegistry
from medclaim.infrastructure.config_manager import ConfigManager, DatabaseConfig
from medclaim.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_storage_adapter(db_config: Optional[DatabaseConfig] = None) -> RegistryStoragePort:
    """Create storage adapter based on configuration.

    Raises:
        ValueError: If database type is unsupported
    """
    db_config = db_config or settings.db_config

    if db_config.db_type == "duckdb":
        logger.info(f"Initializing DuckDB adapter with path: {db_config.db_path or ':memory:'}")
        return DuckDBRegistryAdapter(db_config=db_config)
    elif db_config.db_type == "memory":
        logger.info("Initializing in-memory registry adapter")
        return InMemoryRegistryAdapter()
    else:
        raise ValueError(f"Unsupported database type: {db_config.db_type}")


def create_registry(
    config_manager: Optional[ConfigManager] = None,
    administrator: Optional[str] = None
) -> ClaimRegistry:
    """Create a ClaimRegistry from configuration.

    Parameters:
        config_manager: Configuration source (defaults to the environment)
        administrator: Overrides the configured administrator identity

    Raises:
        InvalidInputError: No administrator for a fresh store, or a mismatch
        StorageError: Storage could not be initialized
    """
    config_manager = config_manager or settings.config_manager
    registry_config = config_manager.get_registry_config()
    storage = create_storage_adapter(config_manager.get_database_config())
    try:
        return ClaimRegistry(
            storage,
            administrator=administrator or registry_config.administrator,
            policy=registry_config.to_policy(),
        )
    except Exception:
        storage.close()
        raise
