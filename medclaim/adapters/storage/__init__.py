"""Storage adapters for the medical claim registry.

This module contains storage adapters that implement the RegistryStoragePort
interface for persisting identities, records, claims, derived indices and
the audit trail.
"""

from medclaim.adapters.storage.duckdb_adapter import DuckDBRegistryAdapter
from medclaim.adapters.storage.memory_adapter import InMemoryRegistryAdapter

__all__ = ["DuckDBRegistryAdapter", "InMemoryRegistryAdapter"]
