"""Domain services for the claim registry.

Each service covers one registry component and shares the registry's
storage adapter and write lock.
"""

from medclaim.domain.services.identity_registry import IdentityRegistry
from medclaim.domain.services.record_store import RecordStore
from medclaim.domain.services.claim_workflow import ClaimWorkflow
from medclaim.domain.services.query_facade import QueryFacade

__all__ = [
    "IdentityRegistry",
    "RecordStore",
    "ClaimWorkflow",
    "QueryFacade",
]
