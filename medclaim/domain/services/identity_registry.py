"""Identity Registry - administrator and verified identity sets.

Tracks the single administrator and the two administrator-managed sets of
verified hospitals and verified insurers, and answers membership queries.

Security Impact:
    - Only the administrator can grow either set
    - Membership is append-only: there is no revocation path
    - The administrator is fixed when the registry is first created
"""

import logging
import threading
from typing import Optional

from medclaim.domain.enums import Role
from medclaim.domain.models import is_null_identity, normalize_identity
from medclaim.domain.policy import RegistryPolicy
from medclaim.domain.ports import (
    InvalidInputError,
    RegistryStoragePort,
    UnauthorizedError,
)
from medclaim.domain.services.base import RegistryService

logger = logging.getLogger(__name__)

_ROLE_LABELS = {
    Role.HOSPITAL: "hospital",
    Role.INSURER: "insurer",
}


class IdentityRegistry(RegistryService):
    """Administrator plus verified hospital and insurer sets."""

    def __init__(
        self,
        storage: RegistryStoragePort,
        lock: threading.RLock,
        policy: Optional[RegistryPolicy] = None
    ):
        super().__init__(storage, lock)
        self.policy = policy or RegistryPolicy()
        self._administrator: Optional[str] = None

    @property
    def administrator(self) -> str:
        if self._administrator is None:
            raise InvalidInputError("Registry has no administrator; bootstrap it first")
        return self._administrator

    def bootstrap(self, administrator: Optional[str]) -> str:
        """Load or fix the administrator identity.

        A fresh store takes the given administrator. A store that already has
        one keeps it; passing a different identity is rejected because the
        administrator never changes.

        Parameters:
            administrator: Configured administrator identity (may be None for
                an existing store)

        Returns:
            The effective administrator identity

        Raises:
            InvalidInputError: No administrator available, a null identity, or
                a mismatch with the stored administrator
        """
        with self._lock:
            stored = self._unwrap(self.storage.get_administrator(), "get_administrator")
            requested = normalize_identity(administrator) if administrator is not None else None

            if stored is None:
                if requested is None or is_null_identity(requested):
                    raise InvalidInputError("An administrator identity is required to create the registry")
                self._unwrap(self.storage.set_administrator(requested), "set_administrator")
                logger.info(f"Registry created with administrator {requested}")
                self._administrator = requested
                return requested

            if requested is not None and requested != stored:
                raise InvalidInputError(
                    f"Registry is already administered by {stored}; the administrator cannot change",
                    details={"stored": stored, "requested": requested},
                )
            self._administrator = stored
            return stored

    def is_administrator(self, identity: str) -> bool:
        return normalize_identity(identity) == self.administrator

    def add_hospital(self, caller: str, address: str) -> bool:
        """Add ``address`` to the verified hospital set.

        Returns:
            True if newly added, False if it was already verified
        """
        return self._add(Role.HOSPITAL, caller, address)

    def add_insurer(self, caller: str, address: str) -> bool:
        """Add ``address`` to the verified insurer set.

        Returns:
            True if newly added, False if it was already verified
        """
        return self._add(Role.INSURER, caller, address)

    def _add(self, role: Role, caller: str, address: str) -> bool:
        label = _ROLE_LABELS[role]
        with self._lock:
            caller_id = normalize_identity(caller)
            if caller_id != self.administrator:
                logger.warning(f"Rejected add {label} from non-administrator {caller_id!r}")
                raise UnauthorizedError(
                    f"Only the administrator can add a {label}.",
                    details={"caller": caller_id},
                )

            address_id = normalize_identity(address)
            if is_null_identity(address_id):
                raise InvalidInputError(f"The {label} address must not be empty or the zero address.")

            if self.policy.reject_duplicate_verification:
                if self._unwrap(self.storage.is_verified(role, address_id), "is_verified"):
                    raise InvalidInputError(
                        f"{address_id} is already a verified {label}.",
                        details={"address": address_id},
                    )

            added = self._unwrap(
                self.storage.add_verified(role, address_id, actor=caller_id),
                "add_verified",
            )
            if added:
                logger.info(f"Verified {label} added: {address_id}")
            else:
                logger.debug(f"{address_id} already a verified {label}; nothing to do")
            return added

    def is_hospital(self, address: str) -> bool:
        return self._unwrap(
            self.storage.is_verified(Role.HOSPITAL, normalize_identity(address)),
            "is_verified",
        )

    def is_insurer(self, address: str) -> bool:
        return self._unwrap(
            self.storage.is_verified(Role.INSURER, normalize_identity(address)),
            "is_verified",
        )

    def list_hospitals(self) -> list[str]:
        return self._unwrap(self.storage.list_verified(Role.HOSPITAL), "list_verified")

    def list_insurers(self) -> list[str]:
        return self._unwrap(self.storage.list_verified(Role.INSURER), "list_verified")
