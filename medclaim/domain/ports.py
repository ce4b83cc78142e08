"""Domain Ports - Abstract Contracts for Registry Storage.

This module defines the Port interface (abstract contract) that storage
Adapters must implement, the Result type they communicate with, and the
registry's error taxonomy.

Security Impact:
    - Every mutating port method is a single atomic unit: counter increment,
      entity write, index updates and audit event apply together or not at all
    - Claim finalisation is a conditional write, so two racing validations
      can never both succeed
    - Indices are derived data written only alongside their primary entity

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory, DuckDB) implement these ports
    - Domain services own authorization; adapters own atomicity
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from medclaim.domain.enums import ClaimStatus, EventType, Role
from medclaim.domain.models import (
    Claim,
    MedicalRecord,
    RegistryEvent,
    RegistryStatistics,
)

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Storage adapters return Results so that infrastructure failures are
    reported as values; domain services decide whether to raise.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (StorageError, etc.)
        error_details: Additional error context (operation, ids, etc.)

    Example:
        ```python
        result = storage.get_record(1)
        if result.is_success():
            record = result.value
        else:
            logger.error(result.error, extra=result.error_details)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError")
            error_details: Additional context (operation, ids, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class RegistryError(Exception):
    """Base exception for all registry errors.

    Attributes:
        kind: Stable error kind exposed to callers (e.g. "Unauthorized")
        details: Additional error context
    """

    kind = "RegistryError"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnauthorizedError(RegistryError):
    """Raised when the caller lacks the role an operation requires.

    Covers: not the administrator, not a verified hospital, not the record's
    patient ("not the data owner"), not the claim's insurer ("not the
    insurance party").
    """

    kind = "Unauthorized"


class NotFoundError(RegistryError):
    """Raised when a referenced record or claim id does not exist.

    Includes id 0 and ids beyond the current counter.
    """

    kind = "NotFound"


class AlreadyProcessedError(RegistryError):
    """Raised when validating a claim that has already left ``pending``."""

    kind = "AlreadyProcessed"


class InvalidInputError(RegistryError):
    """Raised for structurally invalid arguments.

    Zero/empty identity, empty content reference, negative cost, an insurer
    that is not verified, or a configured policy limit.
    """

    kind = "InvalidInput"


class StorageError(RegistryError):
    """Raised when a storage operation fails.

    Attributes:
        operation: The storage operation that failed (connect, insert_record, ...)
    """

    kind = "StorageError"

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.operation = operation


# ============================================================================
# Storage Port
# ============================================================================

class RegistryStoragePort(ABC):
    """Abstract contract for registry storage adapters.

    The port holds the four stores the registry owns exclusively: the
    identity sets, the record table, the claim table and the derived indices.
    Authorization is not the adapter's concern; atomicity is.

    Key Principles:
        - Atomic: each mutating method applies all of its writes or none
        - Monotonic: record and claim ids start at 1 and are never reused
        - Derived indices: written in the same unit as the primary entity
        - Results: failures are returned as Result values, never raised

    Example Usage:
        ```python
        storage = InMemoryRegistryAdapter()
        storage.initialize_schema()
        result = storage.insert_record(patient, hospital, "bafy...", 1000)
        if result.is_success():
            record = result.value
        ```
    """

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create tables, counters and indices if they do not exist."""
        pass

    # -- administrator --------------------------------------------------------

    @abstractmethod
    def get_administrator(self) -> Result[Optional[str]]:
        """Return the stored administrator identity, or None if unset."""
        pass

    @abstractmethod
    def set_administrator(self, identity: str) -> Result[None]:
        """Store the administrator identity.

        Fails if an administrator is already stored; the administrator is
        fixed for the lifetime of the registry.
        """
        pass

    # -- identity sets --------------------------------------------------------

    @abstractmethod
    def add_verified(self, role: Role, identity: str, actor: str) -> Result[bool]:
        """Add an identity to the hospital or insurer set.

        Returns:
            Result[bool]: True if newly added, False if already present.
            An event is appended only when the identity is newly added.
        """
        pass

    @abstractmethod
    def is_verified(self, role: Role, identity: str) -> Result[bool]:
        """Membership predicate for the hospital or insurer set."""
        pass

    @abstractmethod
    def list_verified(self, role: Role) -> Result[list[str]]:
        """Members of the hospital or insurer set in insertion order."""
        pass

    # -- records --------------------------------------------------------------

    @abstractmethod
    def insert_record(
        self,
        patient: str,
        hospital: str,
        content_ref: str,
        cost: int
    ) -> Result[MedicalRecord]:
        """Allocate the next record id and store the record.

        In the same atomic unit: increment the record counter, insert the
        record, append the id to ``patient``'s record index, add ``patient``
        to ``hospital``'s patient index (once), and append a
        RECORD_SUBMITTED event.
        """
        pass

    @abstractmethod
    def get_record(self, record_id: int) -> Result[Optional[MedicalRecord]]:
        """Fetch a record, or None if the id was never assigned."""
        pass

    # -- claims ---------------------------------------------------------------

    @abstractmethod
    def insert_claim(self, record_id: int, patient: str, insurer: str) -> Result[Claim]:
        """Allocate the next claim id and store a pending claim.

        In the same atomic unit: increment the claim counter, insert the
        claim, append the id to ``patient``'s claim index, and append a
        CLAIM_SUBMITTED event.
        """
        pass

    @abstractmethod
    def get_claim(self, claim_id: int) -> Result[Optional[Claim]]:
        """Fetch a claim, or None if the id was never assigned."""
        pass

    @abstractmethod
    def get_latest_claim_for_record(self, record_id: int) -> Result[Optional[Claim]]:
        """Fetch the most recent claim referencing a record, if any."""
        pass

    @abstractmethod
    def finalize_claim(self, claim_id: int, status: ClaimStatus, actor: str) -> Result[Optional[Claim]]:
        """Atomically move a pending claim to a terminal status.

        This is a check-and-set: the write applies only if the claim is
        still pending. On success a CLAIM_VALIDATED event is appended.

        Returns:
            Result[Optional[Claim]]: The updated claim, or None if the claim
            was no longer pending (nothing written).
        """
        pass

    # -- indices --------------------------------------------------------------

    @abstractmethod
    def records_of(self, patient: str) -> Result[list[int]]:
        """Record ids of a patient in insertion order."""
        pass

    @abstractmethod
    def claims_of(self, patient: str) -> Result[list[int]]:
        """Claim ids of a patient in insertion order."""
        pass

    @abstractmethod
    def patients_of(self, hospital: str) -> Result[list[str]]:
        """Distinct patients treated by a hospital, first-treatment order."""
        pass

    # -- audit and statistics -------------------------------------------------

    @abstractmethod
    def get_events(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[EventType] = None
    ) -> Result[list[RegistryEvent]]:
        """Audit trail entries, newest first."""
        pass

    @abstractmethod
    def get_statistics(self) -> Result[RegistryStatistics]:
        """Counts of records, claims, verified identities and claim statuses."""
        pass

    def close(self) -> None:
        """Release resources held by the adapter (optional)."""
        return None
