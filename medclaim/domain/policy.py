"""Registry policy points.

Verification and record-count behaviour is configurable here. The
defaults are the most permissive reading that still preserves every registry
invariant: set-union verification, unlimited records per patient, and
append-only membership (there is no revocation operation at all).
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RegistryPolicy:
    """Configurable registry policy.

    Attributes:
        reject_duplicate_verification: If True, re-adding an already verified
            hospital or insurer fails with InvalidInputError instead of being
            a no-op success
        max_records_per_patient: Upper bound on records per patient across
            all hospitals (None means unlimited)
    """
    reject_duplicate_verification: bool = False
    max_records_per_patient: Optional[int] = None

    def __post_init__(self):
        if self.max_records_per_patient is not None and self.max_records_per_patient < 1:
            raise ValueError("max_records_per_patient must be at least 1 when set")
