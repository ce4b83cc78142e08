"""Tests for domain models, enums and policy."""

import pytest
from pydantic import ValidationError

from medclaim.domain.enums import ClaimStatus
from medclaim.domain.models import (
    ZERO_IDENTITY,
    Claim,
    MedicalRecord,
    RecordClaimView,
    is_null_identity,
    normalize_identity,
)
from medclaim.domain.policy import RegistryPolicy

PATIENT = "0x" + "1" * 40
HOSPITAL = "0x" + "B" * 40
INSURER = "0x" + "d" * 40


class TestIdentityNormalization:

    def test_hex_addresses_are_lower_cased(self):
        assert normalize_identity(" " + HOSPITAL + " ") == HOSPITAL.lower()

    def test_opaque_identities_are_kept(self):
        assert normalize_identity("  Clinic-North ") == "Clinic-North"

    def test_none_is_empty(self):
        assert normalize_identity(None) == ""

    @pytest.mark.parametrize("value", [None, "", "   ", ZERO_IDENTITY, ZERO_IDENTITY.upper().replace("0X", "0x")])
    def test_null_identities(self, value):
        assert is_null_identity(value)

    def test_real_identity_is_not_null(self):
        assert not is_null_identity(PATIENT)


class TestClaimStatus:

    def test_codes(self):
        assert [s.code for s in ClaimStatus] == [0, 1, 2]

    def test_terminal_states(self):
        assert not ClaimStatus.PENDING.is_terminal
        assert ClaimStatus.APPROVED.is_terminal
        assert ClaimStatus.REJECTED.is_terminal


class TestEntities:

    def test_record_normalizes_identities(self):
        record = MedicalRecord(record_id=1, patient=PATIENT, hospital=HOSPITAL, content_ref="bafy", cost=0)
        assert record.hospital == HOSPITAL.lower()

    def test_record_is_immutable(self):
        record = MedicalRecord(record_id=1, patient=PATIENT, hospital=HOSPITAL, content_ref="bafy", cost=5)
        with pytest.raises(ValidationError):
            record.cost = 10

    @pytest.mark.parametrize("overrides", [
        {"record_id": 0},
        {"patient": ZERO_IDENTITY},
        {"content_ref": ""},
        {"cost": -1},
    ])
    def test_invalid_records(self, overrides):
        fields = dict(record_id=1, patient=PATIENT, hospital=HOSPITAL, content_ref="bafy", cost=5)
        fields.update(overrides)
        with pytest.raises(ValidationError):
            MedicalRecord(**fields)

    def test_claim_defaults_to_pending(self):
        claim = Claim(claim_id=1, record_id=1, insurer=INSURER)
        assert claim.is_pending
        assert claim.processed_at is None

    def test_view_without_claim(self):
        record = MedicalRecord(record_id=3, patient=PATIENT, hospital=HOSPITAL, content_ref="bafy", cost=5)
        view = RecordClaimView.compose(record, None)

        assert not view.is_claimed
        assert view.claim_id is None

    def test_view_with_claim(self):
        record = MedicalRecord(record_id=3, patient=PATIENT, hospital=HOSPITAL, content_ref="bafy", cost=5)
        claim = Claim(claim_id=9, record_id=3, insurer=INSURER, status=ClaimStatus.APPROVED)
        view = RecordClaimView.compose(record, claim)

        assert view.is_claimed
        assert view.claim_status is ClaimStatus.APPROVED
        assert view.insurer == INSURER


class TestRegistryPolicy:

    def test_defaults_are_permissive(self):
        policy = RegistryPolicy()
        assert policy.reject_duplicate_verification is False
        assert policy.max_records_per_patient is None

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            RegistryPolicy(max_records_per_patient=0)
