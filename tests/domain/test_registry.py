"""Tests for the ClaimRegistry and its services.

Every test runs against both storage adapters so that authorization, the
claim state machine and the derived indices behave identically regardless
of backend.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from medclaim.adapters.storage import DuckDBRegistryAdapter, InMemoryRegistryAdapter
from medclaim.domain.enums import ClaimStatus, EventType, Role
from medclaim.domain.models import MAX_COST
from medclaim.domain.policy import RegistryPolicy
from medclaim.domain.ports import (
    AlreadyProcessedError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from medclaim.domain.registry import ClaimRegistry

ADMIN = "0x" + "a" * 40
HOSPITAL = "0x" + "b" * 40
HOSPITAL_2 = "0x" + "c" * 40
INSURER = "0x" + "d" * 40
INSURER_2 = "0x" + "e" * 40
PATIENT = "0x" + "1" * 40
PATIENT_2 = "0x" + "2" * 40
STRANGER = "0x" + "9" * 40
ZERO = "0x" + "0" * 40


def make_storage(backend: str):
    if backend == "duckdb":
        return DuckDBRegistryAdapter(db_path=":memory:")
    return InMemoryRegistryAdapter()


@pytest.fixture(params=["memory", "duckdb"])
def backend(request):
    return request.param


@pytest.fixture
def registry(backend):
    """Registry with one hospital and one insurer verified."""
    reg = ClaimRegistry(make_storage(backend), administrator=ADMIN)
    reg.add_hospital(ADMIN, HOSPITAL)
    reg.add_insurer(ADMIN, INSURER)
    yield reg
    reg.close()


@pytest.fixture
def record_id(registry):
    return registry.submit_medical_record(HOSPITAL, PATIENT, "bafyrecordone", 1000)


@pytest.fixture
def claim_id(registry, record_id):
    return registry.submit_claim(PATIENT, record_id, INSURER)


class TestBootstrap:
    """Administrator bootstrap and identity normalisation."""

    def test_fresh_store_requires_administrator(self, backend):
        with pytest.raises(InvalidInputError):
            ClaimRegistry(make_storage(backend))

    def test_zero_address_is_not_an_administrator(self, backend):
        with pytest.raises(InvalidInputError):
            ClaimRegistry(make_storage(backend), administrator=ZERO)

    def test_existing_store_keeps_administrator(self, backend):
        storage = make_storage(backend)
        ClaimRegistry(storage, administrator=ADMIN)

        reopened = ClaimRegistry(storage)
        assert reopened.administrator == ADMIN

    def test_existing_store_rejects_different_administrator(self, backend):
        storage = make_storage(backend)
        ClaimRegistry(storage, administrator=ADMIN)

        with pytest.raises(InvalidInputError):
            ClaimRegistry(storage, administrator=STRANGER)

    def test_mixed_case_addresses_compare_equal(self, registry):
        assert registry.is_hospital(HOSPITAL.upper().replace("0X", "0x"))
        registry.add_hospital(ADMIN.upper().replace("0X", "0x"), HOSPITAL_2)
        assert registry.is_hospital(HOSPITAL_2)


class TestIdentityRegistry:
    """Verified hospital and insurer sets."""

    def test_administrator_adds_hospital_and_insurer(self, registry):
        assert registry.is_hospital(HOSPITAL)
        assert registry.is_insurer(INSURER)
        assert not registry.is_hospital(INSURER)
        assert not registry.is_insurer(HOSPITAL)

    def test_non_administrator_cannot_add(self, registry):
        with pytest.raises(UnauthorizedError):
            registry.add_hospital(HOSPITAL, HOSPITAL_2)
        with pytest.raises(UnauthorizedError):
            registry.add_insurer(INSURER, INSURER_2)
        assert not registry.is_hospital(HOSPITAL_2)
        assert not registry.is_insurer(INSURER_2)

    def test_add_insurance_alias(self, registry):
        assert registry.add_insurance(ADMIN, INSURER_2) is True
        assert registry.is_insurer(INSURER_2)

    def test_re_adding_is_a_no_op(self, registry):
        events_before = len(registry.get_events())

        assert registry.add_hospital(ADMIN, HOSPITAL) is False
        assert registry.list_hospitals() == [HOSPITAL]
        assert len(registry.get_events()) == events_before

    def test_duplicate_rejected_when_policy_enabled(self, backend):
        reg = ClaimRegistry(
            make_storage(backend),
            administrator=ADMIN,
            policy=RegistryPolicy(reject_duplicate_verification=True),
        )
        reg.add_hospital(ADMIN, HOSPITAL)

        with pytest.raises(InvalidInputError):
            reg.add_hospital(ADMIN, HOSPITAL)

    def test_null_address_rejected(self, registry):
        with pytest.raises(InvalidInputError):
            registry.add_hospital(ADMIN, ZERO)
        with pytest.raises(InvalidInputError):
            registry.add_insurer(ADMIN, "  ")

    def test_lists_keep_insertion_order(self, registry):
        registry.add_hospital(ADMIN, HOSPITAL_2)
        registry.add_insurer(ADMIN, INSURER_2)

        assert registry.list_hospitals() == [HOSPITAL, HOSPITAL_2]
        assert registry.list_insurers() == [INSURER, INSURER_2]

    def test_identity_may_be_hospital_and_insurer(self, registry):
        registry.add_insurer(ADMIN, HOSPITAL)

        assert registry.is_hospital(HOSPITAL)
        assert registry.is_insurer(HOSPITAL)


class TestRecordStore:
    """Medical record submission and lookup."""

    def test_ids_are_unique_and_increasing(self, registry):
        ids = [
            registry.submit_medical_record(HOSPITAL, PATIENT, f"bafy{i}", 100 * i)
            for i in range(5)
        ]
        assert ids == [1, 2, 3, 4, 5]

    def test_record_fields_are_stored(self, registry, record_id):
        record = registry.get_record(record_id)

        assert record.record_id == record_id
        assert record.patient == PATIENT
        assert record.hospital == HOSPITAL
        assert record.content_ref == "bafyrecordone"
        assert record.cost == 1000

    def test_record_is_unchanged_by_later_activity(self, registry, record_id):
        before = registry.get_record(record_id)
        registry.submit_medical_record(HOSPITAL, PATIENT_2, "bafyother", 5)
        claim_id = registry.submit_claim(PATIENT, record_id, INSURER)
        registry.validate_claim(INSURER, claim_id, approve=True)

        after = registry.get_record(record_id)
        assert (after.patient, after.hospital, after.content_ref, after.cost) == (
            before.patient, before.hospital, before.content_ref, before.cost
        )

    @pytest.mark.parametrize("caller", [ADMIN, INSURER, PATIENT, STRANGER])
    def test_only_verified_hospital_submits(self, registry, caller):
        with pytest.raises(UnauthorizedError):
            registry.submit_medical_record(caller, PATIENT, "bafy", 10)
        assert registry.statistics().record_count == 0

    @pytest.mark.parametrize("patient,content_ref,cost", [
        (ZERO, "bafy", 10),
        ("", "bafy", 10),
        (PATIENT, "", 10),
        (PATIENT, "   ", 10),
        (PATIENT, "bafy", -1),
        (PATIENT, "bafy", True),
        (PATIENT, "bafy", 10.5),
    ])
    def test_invalid_input_rejected(self, registry, patient, content_ref, cost):
        with pytest.raises(InvalidInputError):
            registry.submit_medical_record(HOSPITAL, patient, content_ref, cost)
        assert registry.statistics().record_count == 0

    def test_unauthorized_checked_before_invalid_input(self, registry):
        with pytest.raises(UnauthorizedError):
            registry.submit_medical_record(STRANGER, ZERO, "", -5)

    def test_zero_cost_is_allowed(self, registry):
        record_id = registry.submit_medical_record(HOSPITAL, PATIENT, "bafy", 0)
        assert registry.get_record(record_id).cost == 0

    @pytest.mark.parametrize("cost", [2 ** 63 - 1, 2 ** 63, 2 ** 128, MAX_COST])
    def test_large_cost_is_stored_exactly(self, registry, cost):
        record_id = registry.submit_medical_record(HOSPITAL, PATIENT, "bafybig", cost)

        assert registry.get_record(record_id).cost == cost
        assert registry.get_record_and_claim_details(record_id).cost == cost
        event = registry.get_events(event_type=EventType.RECORD_SUBMITTED)[0]
        assert event.details["cost"] == cost

    def test_cost_above_maximum_rejected(self, registry):
        with pytest.raises(InvalidInputError):
            registry.submit_medical_record(HOSPITAL, PATIENT, "bafy", MAX_COST + 1)
        assert registry.statistics().record_count == 0

    def test_failed_submission_does_not_consume_an_id(self, registry):
        with pytest.raises(InvalidInputError):
            registry.submit_medical_record(HOSPITAL, PATIENT, "bafy", -1)
        assert registry.submit_medical_record(HOSPITAL, PATIENT, "bafy", 1) == 1

    def test_max_records_per_patient_policy(self, backend):
        reg = ClaimRegistry(
            make_storage(backend),
            administrator=ADMIN,
            policy=RegistryPolicy(max_records_per_patient=2),
        )
        reg.add_hospital(ADMIN, HOSPITAL)
        reg.submit_medical_record(HOSPITAL, PATIENT, "bafy1", 1)
        reg.submit_medical_record(HOSPITAL, PATIENT, "bafy2", 1)

        with pytest.raises(InvalidInputError):
            reg.submit_medical_record(HOSPITAL, PATIENT, "bafy3", 1)
        assert reg.submit_medical_record(HOSPITAL, PATIENT_2, "bafy4", 1) == 3

    @pytest.mark.parametrize("missing_id", [0, -1, 999])
    def test_get_record_not_found(self, registry, record_id, missing_id):
        with pytest.raises(NotFoundError, match="Record not found"):
            registry.get_record(missing_id)


class TestClaimWorkflow:
    """Claim submission and the pending -> approved/rejected transition."""

    def test_scenario_a_approved(self, registry):
        record_id = registry.submit_medical_record(HOSPITAL, PATIENT, "bafyscenarioa", 1000)
        claim_id = registry.submit_claim(PATIENT, record_id, INSURER)

        assert registry.get_claim_status(claim_id) is ClaimStatus.PENDING
        assert registry.validate_claim(INSURER, claim_id, approve=True) is ClaimStatus.APPROVED
        assert registry.get_claim_status(claim_id) is ClaimStatus.APPROVED
        assert registry.get_claim_status(claim_id).code == 1

    def test_scenario_b_stranger_cannot_claim(self, registry, record_id):
        with pytest.raises(UnauthorizedError, match="Not the data owner"):
            registry.submit_claim(STRANGER, record_id, INSURER)
        assert registry.claims_of(PATIENT) == []

    def test_scenario_c_stranger_cannot_validate(self, registry, claim_id):
        with pytest.raises(UnauthorizedError, match="Not the insurance party"):
            registry.validate_claim(STRANGER, claim_id, approve=True)
        assert registry.get_claim_status(claim_id) is ClaimStatus.PENDING

    def test_scenario_d_second_validation_fails(self, registry, claim_id):
        assert registry.validate_claim(INSURER, claim_id, approve=False) is ClaimStatus.REJECTED

        with pytest.raises(AlreadyProcessedError, match="Claim already processed"):
            registry.validate_claim(INSURER, claim_id, approve=True)
        assert registry.get_claim_status(claim_id) is ClaimStatus.REJECTED

    def test_scenario_e_claim_on_missing_record(self, registry, record_id):
        with pytest.raises(NotFoundError):
            registry.submit_claim(PATIENT, 999, INSURER)

    @pytest.mark.parametrize("first,second", [(True, True), (True, False), (False, False)])
    def test_validate_twice_regardless_of_flag(self, registry, claim_id, first, second):
        registry.validate_claim(INSURER, claim_id, approve=first)
        with pytest.raises(AlreadyProcessedError):
            registry.validate_claim(INSURER, claim_id, approve=second)

    @pytest.mark.parametrize("caller", [ADMIN, HOSPITAL])
    def test_privileged_callers_are_not_the_data_owner(self, registry, record_id, caller):
        with pytest.raises(UnauthorizedError, match="Not the data owner"):
            registry.submit_claim(caller, record_id, INSURER)

    def test_other_verified_insurer_cannot_validate(self, registry, claim_id):
        registry.add_insurer(ADMIN, INSURER_2)
        with pytest.raises(UnauthorizedError):
            registry.validate_claim(INSURER_2, claim_id, approve=True)

    def test_unverified_insurer_rejected(self, registry, record_id):
        with pytest.raises(InvalidInputError):
            registry.submit_claim(PATIENT, record_id, INSURER_2)
        assert registry.claims_of(PATIENT) == []

    def test_not_found_checked_before_ownership(self, registry):
        with pytest.raises(NotFoundError):
            registry.submit_claim(STRANGER, 42, INSURER)

    def test_unauthorized_checked_before_already_processed(self, registry, claim_id):
        registry.validate_claim(INSURER, claim_id, approve=True)
        with pytest.raises(UnauthorizedError):
            registry.validate_claim(STRANGER, claim_id, approve=True)

    @pytest.mark.parametrize("missing_id", [0, 999])
    def test_validate_missing_claim(self, registry, claim_id, missing_id):
        with pytest.raises(NotFoundError, match="Claim not found"):
            registry.validate_claim(INSURER, missing_id, approve=True)

    def test_get_claim_status_not_found(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_claim_status(1)

    def test_processed_claim_records_timestamp(self, registry, claim_id):
        assert registry.get_claim(claim_id).processed_at is None
        registry.validate_claim(INSURER, claim_id, approve=True)
        assert registry.get_claim(claim_id).processed_at is not None

    def test_claim_ids_are_sequential(self, registry, record_id):
        second_record = registry.submit_medical_record(HOSPITAL, PATIENT, "bafy2", 5)
        first = registry.submit_claim(PATIENT, record_id, INSURER)
        second = registry.submit_claim(PATIENT, second_record, INSURER)
        assert (first, second) == (1, 2)


class TestQueries:
    """Read-only views, derived indices and the audit trail."""

    def test_details_for_unclaimed_record(self, registry, record_id):
        view = registry.get_record_and_claim_details(record_id)

        assert view.patient == PATIENT
        assert view.hospital == HOSPITAL
        assert view.content_ref == "bafyrecordone"
        assert view.cost == 1000
        assert view.claim_status is None
        assert view.insurer is None
        assert not view.is_claimed

    def test_details_show_latest_claim(self, registry, record_id):
        registry.add_insurer(ADMIN, INSURER_2)
        first = registry.submit_claim(PATIENT, record_id, INSURER)
        registry.validate_claim(INSURER, first, approve=False)
        second = registry.submit_claim(PATIENT, record_id, INSURER_2)

        view = registry.get_record_and_claim_details(record_id)
        assert view.claim_id == second
        assert view.claim_status is ClaimStatus.PENDING
        assert view.insurer == INSURER_2

    def test_details_not_found(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_record_and_claim_details(1)

    def test_reads_are_pure(self, registry, claim_id):
        events_before = registry.get_events()

        views = [registry.get_record_and_claim_details(1) for _ in range(3)]
        statuses = [registry.get_claim_status(claim_id) for _ in range(3)]

        assert views[0] == views[1] == views[2]
        assert statuses == [ClaimStatus.PENDING] * 3
        assert registry.get_events() == events_before

    def test_indices(self, registry):
        registry.add_hospital(ADMIN, HOSPITAL_2)
        r1 = registry.submit_medical_record(HOSPITAL, PATIENT, "bafy1", 1)
        r2 = registry.submit_medical_record(HOSPITAL, PATIENT_2, "bafy2", 2)
        r3 = registry.submit_medical_record(HOSPITAL, PATIENT, "bafy3", 3)
        r4 = registry.submit_medical_record(HOSPITAL_2, PATIENT, "bafy4", 4)
        c1 = registry.submit_claim(PATIENT, r3, INSURER)
        c2 = registry.submit_claim(PATIENT_2, r2, INSURER)

        assert registry.records_of(PATIENT) == [r1, r3, r4]
        assert registry.records_of(PATIENT_2) == [r2]
        assert registry.claims_of(PATIENT) == [c1]
        assert registry.claims_of(PATIENT_2) == [c2]
        assert registry.patients_of(HOSPITAL) == [PATIENT, PATIENT_2]
        assert registry.patients_of(HOSPITAL_2) == [PATIENT]

    def test_unknown_identities_have_empty_indices(self, registry):
        assert registry.records_of(STRANGER) == []
        assert registry.claims_of(STRANGER) == []
        assert registry.patients_of(STRANGER) == []

    def test_resolve_role_precedence(self, registry):
        registry.add_hospital(ADMIN, ADMIN)
        registry.add_insurer(ADMIN, HOSPITAL)

        assert registry.resolve_role(ADMIN) is Role.ADMIN
        assert registry.resolve_role(HOSPITAL) is Role.HOSPITAL
        assert registry.resolve_role(INSURER) is Role.INSURER
        assert registry.resolve_role(PATIENT) is Role.PATIENT
        assert registry.resolve_role(STRANGER) is Role.PATIENT

    def test_one_event_per_successful_mutation(self, registry, claim_id):
        registry.validate_claim(INSURER, claim_id, approve=True)
        with pytest.raises(AlreadyProcessedError):
            registry.validate_claim(INSURER, claim_id, approve=True)
        with pytest.raises(UnauthorizedError):
            registry.add_hospital(STRANGER, HOSPITAL_2)

        events = registry.get_events()
        assert [e.event_type for e in events] == [
            EventType.CLAIM_VALIDATED,
            EventType.CLAIM_SUBMITTED,
            EventType.RECORD_SUBMITTED,
            EventType.INSURER_ADDED,
            EventType.HOSPITAL_ADDED,
        ]
        assert events[0].actor == INSURER
        assert events[0].details["status"] == "approved"

    def test_events_filter_and_paging(self, registry, record_id):
        registry.submit_medical_record(HOSPITAL, PATIENT, "bafy2", 2)

        records = registry.get_events(event_type=EventType.RECORD_SUBMITTED)
        assert [e.entity_id for e in records] == ["2", "1"]
        assert [e.entity_id for e in registry.get_events(limit=1, offset=1, event_type=EventType.RECORD_SUBMITTED)] == ["1"]

    def test_statistics(self, registry, claim_id):
        registry.submit_medical_record(HOSPITAL, PATIENT_2, "bafy2", 2)
        registry.validate_claim(INSURER, claim_id, approve=False)

        stats = registry.statistics()
        assert stats.record_count == 2
        assert stats.claim_count == 1
        assert stats.hospital_count == 1
        assert stats.insurer_count == 1
        assert stats.claims_by_status == {"pending": 0, "approved": 0, "rejected": 1}


class TestConcurrency:
    """Serialization of concurrent mutations."""

    def test_concurrent_record_submissions_get_distinct_ids(self, registry):
        with ThreadPoolExecutor(max_workers=8) as executor:
            ids = list(executor.map(
                lambda i: registry.submit_medical_record(HOSPITAL, PATIENT, f"bafy{i}", i),
                range(40),
            ))

        assert sorted(ids) == list(range(1, 41))
        assert sorted(registry.records_of(PATIENT)) == list(range(1, 41))

    def test_concurrent_validations_have_one_winner(self, registry, claim_id):
        def attempt(approve):
            try:
                return registry.validate_claim(INSURER, claim_id, approve=approve)
            except AlreadyProcessedError:
                return None

        with ThreadPoolExecutor(max_workers=8) as executor:
            outcomes = list(executor.map(attempt, [i % 2 == 0 for i in range(16)]))

        winners = [o for o in outcomes if o is not None]
        assert len(winners) == 1
        assert registry.get_claim_status(claim_id) is winners[0]
        assert len(registry.get_events(event_type=EventType.CLAIM_VALIDATED)) == 1
