"""Walk one record through the registry from submission to approval.

Uses the storage backend from the environment (MC_DB_TYPE / MC_DB_PATH),
so pointing MC_DB_PATH at a file leaves the resulting state on disk for
``medclaim info`` and ``medclaim events`` to inspect.
"""

from medclaim.domain.ports import RegistryError
from medclaim.main import create_registry

ADMIN = "0x" + "a" * 40
HOSPITAL = "0x" + "b" * 40
INSURER = "0x" + "d" * 40
PATIENT = "0x" + "1" * 40


def example_claim_lifecycle():
    """Example: verify parties, submit a record, claim it and approve it."""
    print("=== Claim lifecycle ===")

    registry = create_registry(administrator=ADMIN)
    try:
        registry.add_hospital(ADMIN, HOSPITAL)
        registry.add_insurer(ADMIN, INSURER)
        print(f"Hospitals: {registry.list_hospitals()}")
        print(f"Insurers:  {registry.list_insurers()}")

        record_id = registry.submit_medical_record(HOSPITAL, PATIENT, "bafyexamplerecord", 1200)
        print(f"SUCCESS: Record #{record_id} submitted for {PATIENT}")

        claim_id = registry.submit_claim(PATIENT, record_id, INSURER)
        print(f"SUCCESS: Claim #{claim_id} is {registry.get_claim_status(claim_id).value}")

        status = registry.validate_claim(INSURER, claim_id, approve=True)
        print(f"SUCCESS: Claim #{claim_id} is {status.value}")

        try:
            registry.validate_claim(INSURER, claim_id, approve=False)
        except RegistryError as e:
            print(f"EXPECTED: {e.kind}: {e.message}")

        view = registry.get_record_and_claim_details(record_id)
        print(f"Record #{view.record_id}: cost {view.cost}, claim {view.claim_status.value} by {view.insurer}")
    finally:
        registry.close()


def example_rejected_claim():
    """Example: an insurer rejects a claim and a second decision is refused."""
    print("\n=== Rejected claim ===")

    registry = create_registry(administrator=ADMIN)
    try:
        registry.add_hospital(ADMIN, HOSPITAL)
        registry.add_insurer(ADMIN, INSURER)
        record_id = registry.submit_medical_record(HOSPITAL, PATIENT, "bafyrejected", 80)
        claim_id = registry.submit_claim(PATIENT, record_id, INSURER)

        status = registry.validate_claim(INSURER, claim_id, approve=False)
        print(f"Claim #{claim_id} is {status.value} (code {status.code})")
        print(f"Records of patient: {registry.records_of(PATIENT)}")
        print(f"Claims of patient:  {registry.claims_of(PATIENT)}")
    finally:
        registry.close()


if __name__ == "__main__":
    example_claim_lifecycle()
    example_rejected_claim()
