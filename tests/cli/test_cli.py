"""Tests for the Typer command line interface.

``create_registry`` is patched so every command in a test talks to the
same in-memory registry.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from medclaim.adapters.storage import InMemoryRegistryAdapter
from medclaim.cli import app
from medclaim.domain.enums import ClaimStatus
from medclaim.domain.registry import ClaimRegistry

ADMIN = "0x" + "a" * 40
HOSPITAL = "0x" + "b" * 40
INSURER = "0x" + "d" * 40
PATIENT = "0x" + "1" * 40
STRANGER = "0x" + "9" * 40

runner = CliRunner()


@pytest.fixture
def registry():
    reg = ClaimRegistry(InMemoryRegistryAdapter(), administrator=ADMIN)
    with patch("medclaim.cli.create_registry", return_value=reg):
        yield reg


def invoke(*args):
    return runner.invoke(app, list(args))


class TestCli:

    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "MedClaim v" in result.output

    def test_full_claim_flow(self, registry):
        assert invoke("add-hospital", HOSPITAL, "--as", ADMIN).exit_code == 0
        assert invoke("add-insurer", INSURER, "--as", ADMIN).exit_code == 0

        result = invoke("submit-record", PATIENT, "bafycli", "750", "--as", HOSPITAL)
        assert result.exit_code == 0
        assert "#1" in result.output

        assert invoke("submit-claim", "1", INSURER, "--as", PATIENT).exit_code == 0
        result = invoke("validate-claim", "1", "--approve", "--as", INSURER)
        assert result.exit_code == 0
        assert registry.get_claim_status(1) is ClaimStatus.APPROVED

        result = invoke("claim-status", "1")
        assert "approved" in result.output

    def test_registry_error_exits_with_code_1(self, registry):
        result = invoke("add-hospital", HOSPITAL, "--as", STRANGER)

        assert result.exit_code == 1
        assert "Unauthorized" in result.output
        assert not registry.is_hospital(HOSPITAL)

    def test_reject_flag(self, registry):
        registry.add_hospital(ADMIN, HOSPITAL)
        registry.add_insurer(ADMIN, INSURER)
        registry.submit_medical_record(HOSPITAL, PATIENT, "bafy", 1)
        registry.submit_claim(PATIENT, 1, INSURER)

        assert invoke("validate-claim", "1", "--reject", "--as", INSURER).exit_code == 0
        assert registry.get_claim_status(1) is ClaimStatus.REJECTED

        result = invoke("validate-claim", "1", "--approve", "--as", INSURER)
        assert result.exit_code == 1
        assert "AlreadyProcessed" in result.output

    def test_record_and_patient_views(self, registry):
        registry.add_hospital(ADMIN, HOSPITAL)
        registry.submit_medical_record(HOSPITAL, PATIENT, "bafyview", 42)

        record = invoke("record", "1")
        assert record.exit_code == 0
        assert "bafyview" in record.output
        assert "not claimed" in record.output

        assert invoke("patient", PATIENT).exit_code == 0
        patients = invoke("hospital-patients", HOSPITAL)
        assert PATIENT in patients.output

    def test_missing_record(self, registry):
        result = invoke("record", "99")
        assert result.exit_code == 1
        assert "NotFound" in result.output

    def test_events(self, registry):
        registry.add_hospital(ADMIN, HOSPITAL)

        result = invoke("events", "--type", "HOSPITAL_ADDED")
        assert result.exit_code == 0
        assert "Registry Events" in result.output
