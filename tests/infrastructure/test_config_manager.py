"""Tests for the configuration manager and the composition root."""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from medclaim.adapters.storage import DuckDBRegistryAdapter, InMemoryRegistryAdapter
from medclaim.domain.ports import InvalidInputError
from medclaim.infrastructure.config_manager import (
    DEFAULT_UPLOAD_URL,
    ConfigManager,
    ContentStoreConfig,
    DatabaseConfig,
    RegistryConfig,
)
from medclaim.main import create_registry, create_storage_adapter

ADMIN = "0x" + "A" * 40


class TestDatabaseConfig:

    def test_defaults_to_duckdb(self):
        assert DatabaseConfig().db_type == "duckdb"

    def test_db_type_is_case_insensitive(self):
        assert DatabaseConfig(db_type="MEMORY").db_type == "memory"

    def test_unsupported_db_type(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(db_type="postgresql")

    def test_in_memory_path_allowed(self):
        assert DatabaseConfig(db_type="duckdb", db_path=":memory:").db_path == ":memory:"

    def test_missing_directory_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            DatabaseConfig(db_type="duckdb", db_path=str(tmp_path / "nope" / "registry.duckdb"))


class TestRegistryConfig:

    def test_administrator_is_normalized(self):
        assert RegistryConfig(administrator=ADMIN).administrator == ADMIN.lower()

    def test_blank_administrator_is_none(self):
        assert RegistryConfig(administrator="  ").administrator is None

    def test_to_policy(self):
        policy = RegistryConfig(reject_duplicate_verification=True, max_records_per_patient=3).to_policy()

        assert policy.reject_duplicate_verification is True
        assert policy.max_records_per_patient == 3

    def test_max_records_must_be_positive(self):
        with pytest.raises(ValidationError):
            RegistryConfig(max_records_per_patient=0)


class TestContentStoreConfig:

    def test_token_is_hidden(self):
        config = ContentStoreConfig(jwt="super-secret")

        assert config.is_configured
        assert "super-secret" not in repr(config)
        assert config.jwt.get_secret_value() == "super-secret"

    def test_unconfigured_without_token(self):
        assert not ContentStoreConfig().is_configured


class TestConfigManagerFromEnvironment:

    def test_reads_environment(self, tmp_path):
        env = {
            "MC_DB_TYPE": "duckdb",
            "MC_DB_PATH": str(tmp_path / "registry.duckdb"),
            "MC_ADMINISTRATOR": ADMIN,
            "MC_REJECT_DUPLICATE_VERIFICATION": "true",
            "MC_MAX_RECORDS_PER_PATIENT": "5",
            "MC_CONTENT_STORE_URL": "https://pin.example/upload",
            "MC_CONTENT_STORE_JWT": "token",
            "MC_CONTENT_STORE_TIMEOUT": "12.5",
        }
        with patch.dict(os.environ, env, clear=True):
            manager = ConfigManager.from_environment()

        db_config = manager.get_database_config()
        assert db_config.db_type == "duckdb"
        assert db_config.db_path == str(tmp_path / "registry.duckdb")

        registry_config = manager.get_registry_config()
        assert registry_config.administrator == ADMIN.lower()
        assert registry_config.reject_duplicate_verification is True
        assert registry_config.max_records_per_patient == 5

        content_store = manager.get_content_store_config()
        assert content_store.upload_url == "https://pin.example/upload"
        assert content_store.jwt.get_secret_value() == "token"
        assert content_store.timeout_seconds == 12.5

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            manager = ConfigManager.from_environment()

        assert manager.get_database_config().db_path is None
        assert manager.get_registry_config().administrator is None
        assert manager.get_registry_config().max_records_per_patient is None
        assert manager.get_content_store_config().upload_url == DEFAULT_UPLOAD_URL
        assert not manager.get_content_store_config().is_configured

    def test_invalid_integer(self):
        with patch.dict(os.environ, {"MC_MAX_RECORDS_PER_PATIENT": "many"}, clear=True):
            with pytest.raises(ValueError):
                ConfigManager.from_environment()


class TestConfigManagerFromFile:

    def test_reads_json(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "database": {"db_type": "memory"},
            "registry": {"administrator": ADMIN},
            "content_store": {"jwt": "file-token"},
        }))
        config_file.chmod(0o600)

        manager = ConfigManager.from_file(str(config_file))

        assert manager.get_database_config().db_type == "memory"
        assert manager.get_registry_config().administrator == ADMIN.lower()
        assert manager.get_content_store_config().jwt.get_secret_value() == "file-token"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager.from_file(str(tmp_path / "absent.json"))

    def test_invalid_json(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with pytest.raises(ValueError):
            ConfigManager.from_file(str(config_file))


class TestCompositionRoot:

    def test_memory_adapter(self):
        assert isinstance(create_storage_adapter(DatabaseConfig(db_type="memory")), InMemoryRegistryAdapter)

    def test_duckdb_adapter(self, tmp_path):
        adapter = create_storage_adapter(
            DatabaseConfig(db_type="duckdb", db_path=str(tmp_path / "registry.duckdb"))
        )
        assert isinstance(adapter, DuckDBRegistryAdapter)

    def test_create_registry_from_config(self):
        manager = ConfigManager({
            "database": {"db_type": "memory"},
            "registry": {"administrator": ADMIN, "max_records_per_patient": 1},
        })

        registry = create_registry(manager)

        assert registry.administrator == ADMIN.lower()
        assert registry.policy.max_records_per_patient == 1

    def test_create_registry_without_administrator(self):
        manager = ConfigManager({"database": {"db_type": "memory"}})

        with pytest.raises(InvalidInputError):
            create_registry(manager)
