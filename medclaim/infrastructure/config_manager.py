"""Configuration Manager for the medical claim registry.

This module loads storage, registry and content-store configuration from
environment variables or a JSON file and validates it with pydantic models
before anything is constructed from it.

Security Impact:
    - The content-store token is held as SecretStr and never logged
    - Configuration is validated before use (fail fast)
    - Configuration files with permissive modes produce a warning

Architecture:
    - Infrastructure layer, isolated from the domain
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

from medclaim.domain.models import normalize_identity
from medclaim.domain.policy import RegistryPolicy

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL = "https://api.pinata.cloud/pinning/pinJSONToIPFS"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


class DatabaseConfig(BaseModel):
    """Storage backend configuration.

    Parameters:
        db_type: Storage backend ('duckdb' or 'memory')
        db_path: Path to the DuckDB file, or ':memory:' for a throwaway database
    """

    db_type: str = Field(default="duckdb", description="Storage backend (duckdb, memory)")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        """Validate database type."""
        supported_types = ["duckdb", "memory"]
        if v.lower() not in supported_types:
            raise ValueError(f"Unsupported database type: {v}. Supported: {supported_types}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the database directory exists (if a path is provided)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        # The file may not exist yet, its directory must
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")

        return str(db_path_obj)


class RegistryConfig(BaseModel):
    """Registry bootstrap identity and policy points."""

    administrator: Optional[str] = Field(None, description="Administrator identity for a fresh store")
    reject_duplicate_verification: bool = Field(default=False)
    max_records_per_patient: Optional[int] = Field(default=None, ge=1)

    @field_validator("administrator")
    @classmethod
    def normalize_administrator(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return normalize_identity(v)

    def to_policy(self) -> RegistryPolicy:
        return RegistryPolicy(
            reject_duplicate_verification=self.reject_duplicate_verification,
            max_records_per_patient=self.max_records_per_patient,
        )


class ContentStoreConfig(BaseModel):
    """Configuration for the content-upload proxy.

    Security Impact:
        - The JWT is a SecretStr: repr() and logs show '**********'
    """

    upload_url: str = Field(default=DEFAULT_UPLOAD_URL)
    jwt: Optional[SecretStr] = Field(None, description="Bearer token for the pinning service (secret)")
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def is_configured(self) -> bool:
        return self.jwt is not None and bool(self.jwt.get_secret_value())


class ConfigManager:
    """Configuration manager for storage, registry and content-store settings.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        db_config = config.get_database_config()

        # Load from file
        config = ConfigManager.from_file("config.json")
        registry_config = config.get_registry_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._database_config: Optional[DatabaseConfig] = None
        self._registry_config: Optional[RegistryConfig] = None
        self._content_store_config: Optional[ContentStoreConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - MC_DB_TYPE: Storage backend (duckdb, memory)
            - MC_DB_PATH: Path to database file (for DuckDB)
            - MC_ADMINISTRATOR: Administrator identity
            - MC_REJECT_DUPLICATE_VERIFICATION: Reject re-adding a verified identity
            - MC_MAX_RECORDS_PER_PATIENT: Cap on records per patient
            - MC_CONTENT_STORE_URL: Pinning endpoint for the upload proxy
            - MC_CONTENT_STORE_JWT: Bearer token for the pinning endpoint (secret)
            - MC_CONTENT_STORE_TIMEOUT: Upload timeout in seconds

        A ``.env`` file in the project root is loaded first if present;
        variables already set in the environment win.
        """
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        content_store: Dict[str, Any] = {
            "upload_url": os.getenv("MC_CONTENT_STORE_URL", DEFAULT_UPLOAD_URL),
            "jwt": os.getenv("MC_CONTENT_STORE_JWT"),
        }
        if os.getenv("MC_CONTENT_STORE_TIMEOUT"):
            content_store["timeout_seconds"] = float(os.getenv("MC_CONTENT_STORE_TIMEOUT"))

        config_data = {
            "database": {
                "db_type": os.getenv("MC_DB_TYPE", "duckdb"),
                "db_path": os.getenv("MC_DB_PATH"),
            },
            "registry": {
                "administrator": os.getenv("MC_ADMINISTRATOR"),
                "reject_duplicate_verification": _env_flag("MC_REJECT_DUPLICATE_VERIFICATION"),
                "max_records_per_patient": _env_int("MC_MAX_RECORDS_PER_PATIENT"),
            },
            "content_store": content_store,
        }

        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        The file mirrors the environment layout: top-level ``database``,
        ``registry`` and ``content_store`` objects.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is not valid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        stat_info = config_file.stat()
        if stat_info.st_mode & 0o077 != 0:
            logger.warning(
                f"Configuration file has overly permissive permissions: {config_path}. "
                "Consider setting to 600 for files holding credentials."
            )

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_database_config(self) -> DatabaseConfig:
        if self._database_config is None:
            self._database_config = DatabaseConfig(**self._config_data.get("database", {}))
        return self._database_config

    def get_registry_config(self) -> RegistryConfig:
        if self._registry_config is None:
            self._registry_config = RegistryConfig(**self._config_data.get("registry", {}))
        return self._registry_config

    def get_content_store_config(self) -> ContentStoreConfig:
        """Get content-store configuration.

        Security Impact:
            - The JWT is wrapped in SecretStr before validation
        """
        if self._content_store_config is None:
            data = dict(self._config_data.get("content_store", {}))
            if data.get("jwt"):
                data["jwt"] = SecretStr(data["jwt"])
            else:
                data["jwt"] = None
            self._content_store_config = ContentStoreConfig(**data)
        return self._content_store_config
