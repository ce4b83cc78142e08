"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from medclaim.infrastructure.config_manager import (
    ConfigManager,
    ContentStoreConfig,
    DatabaseConfig,
    RegistryConfig,
)

# Application metadata
APP_NAME = "MedClaim Registry"

# Local dashboard origins allowed by CORS
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


class Settings:
    """Application settings loaded from configuration manager and environment.

    Configuration objects are loaded lazily on first access so that tests can
    set environment variables before anything is read.
    """

    def __init__(self):
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("MC_APP_NAME", APP_NAME)
        self.log_level = os.getenv("MC_LOG_LEVEL", "INFO")
        self.json_logs = os.getenv("MC_JSON_LOGS", "false").lower() == "true"
        self.cors_origins = [
            origin.strip()
            for origin in os.getenv("MC_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ]

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def db_config(self) -> DatabaseConfig:
        return self.config_manager.get_database_config()

    @property
    def registry_config(self) -> RegistryConfig:
        return self.config_manager.get_registry_config()

    @property
    def content_store_config(self) -> ContentStoreConfig:
        return self.config_manager.get_content_store_config()

    def get_db_path(self) -> str:
        """Get database path for DuckDB.

        Returns:
            Database path or ':memory:' for in-memory database
        """
        if self.db_config.db_type == "duckdb":
            return self.db_config.db_path or ":memory:"
        raise ValueError(f"Database type '{self.db_config.db_type}' does not use db_path")


# Global settings instance
settings = Settings()
