# ============================================================================
# src/prescription_pipeline/config/base_config.py
# ============================================================================
"""
Base Configuration
- Project root
- Document store and audit databases
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseSettingsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_ROOT: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent.parent.parent,
        description="Root directory of the project"
    )

    DOCUMENT_DB_PATH: Path = Field(
        default=Path("data/prescriptions.db"),
        description="SQLite database backing the document store"
    )

    AUDIT_DB_PATH: Path = Field(
        default=Path("data/audit.db"),
        description="SQLite database for pipeline step audit trail"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        for directory in (self.DOCUMENT_DB_PATH.parent, self.AUDIT_DB_PATH.parent):
            directory.mkdir(parents=True, exist_ok=True)


# Global instance
base_settings = BaseSettingsConfig()
