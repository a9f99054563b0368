# ============================================================================
# src/prescription_pipeline/config/logging_config.py
# ============================================================================
"""
Logging & Monitoring Settings
- Log level
- JSON output
- Audit trail
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON log lines"
    )
    LOG_FILE: Optional[Path] = Field(
        default=None,
        description="Optional log file"
    )
    ENABLE_AUDIT_TRAIL: bool = Field(
        default=True,
        description="Record every step transition in the audit database"
    )


logging_settings = LoggingSettings()
