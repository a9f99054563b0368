# ============================================================================
# src/prescription_pipeline/config/pipeline_config.py
# ============================================================================
"""
Pipeline Thresholds & Policy
- Manual review threshold
- Dose offsets
- Retry / backoff
- Persistence timeout
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LOW_CONFIDENCE_THRESHOLD: float = Field(
        default=0.70,
        ge=0.0, le=1.0,
        description="Below this extraction confidence, flag for manual review"
    )
    FIRST_DOSE_OFFSET_HOURS: int = Field(
        default=1,
        description="First reminder, hours after run start"
    )
    SECOND_DOSE_OFFSET_HOURS: int = Field(
        default=12,
        description="Second reminder for twice-daily medications, hours after run start"
    )
    RETRY_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        description="Attempts for token acquisition and connectivity failures"
    )
    RETRY_BASE_DELAY: float = Field(
        default=0.5,
        ge=0.0,
        description="First backoff delay in seconds (doubles each attempt)"
    )
    RETRY_MAX_DELAY: float = Field(
        default=8.0,
        ge=0.0,
        description="Upper bound on a single backoff delay"
    )
    STORE_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        description="Maximum seconds for one document store call"
    )


pipeline_settings = PipelineSettings()
