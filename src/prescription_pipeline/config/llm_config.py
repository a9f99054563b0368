# ============================================================================
# src/prescription_pipeline/config/llm_config.py
# ============================================================================
"""
AI Collaborator Configuration
- Backend selection
- Sampling parameters
- Timeout
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LLM_BACKEND: str = Field(
        default="ollama",
        description="Text-completion backend: 'ollama' or 'gemini'"
    )
    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    OLLAMA_MODEL: str = Field(
        default="MedAIBase/MedGemma1.5:4b-it-q8_0",
        description="Ollama model used for extraction and safety lookups"
    )
    GEMINI_API_KEY: Optional[str] = Field(
        default=None,
        description="API key for the Gemini generateContent endpoint"
    )
    GEMINI_MODEL: str = Field(
        default="gemini-2.5-pro",
        description="Gemini model name"
    )
    LLM_MAX_TOKENS: int = Field(
        default=2048,
        description="Maximum tokens for a single completion"
    )
    LLM_TEMPERATURE: float = Field(
        default=0.1,
        description="Sampling temperature (0.1 = very deterministic)"
    )
    LLM_TIMEOUT: float = Field(
        default=120.0,
        gt=0,
        description="Maximum seconds for one completion request"
    )


llm_settings = LLMSettings()
