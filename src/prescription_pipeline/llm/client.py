# ============================================================================
# src/prescription_pipeline/llm/client.py
# ============================================================================
"""
LLM Client Factory

Usage:
    from prescription_pipeline.llm.client import create_client

    client = create_client({'backend': 'ollama'})
    client = create_client({'backend': 'gemini', 'gemini_api_key': '...'})

    result = await client.generate("List the medications in: ...")

Each call returns a new client; callers own its lifetime and pass it into
the components that need it.
"""

from typing import Dict, Any, Optional
import logging

from .base import BaseLLMClient
from .ollama_client import OllamaClient
from .gemini_client import GeminiClient
from ..config.llm_config import llm_settings

logger = logging.getLogger(__name__)


def get_env_config() -> Dict[str, Any]:
    """Client configuration drawn from LLMSettings (.env / environment)."""
    return {
        "backend": llm_settings.LLM_BACKEND,
        "ollama_host": llm_settings.OLLAMA_HOST,
        "ollama_model": llm_settings.OLLAMA_MODEL,
        "gemini_api_key": llm_settings.GEMINI_API_KEY,
        "gemini_model": llm_settings.GEMINI_MODEL,
        "max_tokens": llm_settings.LLM_MAX_TOKENS,
        "temperature": llm_settings.LLM_TEMPERATURE,
        "timeout": llm_settings.LLM_TIMEOUT,
    }


def create_client(config: Optional[Dict[str, Any]] = None) -> BaseLLMClient:
    """
    Factory function to create a text-completion client.

    Passed config values take precedence over environment settings.

    Args:
        config: Configuration dict; `backend` is "ollama" (default) or "gemini"

    Raises:
        ValueError: If backend type is not supported
    """
    config = {**get_env_config(), **(config or {})}
    backend = (config.get('backend') or "ollama").lower()

    if backend == "ollama":
        client = OllamaClient(config)
    elif backend == "gemini":
        client = GeminiClient(config)
    else:
        raise ValueError(
            f"Unknown backend: {backend}. Supported backends: ollama, gemini"
        )

    logger.info(f"Created {backend} client ({client.model_name})")
    return client
