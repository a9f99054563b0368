# ============================================================================
# src/prescription_pipeline/llm/__init__.py
# ============================================================================
"""
LLM module - text-completion clients, prompts and response contracts
"""

from .base import BaseLLMClient, BackendType, extract_json_object
from .client import create_client
from .ollama_client import OllamaClient
from .gemini_client import GeminiClient

__all__ = [
    "BaseLLMClient",
    "BackendType",
    "extract_json_object",
    "create_client",
    "OllamaClient",
    "GeminiClient",
]
