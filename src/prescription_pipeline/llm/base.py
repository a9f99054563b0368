# ============================================================================
# src/prescription_pipeline/llm/base.py
# ============================================================================
"""
Base LLM Client Interface

Defines the abstract interface that all text-completion backends implement.
Supported backends:
- ollama: Ollama server (local inference)
- gemini: Google Generative Language REST API

Also hosts the tolerant JSON locator shared by extraction and safety
analysis.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from enum import Enum
import asyncio
import logging
import json
import re

import aiohttp
from json_repair import repair_json

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```[A-Za-z]*")


class BackendType(Enum):
    """Supported inference backends."""
    OLLAMA = "ollama"
    GEMINI = "gemini"


def strip_code_fences(text: str) -> str:
    """Drop markdown fence markers (``` and ```json) but keep their content."""
    return _FENCE_PATTERN.sub("", text)


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} span, or None.

    Braces inside JSON string literals do not count towards depth.
    """
    start_idx = text.find('{')
    if start_idx == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start_idx, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]

    return None


def extract_json_object(response_text: str) -> Optional[Dict[str, Any]]:
    """
    Extract the first JSON object from generated text.

    LLMs often wrap JSON in prose or markdown fences:
    "Here is the result: ```json {"key": "value"} ```"

    Fence markers are removed, the first balanced object is located by
    brace depth and parsed. A malformed span (single quotes, trailing
    commas) is handed to json_repair. Returns None when no object can be
    recovered.
    """
    if not response_text or not response_text.strip():
        logger.warning("Empty response text, no JSON to extract")
        return None

    span = find_balanced_object(strip_code_fences(response_text))
    if span is None:
        logger.warning(f"No JSON object found in response: {response_text[:200]}...")
        return None

    try:
        parsed = json.loads(span)
    except json.JSONDecodeError:
        parsed = repair_json(span, return_objects=True)
        if isinstance(parsed, dict) and parsed:
            logger.debug("json_repair fixed extracted JSON block")

    if isinstance(parsed, dict):
        return parsed

    logger.warning(f"Could not parse JSON from response: {response_text[:200]}...")
    return None


class BaseLLMClient(ABC):
    """
    Abstract base class for text-completion clients.

    All backends must implement:
    - generate(): Async text generation
    - health_check(): Verify backend is available

    Connectivity failures surface as ConnectionError and per-request
    timeouts as TimeoutError so callers can retry them.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

        self.default_max_tokens = self.config.get('max_tokens', 2048)
        self.default_temperature = self.config.get('temperature', 0.1)
        self.timeout = self.config.get('timeout', 120)

        self._inference_count = 0
        self._total_inference_time = 0.0

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    @abstractmethod
    def backend_type(self) -> BackendType:
        """Return the backend type."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False
    ) -> Dict[str, Any]:
        """
        Generate response from prompt.

        Returns:
            {
                "text": str,              # Generated text
                "model": str,             # Model identifier
                "backend": str,           # Backend type
                "inference_time": float,  # Seconds
            }
        """
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """
        Check if the backend is available and ready.

        Returns:
            {"healthy": bool, "backend": str, "model": str, "details": str}
        """
        pass

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    def _record_inference(self, seconds: float):
        self._inference_count += 1
        self._total_inference_time += seconds

    def get_statistics(self) -> Dict[str, Any]:
        """Get inference statistics."""
        avg_time = (
            self._total_inference_time / self._inference_count
            if self._inference_count > 0
            else 0.0
        )

        return {
            "backend": self.backend_type.value,
            "model": self.model_name,
            "inference_count": self._inference_count,
            "total_inference_time": self._total_inference_time,
            "average_inference_time": avg_time,
        }
