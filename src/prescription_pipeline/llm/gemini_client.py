# ============================================================================
# src/prescription_pipeline/llm/gemini_client.py
# ============================================================================
"""
Gemini Client

Calls the Generative Language REST API (generateContent) over aiohttp.
Requires GEMINI_API_KEY.
"""

import aiohttp
import asyncio
from typing import Dict, Any, Optional
from datetime import datetime

from .base import BaseLLMClient, BackendType
from ..utils.exceptions import ConfigurationError


DEFAULT_GEMINI_MODEL = "gemini-2.5-pro"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient(BaseLLMClient):
    """
    Config options:
        gemini_api_key: API key (required)
        gemini_model: Model name (default: gemini-2.5-pro)
        api_base: Override the REST endpoint root
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.api_key = self.config.get('gemini_api_key')
        if not self.api_key:
            raise ConfigurationError("Gemini backend requires GEMINI_API_KEY")

        self._model_name = self.config.get('gemini_model', DEFAULT_GEMINI_MODEL)
        self.api_base = self.config.get('api_base', GEMINI_API_BASE).rstrip('/')

        self.logger.info(f"Initialized Gemini client: {self._model_name}")

    @property
    def backend_type(self) -> BackendType:
        return BackendType.GEMINI

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def _endpoint(self) -> str:
        return f"{self.api_base}/models/{self._model_name}:generateContent"

    async def health_check(self) -> Dict[str, Any]:
        try:
            session = await self._get_session()
            async with session.get(
                f"{self.api_base}/models/{self._model_name}",
                params={"key": self.api_key},
            ) as response:
                healthy = response.status == 200
                return {
                    "healthy": healthy,
                    "backend": "gemini",
                    "model": self._model_name,
                    "details": "Model reachable" if healthy else f"API returned status {response.status}",
                }
        except aiohttp.ClientConnectorError:
            return {
                "healthy": False,
                "backend": "gemini",
                "model": self._model_name,
                "details": f"Cannot connect to {self.api_base}",
            }

    @staticmethod
    def _response_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False
    ) -> Dict[str, Any]:
        start_time = datetime.now()

        generation_config: Dict[str, Any] = {
            "maxOutputTokens": max_tokens or self.default_max_tokens,
            "temperature": temperature if temperature is not None else self.default_temperature,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        try:
            session = await self._get_session()

            async def _do_request():
                async with session.post(
                    self._endpoint,
                    params={"key": self.api_key},
                    json=payload,
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise RuntimeError(f"Gemini error ({response.status}): {error_text}")
                    return await response.json()

            data = await asyncio.wait_for(_do_request(), timeout=self.timeout)

        except asyncio.TimeoutError:
            self.logger.error(f"Gemini request timed out after {self.timeout}s (model={self._model_name})")
            raise TimeoutError(f"LLM request timed out after {self.timeout}s")
        except aiohttp.ClientConnectorError:
            raise ConnectionError(f"Cannot connect to {self.api_base}")

        inference_time = (datetime.now() - start_time).total_seconds()
        self._record_inference(inference_time)
        self.logger.info(f"Gemini responded in {inference_time:.2f}s")

        return {
            "text": self._response_text(data).strip(),
            "model": self._model_name,
            "backend": "gemini",
            "inference_time": inference_time,
        }
