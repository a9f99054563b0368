# ============================================================================
# src/prescription_pipeline/llm/ollama_client.py
# ============================================================================
"""
Ollama Client

Uses an Ollama server for local inference over its HTTP API.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull model: ollama pull MedAIBase/MedGemma1.5:4b-it-q8_0
    3. Start server: ollama serve
"""

import aiohttp
import asyncio
from typing import Dict, Any, Optional
from datetime import datetime

from .base import BaseLLMClient, BackendType


DEFAULT_OLLAMA_MODEL = "MedAIBase/MedGemma1.5:4b-it-q8_0"


class OllamaClient(BaseLLMClient):
    """
    Ollama-based inference client.

    Config options:
        ollama_host: Ollama server URL (default: http://localhost:11434)
        ollama_model: Model name
        max_tokens: Default max tokens
        temperature: Default temperature
        timeout: Per-request timeout in seconds
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('ollama_host', 'http://localhost:11434')
        self._model_name = self.config.get('ollama_model', DEFAULT_OLLAMA_MODEL)

        self.logger.info(f"Initialized Ollama client: {self.host} / {self._model_name}")

    @property
    def backend_type(self) -> BackendType:
        return BackendType.OLLAMA

    @property
    def model_name(self) -> str:
        return self._model_name

    def _health(self, healthy: bool, details: str) -> Dict[str, Any]:
        return {"healthy": healthy, "backend": "ollama", "model": self._model_name, "details": details}

    async def health_check(self) -> Dict[str, Any]:
        """Server reachable and the configured model pulled."""
        try:
            session = await self._get_session()
            async with session.get(f"{self.host}/api/tags") as response:
                if response.status != 200:
                    return self._health(False, f"Ollama server returned status {response.status}")
                data = await response.json()
        except aiohttp.ClientConnectorError:
            return self._health(False, f"Cannot connect to Ollama at {self.host}")

        pulled = [m.get('name', '') for m in data.get('models', [])]
        if not any(self._model_name in name for name in pulled):
            return self._health(False, f"Model not pulled (run: ollama pull {self._model_name})")
        return self._health(True, "Ollama server running and model available")

    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False
    ) -> Dict[str, Any]:
        """json_mode maps to Ollama's `format: json` constraint."""
        start_time = datetime.now()

        options = {
            "num_predict": max_tokens or self.default_max_tokens,
            "temperature": temperature if temperature is not None else self.default_temperature,
        }
        payload: Dict[str, Any] = {"model": self._model_name, "prompt": prompt, "stream": False, "options": options}
        if json_mode:
            payload["format"] = "json"

        try:
            session = await self._get_session()

            async def _do_request():
                async with session.post(f"{self.host}/api/generate", json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise RuntimeError(f"Ollama error ({response.status}): {error_text}")
                    return await response.json()

            data = await asyncio.wait_for(_do_request(), timeout=self.timeout)

        except asyncio.TimeoutError:
            self.logger.error(f"Ollama request timed out after {self.timeout}s (model={self._model_name})")
            raise TimeoutError(f"LLM request timed out after {self.timeout}s")
        except aiohttp.ClientConnectorError:
            raise ConnectionError(f"Cannot connect to Ollama at {self.host}")

        inference_time = (datetime.now() - start_time).total_seconds()
        self._record_inference(inference_time)

        generated_tokens = data.get('eval_count', 0)
        self.logger.info(f"Generated {generated_tokens} tokens in {inference_time:.2f}s")

        return {
            "text": data.get('response', '').strip(),
            "prompt_tokens": data.get('prompt_eval_count', 0),
            "generated_tokens": generated_tokens,
            "model": self._model_name,
            "backend": "ollama",
            "inference_time": inference_time,
        }
