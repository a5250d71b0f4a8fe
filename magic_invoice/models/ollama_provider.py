"""Ollama-based model provider for self-hosted LLM inference.

Uses a local Ollama server in JSON output mode.
See: https://ollama.ai/
"""

import logging

import httpx

from magic_invoice.models.base import CompletionResult, ModelProvider
from magic_invoice.shared.config import Settings

logger = logging.getLogger(__name__)


class OllamaModelProvider(ModelProvider):
    """Ollama provider (models like Qwen2.5, Llama3, Mistral)."""

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=settings.model_timeout_seconds)

    @property
    def provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Check that a server URL and model are configured."""
        return bool(self._base_url and self._model)

    def generate_json(self, prompt: str) -> CompletionResult:
        """Generate an invoice JSON reply with Ollama.

        Args:
            prompt: Fully-built instruction prompt

        Returns:
            CompletionResult with reply text or error, provider='ollama'
        """
        try:
            text = self._call_with_retry(self._generate, prompt, retry_on=(httpx.HTTPError,))
            return CompletionResult(text=text.strip(), success=True, provider=self.provider_name)
        except Exception as e:
            logger.error(f"Ollama request failed: {e}")
            return CompletionResult(
                text=None,
                success=False,
                error=f"Ollama request failed: {str(e)}",
                provider=self.provider_name,
            )

    def _generate(self, prompt: str) -> str:
        """POST one non-streaming generate request.

        Raises:
            httpx.HTTPError: On transport errors, timeouts and non-2xx replies
        """
        response = self._client.post(
            f"{self._base_url}/api/generate",
            json={
                "model": self._model,
                "prompt": prompt,
                "stream": False,
                "format": "json",
                "options": {
                    "temperature": self.settings.model_temperature,
                    "num_predict": 1024,
                },
            },
        )
        response.raise_for_status()
        result: str = response.json().get("response", "") or ""
        return result
