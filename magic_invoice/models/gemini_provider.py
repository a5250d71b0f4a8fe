"""Gemini-based model provider.

Calls the Gemini ``generateContent`` REST endpoint with JSON output mode.
Requires GEMINI_API_KEY (or APP_GEMINI_API_KEY).

See: https://ai.google.dev/api/generate-content
"""

import logging
from typing import Any

import httpx

from magic_invoice.models.base import CompletionResult, ModelProvider
from magic_invoice.shared.config import Settings

logger = logging.getLogger(__name__)


class GeminiModelProvider(ModelProvider):
    """Gemini provider (default ``gemini-2.5-flash``)."""

    def __init__(self, settings: Settings) -> None:
        """Initialize Gemini provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._model = settings.gemini_model
        self._client = httpx.Client(timeout=settings.model_timeout_seconds)

    @property
    def provider_name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        """Check if a Gemini API key is configured."""
        return bool(self.settings.gemini_api_key.strip())

    def generate_json(self, prompt: str) -> CompletionResult:
        """Generate an invoice JSON reply with Gemini.

        Args:
            prompt: Fully-built instruction prompt

        Returns:
            CompletionResult with reply text or error, provider='gemini'
        """
        if not self.is_available():
            return CompletionResult(
                text=None,
                success=False,
                error="GEMINI_API_KEY is not set",
                provider=self.provider_name,
            )

        try:
            payload = self._call_with_retry(self._generate, prompt, retry_on=(httpx.HTTPError,))
            return CompletionResult(
                text=self._extract_text(payload),
                success=True,
                provider=self.provider_name,
            )
        except Exception as e:
            logger.error(f"Gemini request failed: {e}")
            return CompletionResult(
                text=None,
                success=False,
                error=f"Gemini request failed: {str(e)}",
                provider=self.provider_name,
            )

    def _generate(self, prompt: str) -> dict[str, Any]:
        """POST one generateContent request.

        Raises:
            httpx.HTTPError: On transport errors, timeouts and non-2xx replies
        """
        response = self._client.post(
            f"{self._base_url}/v1beta/models/{self._model}:generateContent",
            headers={"x-goog-api-key": self.settings.gemini_api_key},
            json={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self.settings.model_temperature,
                    "responseMimeType": "application/json",
                },
            },
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    def _extract_text(self, payload: dict[str, Any]) -> str:
        """Join the text parts of the first candidate ("" if there is none)."""
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback")
            if feedback:
                logger.warning(f"Gemini returned no candidates: {feedback}")
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts).strip()
