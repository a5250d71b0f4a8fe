"""OpenAI-based model provider.

Uses the OpenAI chat completions API in JSON mode. Requires OPENAI_API_KEY
(or APP_OPENAI_API_KEY).
"""

import logging
from typing import Any

from openai import OpenAI, OpenAIError

from magic_invoice.models.base import CompletionResult, ModelProvider
from magic_invoice.parsing.prompt import SYSTEM_ROLE
from magic_invoice.shared.config import Settings

logger = logging.getLogger(__name__)


class OpenAIModelProvider(ModelProvider):
    """OpenAI provider (default ``gpt-4o-mini``)."""

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        """Check if an OpenAI API key is configured."""
        return bool(self.settings.openai_api_key.strip())

    def generate_json(self, prompt: str) -> CompletionResult:
        """Generate an invoice JSON reply with OpenAI.

        Args:
            prompt: Fully-built instruction prompt

        Returns:
            CompletionResult with reply text or error, provider='openai'
        """
        if not self.is_available():
            return CompletionResult(
                text=None,
                success=False,
                error="OPENAI_API_KEY is not set",
                provider=self.provider_name,
            )

        try:
            if self._client is None:
                # Retries are handled by _call_with_retry, not the SDK
                self._client = OpenAI(
                    api_key=self.settings.openai_api_key,
                    timeout=self.settings.model_timeout_seconds,
                    max_retries=0,
                )

            response = self._call_with_retry(self._complete, prompt, retry_on=(OpenAIError,))
            content = response.choices[0].message.content if response.choices else None
            return CompletionResult(
                text=(content or "").strip(),
                success=True,
                provider=self.provider_name,
            )
        except Exception as e:
            logger.error(f"OpenAI request failed: {e}")
            return CompletionResult(
                text=None,
                success=False,
                error=f"OpenAI request failed: {str(e)}",
                provider=self.provider_name,
            )

    def _complete(self, prompt: str) -> Any:
        """Call the chat completions endpoint in JSON mode."""
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        return self._client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_ROLE},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=self.settings.model_temperature,
        )
