"""Abstract base class for generative model providers.

Enables switching between model backends (Gemini, OpenAI, Ollama) behind one
interface. Providers only move text: they send the prompt and hand back the
raw reply. Parsing and normalization happen in the pipeline.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from magic_invoice.shared.config import Settings


class CompletionResult(BaseModel):
    """Result of a model call.

    Attributes:
        text: Raw reply text ("" when the model answered with nothing)
        success: Whether the call itself succeeded
        error: Error message if the call failed
        provider: Name of provider that served the call (e.g., 'gemini')
    """

    text: str | None
    success: bool
    error: str | None = None
    provider: str


class ModelProvider(ABC):
    """Abstract base class for invoice-generation model providers.

    Implementations must never raise from ``generate_json``: transport and
    provider errors are reported through ``CompletionResult.success``.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def generate_json(self, prompt: str) -> CompletionResult:
        """Send the prompt and return the model's raw JSON text.

        Args:
            prompt: Fully-built instruction prompt

        Returns:
            CompletionResult with reply text or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured (credentials, endpoint).

        Must not perform network calls; it runs on every request.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'gemini', 'openai')
        """
        pass

    def _call_with_retry(
        self,
        fn: Callable[..., Any],
        *args: Any,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> Any:
        """Call ``fn`` with up to ``settings.model_max_attempts`` attempts.

        Uses exponential backoff with jitter between attempts. With the
        default of one attempt the call is made exactly once.

        Raises:
            Exception: The last error once attempts are exhausted
        """
        retrying = Retrying(
            retry=retry_if_exception_type(retry_on),
            wait=wait_exponential_jitter(initial=1, max=10),
            stop=stop_after_attempt(self.settings.model_max_attempts),
            reraise=True,
        )
        return retrying(fn, *args)
