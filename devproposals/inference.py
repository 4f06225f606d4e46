import logging
from typing import Any, Optional

from openai import OpenAI

from .config import Settings
from .errors import EmptyCompletionError, InferenceError, MissingAPIKeyError

logger = logging.getLogger(__name__)

EXTRACTION_TITLE = "DevProposals AI Analysis"
COMPARISON_TITLE = "DevProposals Comparison Analysis"

EXTRACTION_TEMPERATURE = 0.1
EXTRACTION_MAX_TOKENS = 2000
COMPARISON_TEMPERATURE = 0.1
COMPARISON_MAX_TOKENS = 4000


class OpenRouterClient:
    """
    Chat-completion calls against OpenRouter (or any OpenAI-compatible endpoint).

    One user message per call, one attempt unless settings.llm_max_retries says
    otherwise. The SDK client is created lazily so a missing key fails before
    any network activity.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.settings = settings
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.settings.api_key)

    def _make_client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(
                base_url=self.settings.base_url,
                api_key=self.settings.api_key,
                timeout=self.settings.llm_timeout,
                max_retries=self.settings.llm_max_retries,
                default_headers={"HTTP-Referer": self.settings.referrer},
            )
        return self._client

    def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = EXTRACTION_TEMPERATURE,
        max_tokens: int = EXTRACTION_MAX_TOKENS,
        title: str = EXTRACTION_TITLE,
    ) -> str:
        """Return the first completion text for prompt. Raises InferenceError."""
        if not self.configured:
            raise MissingAPIKeyError("OpenRouter API key not configured (OPENROUTER_API_KEY)")

        client = self._make_client()
        model_to_use = model or self.settings.model
        logger.info("Sending %d characters to %s", len(prompt), model_to_use)
        try:
            resp = client.chat.completions.create(
                model=model_to_use,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
                extra_headers={"HTTP-Referer": self.settings.referrer, "X-Title": title},
            )
        except Exception as e:
            logger.exception("Chat completion call failed")
            raise InferenceError(f"OpenRouter request failed: {e}") from e

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None
        if not content:
            raise EmptyCompletionError("No response from AI")
        logger.info("Completion received (%d characters)", len(content))
        return content
