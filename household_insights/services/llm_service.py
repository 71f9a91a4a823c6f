"""
LLM Service for AI-Powered Insights
External text generation behind a small interface so the insight pipeline
can check capability first and treat every response as untrusted free text
"""
from abc import ABC, abstractmethod
from typing import Optional

from anthropic import Anthropic

from household_insights.config import get_settings
from household_insights.utils.logger import log

settings = get_settings()


class TextGenerator(ABC):
    """Single-shot text generation: one prompt in, free text out"""

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def generate(self, prompt: str, max_tokens: int) -> str:
        """
        Generate text for a prompt

        May raise; callers route any exception to their fallback path.
        """
        pass


class AnthropicTextGenerator(TextGenerator):
    """
    Text generation using Claude

    Disabled (is_available() is False) when LLM insights are switched off,
    no API key is configured, or the client fails to initialize.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key or settings.anthropic_api_key
        self.model = model or settings.llm_model
        self.client = None
        self.enabled = bool(settings.enable_llm_insights and api_key)

        if self.enabled:
            try:
                self.client = Anthropic(api_key=api_key)
                log.info("LLM Service initialized with Claude")
            except Exception as e:
                log.error(f"Failed to initialize Anthropic client: {str(e)}")
                self.enabled = False
        else:
            log.info("LLM insights disabled (no API key or feature disabled)")

    def is_available(self) -> bool:
        return self.enabled and self.client is not None

    def generate(self, prompt: str, max_tokens: int) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}]
        )

        text = response.content[0].text if response.content else ""
        log.info(f"AI response received ({len(text)} characters)")
        return text
