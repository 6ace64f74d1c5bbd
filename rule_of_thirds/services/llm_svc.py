from __future__ import annotations

import logging
import time
from typing import Any, cast

from openai import AsyncAzureOpenAI, AsyncOpenAI

from rule_of_thirds.core.config import Settings, get_settings
from rule_of_thirds.core.exceptions import LLMServiceError
from rule_of_thirds.core.prompts import SYSTEM_INSTRUCTIONS
from rule_of_thirds.domain.models import LLMSynthesis

logger = logging.getLogger(__name__)


class LLMService:
    """
    Text generation for the synthesis step, via OpenAI or Azure OpenAI.

    Azure is used when its endpoint, key and deployment are all present;
    otherwise a plain OpenAI key is used. With neither, the service is
    unconfigured and callers must not invoke :meth:`synthesize`.
    """

    def __init__(self, settings: Settings | None = None, client: Any = None) -> None:
        """
        Initialise the LLM service.

        Args:
            settings: Application settings. Falls back to global settings
                      if not provided.
            client: Pre-built async client, mainly for tests.
        """
        self.settings = settings or get_settings()
        self.provider = self.settings.llm_provider
        self.client: AsyncOpenAI | AsyncAzureOpenAI | None = client
        if self.provider == "azure":
            self.model = self.settings.AZURE_OPENAI_DEPLOYMENT_NAME or ""
            if self.client is None:
                self.client = AsyncAzureOpenAI(
                    api_key=self.settings.AZURE_OPENAI_API_KEY,
                    azure_endpoint=self.settings.AZURE_OPENAI_ENDPOINT or "",
                    api_version=self.settings.AZURE_OPENAI_API_VERSION,
                )
        else:
            self.model = self.settings.OPENAI_MODEL
            if self.client is None and self.provider == "openai":
                self.client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
        if self.client is None:
            logger.info("LLMService initialised without credentials. Synthesis will be skipped.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def synthesize(self, prompt: str) -> LLMSynthesis:
        """
        Send one enriched prompt with the analyst persona as system message.

        Args:
            prompt: Fully rendered user prompt.

        Returns:
            A completed :class:`LLMSynthesis` with content, model, token usage
            and elapsed time.

        Raises:
            LLMServiceError: If the service is unconfigured or the call fails.
        """
        if self.client is None:
            raise LLMServiceError("LLM service is not configured", model=self.model)

        messages = [
            {"role": "system", "content": SYSTEM_INSTRUCTIONS},
            {"role": "user", "content": prompt},
        ]
        started = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=cast(Any, messages),
                max_tokens=self.settings.OPENAI_MAX_TOKENS,
                temperature=self.settings.OPENAI_TEMPERATURE,
            )
        except Exception as e:
            logger.error("LLM synthesis failed: %s", e, exc_info=True)
            raise LLMServiceError(f"LLM synthesis failed: {e}", model=self.model) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMServiceError("LLM returned an empty response", model=self.model)

        usage = None
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMSynthesis(
            status="completed",
            content=content,
            model=getattr(response, "model", None) or self.model,
            usage=usage,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )
