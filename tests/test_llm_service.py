"""
Tests for the LLM service: provider selection, request shape and error mapping.
"""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import AsyncAzureOpenAI, AsyncOpenAI

from rule_of_thirds.core.exceptions import LLMServiceError
from rule_of_thirds.core.prompts import SYSTEM_INSTRUCTIONS
from rule_of_thirds.services.llm_svc import LLMService


def _client(response=None, error=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return client


def _response(content="Strategic analysis", model="gpt-4o-mini-2024-07-18"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=80, total_tokens=200),
        model=model,
    )


class TestProviderSelection:
    def test_unconfigured_without_credentials(self, settings):
        service = LLMService(settings)
        assert service.provider is None
        assert service.is_configured is False

    def test_openai_key(self, settings):
        settings.OPENAI_API_KEY = "sk-test"
        service = LLMService(settings)
        assert service.provider == "openai"
        assert isinstance(service.client, AsyncOpenAI)
        assert service.model == "gpt-4o-mini"

    def test_complete_azure_configuration_wins(self, settings):
        settings.OPENAI_API_KEY = "sk-test"
        settings.AZURE_OPENAI_ENDPOINT = "https://example.openai.azure.com"
        settings.AZURE_OPENAI_API_KEY = "azure-key"
        settings.AZURE_OPENAI_DEPLOYMENT_NAME = "insights-deployment"
        service = LLMService(settings)
        assert service.provider == "azure"
        assert isinstance(service.client, AsyncAzureOpenAI)
        assert service.model == "insights-deployment"

    def test_incomplete_azure_configuration_is_ignored(self, settings):
        settings.AZURE_OPENAI_ENDPOINT = "https://example.openai.azure.com"
        assert LLMService(settings).provider is None


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_success(self, settings):
        settings.OPENAI_API_KEY = "sk-test"
        client = _client(_response())
        service = LLMService(settings, client=client)

        result = await service.synthesize("Analyse checkout flow")

        assert result.status == "completed"
        assert result.content == "Strategic analysis"
        assert result.model == "gpt-4o-mini-2024-07-18"
        assert result.usage == {"prompt_tokens": 120, "completion_tokens": 80, "total_tokens": 200}
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_INSTRUCTIONS}
        assert kwargs["messages"][1] == {"role": "user", "content": "Analyse checkout flow"}
        assert kwargs["max_tokens"] == settings.OPENAI_MAX_TOKENS
        assert kwargs["temperature"] == settings.OPENAI_TEMPERATURE

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self, settings):
        with pytest.raises(LLMServiceError):
            await LLMService(settings).synthesize("prompt")

    @pytest.mark.asyncio
    async def test_client_error_is_wrapped(self, settings):
        settings.OPENAI_API_KEY = "sk-test"
        service = LLMService(settings, client=_client(error=RuntimeError("quota exceeded")))

        with pytest.raises(LLMServiceError) as excinfo:
            await service.synthesize("prompt")

        assert "quota exceeded" in str(excinfo.value)
        assert excinfo.value.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_empty_content_raises(self, settings):
        settings.OPENAI_API_KEY = "sk-test"
        service = LLMService(settings, client=_client(_response(content="")))

        with pytest.raises(LLMServiceError, match="empty response"):
            await service.synthesize("prompt")
