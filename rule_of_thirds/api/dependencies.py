from __future__ import annotations

from functools import lru_cache

from rule_of_thirds.core.config import Settings
from rule_of_thirds.core.config import get_settings as load_settings
from rule_of_thirds.services.external_svc import ExternalSignalsCollector
from rule_of_thirds.services.internal_svc import InternalCollectorConfig, InternalResearchCollector
from rule_of_thirds.services.llm_svc import LLMService
from rule_of_thirds.services.orchestrator import Orchestrator
from rule_of_thirds.services.product_svc import ProductCollectorConfig, ProductMetricsCollector
from rule_of_thirds.services.synthesis_svc import Synthesizer
from rule_of_thirds.storage.report_storage import ReportStorage


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_external_collector() -> ExternalSignalsCollector:
    return ExternalSignalsCollector(get_settings())


@lru_cache(maxsize=1)
def get_internal_collector() -> InternalResearchCollector:
    # Shared across requests so the parsed-document cache survives between calls.
    return InternalResearchCollector(InternalCollectorConfig.from_settings(get_settings()))


@lru_cache(maxsize=1)
def get_product_collector() -> ProductMetricsCollector:
    return ProductMetricsCollector(ProductCollectorConfig.from_settings(get_settings()))


@lru_cache(maxsize=1)
def get_llm_service() -> LLMService:
    return LLMService(get_settings())


@lru_cache(maxsize=1)
def get_synthesizer() -> Synthesizer:
    return Synthesizer(get_settings(), llm_service=get_llm_service())


@lru_cache(maxsize=1)
def get_report_storage() -> ReportStorage:
    return ReportStorage.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    settings = get_settings()
    return Orchestrator(
        get_external_collector(),
        get_internal_collector(),
        get_product_collector(),
        get_synthesizer(),
        max_attempts=settings.ORCHESTRATOR_RETRIES,
        timeout_seconds=settings.ORCHESTRATOR_TIMEOUT_SECONDS,
        storage=get_report_storage(),
    )
