from rule_of_thirds.services.analytics_svc import MetricsAnalyticsService
from rule_of_thirds.services.external_svc import ExternalSignalsCollector
from rule_of_thirds.services.internal_svc import InternalResearchCollector
from rule_of_thirds.services.llm_svc import LLMService
from rule_of_thirds.services.metrics_provider import MetricsProvider, SimulatedMetricsProvider
from rule_of_thirds.services.orchestrator import Orchestrator
from rule_of_thirds.services.product_svc import ProductMetricsCollector
from rule_of_thirds.services.synthesis_svc import Synthesizer

__all__ = [
    "ExternalSignalsCollector",
    "InternalResearchCollector",
    "LLMService",
    "MetricsAnalyticsService",
    "MetricsProvider",
    "Orchestrator",
    "ProductMetricsCollector",
    "SimulatedMetricsProvider",
    "Synthesizer",
]
