from __future__ import annotations

from typing import NamedTuple

# Topics containing any of these get deployment/validation-themed metrics.
INFRASTRUCTURE_KEYWORDS: tuple[str, ...] = (
    "bicep",
    "infrastructure",
    "deployment",
    "iac",
    "testing",
    "validation",
)

METRIC_CATEGORIES: tuple[str, ...] = ("usage", "performance", "engagement", "conversion")

CATEGORY_LABELS: dict[str, str] = {
    "usage": "Usage Analytics",
    "performance": "Performance Monitoring",
    "engagement": "User Engagement Analytics",
    "conversion": "Conversion Analytics",
}


class MetricSpec(NamedTuple):
    """Value range of one simulated metric."""

    name: str
    low: float
    high: float
    description: str
    integer: bool = True


INFRASTRUCTURE_METRICS: dict[str, tuple[MetricSpec, ...]] = {
    "usage": (
        MetricSpec("bicep_deployments_daily", 150, 200, "Daily Bicep template deployments across all environments"),
        MetricSpec("validation_runs", 320, 400, "Bicep template validation executions"),
        MetricSpec("deployment_failures", 45, 60, "Failed Bicep deployments requiring rollback"),
        MetricSpec("template_modifications", 85, 110, "Bicep template commits and updates"),
    ),
    "performance": (
        MetricSpec("deployment_time_seconds", 90, 270, "Average Bicep deployment execution time"),
        MetricSpec("validation_time_seconds", 5, 20, "Average template validation time"),
        MetricSpec("deployment_failure_rate_percent", 28, 36, "Percentage of deployments that fail", False),
        MetricSpec("rollback_time_minutes", 30, 75, "Average time to rollback failed deployments"),
    ),
    "engagement": (
        MetricSpec("active_engineers", 45, 60, "Engineers actively working with Bicep templates"),
        MetricSpec("manual_review_hours", 10, 15, "Hours spent on manual template reviews per day"),
        MetricSpec("environments_deployed", 3, 5, "Number of environments with active deployments"),
        MetricSpec("policy_violations_detected", 8, 20, "Azure Policy violations found in deployments"),
    ),
    "conversion": (
        MetricSpec(
            "deployment_success_rate_percent", 65, 75, "Percentage of deployments that succeed on first attempt", False
        ),
        MetricSpec("time_saved_hours", 4, 12, "Estimated engineer hours saved through automation"),
        MetricSpec("cost_savings_usd", 1500, 4500, "Cost savings from reduced failed deployments and rollbacks"),
        MetricSpec("testing_coverage_percent", 45, 60, "Percentage of templates with automated testing", False),
    ),
}

GENERIC_METRICS: dict[str, tuple[MetricSpec, ...]] = {
    "usage": (
        MetricSpec("daily_active_users", 1000, 11000, "Unique users active per day"),
        MetricSpec("feature_usage", 300, 3300, "Daily uses of the feature"),
    ),
    "performance": (
        MetricSpec("response_time_ms", 200, 700, "Average response time"),
        MetricSpec("error_rate_percent", 0, 5, "Share of requests that error", False),
    ),
    "engagement": (
        MetricSpec("session_duration_minutes", 10, 40, "Average session length"),
        MetricSpec("page_views_per_session", 3, 13, "Pages viewed per session"),
    ),
    "conversion": (
        MetricSpec("conversion_rate_percent", 2, 12, "Share of sessions that convert", False),
        MetricSpec("revenue_usd", 10000, 60000, "Daily attributed revenue"),
    ),
}

ANALYTICS_EVENT_SUFFIXES: tuple[str, ...] = ("view", "click", "complete", "share")


def is_infrastructure_topic(topic: str) -> bool:
    lowered = topic.lower()
    return any(keyword in lowered for keyword in INFRASTRUCTURE_KEYWORDS)
