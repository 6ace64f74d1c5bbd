from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class TemplateName(str, Enum):
    """Report templates used by the synthesis step."""
    PRIMARY_SYNTHESIS = "primary_synthesis"
    CROSS_REFERENCE = "cross_reference"
    ACTIONABLE_INSIGHTS = "actionable_insights"
    RISK_ASSESSMENT = "risk_assessment"


# The analyst persona - sent as the system message on every synthesis call
SYSTEM_INSTRUCTIONS = (
    "You are an expert strategic analyst specialising in product intelligence and market analysis. "
    "Provide comprehensive, actionable insights based on the Rule of Thirds methodology that combines "
    "external market signals, internal research, and product metrics."
)

TEMPLATE_FILES: dict[TemplateName, str] = {
    TemplateName.PRIMARY_SYNTHESIS: "llmSynthesisPrompt.txt",
    TemplateName.CROSS_REFERENCE: "crossReferencePrompt.txt",
    TemplateName.ACTIONABLE_INSIGHTS: "actionableInsightsPrompt.txt",
    TemplateName.RISK_ASSESSMENT: "riskAssessmentPrompt.txt",
}

BUILT_IN_TEMPLATES: dict[TemplateName, str] = {
    TemplateName.PRIMARY_SYNTHESIS: """# Rule of Thirds Signal Analysis for {topic}

Analyse the signals gathered for {topic} across all three sources:

## Signal Summary
- Total Signals: {totalSignals}
- Execution Time: {executionTime}ms
- Topic: {topic}
- Focus Area: {focusArea}
- External Signals: {externalSignalCount}
- Internal Research: {internalSignalCount}
- Product Metrics: {productSignalCount}

## Analysis Framework
1. Identify convergent signals across all sources
2. Highlight divergent signals requiring investigation
3. Assess signal strength and reliability
4. Generate actionable insights for product strategy
5. Provide confidence levels for each insight

## Strategic Analysis Requirements
Please provide:
1. **Executive Summary** - Key findings in 2-3 sentences
2. **Cross-Source Validation** - Where do signals align or conflict?
3. **Strategic Opportunities** - What actions should be prioritised?
4. **Risk Assessment** - What threats or gaps need attention?
5. **Confidence Levels** - Rate each insight (High/Medium/Low confidence)

Format your response with clear headings and actionable recommendations.""",
    TemplateName.CROSS_REFERENCE: """# Cross-Reference Analysis

Compare findings across the three signal sources:
1. Where do multiple sources align?
2. What contradictions exist?
3. Which insights have strongest evidence?
4. What additional data is needed?

Prioritise insights by evidence strength and strategic impact.""",
    TemplateName.ACTIONABLE_INSIGHTS: """# Actionable Insights Generation

Based on the Rule of Thirds analysis:

## Immediate Actions (0-30 days)
- What can be acted on immediately?

## Short-term Initiatives (1-3 months)
- What product decisions should be made?

## Strategic Planning (3-12 months)
- How should long-term strategy adapt?

Focus on insights with multiple source validation.""",
    TemplateName.RISK_ASSESSMENT: """# Risk Assessment Analysis

Evaluate risks from the Rule of Thirds analysis:

## Signal Gaps
- What critical information is missing?

## Conflicting Signals
- What contradictions need resolution?

## Market Risks
- What external threats or opportunities?

Prioritise by impact and likelihood with mitigation strategies.""",
}


def load_templates(template_dir: str | Path | None) -> tuple[dict[TemplateName, str], bool]:
    """Load report templates from disk, falling back to the built-in set.

    The directory is all-or-nothing: if any template file is missing or
    unreadable, every template comes from the built-in set so that a report
    never mixes two template generations.

    Args:
        template_dir: Directory holding the four template files, or None.

    Returns:
        A ``(templates, from_disk)`` pair.
    """
    if not template_dir:
        return dict(BUILT_IN_TEMPLATES), False

    directory = Path(template_dir)
    try:
        loaded = {
            name: (directory / filename).read_text(encoding="utf-8")
            for name, filename in TEMPLATE_FILES.items()
        }
    except OSError as exc:
        logger.warning("Template files not found in %s, using built-in templates: %s", directory, exc)
        return dict(BUILT_IN_TEMPLATES), False
    return loaded, True


def fill_template(template: str, values: dict[str, object]) -> str:
    """Substitute ``{name}`` placeholders literally; unknown braces are left alone."""
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace("{" + key + "}", str(value))
    return rendered
