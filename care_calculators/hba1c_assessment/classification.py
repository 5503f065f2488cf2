"""HbA1c risk tiering.

Bands are inclusive on their lower bound:
    - value < 7.0          -> WellControlled
    - 7.0 <= value < 9.0   -> NeedsAttention
    - value >= 9.0         -> HighRisk

Thresholds are compared as exact decimals so that 7.0 and 9.0 land in the
upper band regardless of how the value was stored.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from care_calculators.hba1c_assessment.models import AssessmentResult, RiskCategory

NEEDS_ATTENTION_THRESHOLD = Decimal("7.0")
HIGH_RISK_THRESHOLD = Decimal("9.0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored numeric value to Decimal without float rounding artefacts."""
    if isinstance(value, Decimal):
        return value
    # str() keeps 6.99 as Decimal("6.99") rather than its binary expansion
    return Decimal(str(value))


def classify_hba1c(value: Decimal | None) -> RiskCategory:
    """Map an HbA1c value to its risk category.

    Args:
        value: HbA1c value in percent, or None when no eligible result exists

    Returns:
        The RiskCategory for the value (NoData when value is None)
    """
    if value is None:
        return RiskCategory.NO_DATA

    value = to_decimal(value)
    if value < NEEDS_ATTENTION_THRESHOLD:
        return RiskCategory.WELL_CONTROLLED
    elif value < HIGH_RISK_THRESHOLD:
        return RiskCategory.NEEDS_ATTENTION
    else:
        return RiskCategory.HIGH_RISK


def summarize_results(results: Iterable[AssessmentResult]) -> dict[str, int]:
    """Count results per risk category, plus totals for errors and enrollment."""
    summary: dict[str, int] = {"total": 0, "errors": 0, "in_program": 0}
    for category in RiskCategory:
        summary[category.value] = 0

    for result in results:
        summary["total"] += 1
        if result.has_error:
            summary["errors"] += 1
        if result.is_in_program:
            summary["in_program"] += 1
        if result.risk_category is not None:
            summary[result.risk_category.value] += 1

    return summary
