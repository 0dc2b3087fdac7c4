"""Table-driven insight rules evaluated against derived metrics."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from flowlytics.derivation import DerivedMetrics


class Severity(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    OPPORTUNITY = "Opportunity"


@dataclass(frozen=True)
class Insight:
    id: str
    title: str
    description: str
    category: str
    severity: Severity
    impact: str
    recommendation: str
    estimated_savings: str


@dataclass(frozen=True)
class InsightThresholds:
    cod_cancellation_rate_pct: float = 50.0
    repeat_rate_pct: float = 30.0
    high_value_customer_count: int = 0


DEFAULT_INSIGHT_THRESHOLDS = InsightThresholds()


@dataclass(frozen=True)
class InsightRule:
    """One row of the rule table: a pure predicate and the insight it emits."""

    id: str
    predicate: Callable[[DerivedMetrics, InsightThresholds], bool]
    build: Callable[[DerivedMetrics], Insight]


def _cod_high_cancellation(metrics: DerivedMetrics) -> Insight:
    return Insight(
        id="cod_high_cancellation",
        title="High COD Cancellation Detected",
        description=(
            f"COD payments show {metrics.cod_cancellation_rate:.1f}% cancellation rate, "
            "significantly impacting revenue."
        ),
        category="Payment Risk",
        severity=Severity.CRITICAL,
        impact="Revenue Loss",
        recommendation="Implement advance payment confirmation or reduce COD availability in high-risk areas.",
        estimated_savings="Potential 5-10% revenue recovery",
    )


def _low_repeat_rate(metrics: DerivedMetrics) -> Insight:
    return Insight(
        id="low_repeat_rate",
        title="Customer Retention Opportunity",
        description=(
            f"Only {metrics.repeat_rate:.1f}% of customers make repeat purchases. "
            "Industry average is 35-40%."
        ),
        category="Customer Growth",
        severity=Severity.OPPORTUNITY,
        impact="Untapped Revenue Potential",
        recommendation="Implement loyalty program, personalized email campaigns, and post-purchase engagement.",
        estimated_savings="Potential 15-25% revenue growth",
    )


def _high_value_customers(metrics: DerivedMetrics) -> Insight:
    return Insight(
        id="high_value_customers",
        title="High Value Customers Identified",
        description=f"{metrics.high_value_customer_count} customers spending over ₹1L each.",
        category="Customer Intelligence",
        severity=Severity.OPPORTUNITY,
        impact="Revenue Growth",
        recommendation="Create VIP program with exclusive offers, early access, and personalized service.",
        estimated_savings="Potential 20-30% higher lifetime value",
    )


DEFAULT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        id="cod_high_cancellation",
        predicate=lambda m, t: m.cod_orders > 0 and m.cod_cancellation_rate > t.cod_cancellation_rate_pct,
        build=_cod_high_cancellation,
    ),
    InsightRule(
        id="low_repeat_rate",
        predicate=lambda m, t: m.repeat_rate < t.repeat_rate_pct,
        build=_low_repeat_rate,
    ),
    InsightRule(
        id="high_value_customers",
        predicate=lambda m, t: m.high_value_customer_count > t.high_value_customer_count,
        build=_high_value_customers,
    ),
)


def evaluate_insights(
    metrics: DerivedMetrics,
    rules: Iterable[InsightRule] = DEFAULT_RULES,
    thresholds: InsightThresholds = DEFAULT_INSIGHT_THRESHOLDS,
) -> tuple[Insight, ...]:
    """Evaluate rules in table order; each fires at most once."""
    return tuple(rule.build(metrics) for rule in rules if rule.predicate(metrics, thresholds))


def first_with_severity(insights: Iterable[Insight], severity: Severity) -> Insight | None:
    for insight in insights:
        if insight.severity is severity:
            return insight
    return None
