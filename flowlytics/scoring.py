"""Composite business health score with status bands and recommended actions.

The score starts at 100 and loses points for each risk bracket the batch
falls into. Brackets on the same signal are checked independently, so a COD
cancellation rate above 50% pays both the >50% and the >30% deduction.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from flowlytics.derivation import DerivedMetrics
from flowlytics.insights import Insight, Severity, first_with_severity

HealthStatus = Literal["Excellent", "Good", "Needs Attention", "Critical"]


@dataclass(frozen=True)
class DeductionRule:
    signal: str
    direction: Literal["above", "below"]
    threshold_pct: float
    points: float


@dataclass(frozen=True)
class ScoreBands:
    excellent_min: float = 80.0
    good_min: float = 60.0
    needs_attention_min: float = 40.0


@dataclass(frozen=True)
class ScoringConfig:
    base_score: float = 100.0
    bands: ScoreBands = ScoreBands()
    deductions: tuple[DeductionRule, ...] = (
        DeductionRule("cod_cancellation_rate", "above", 50.0, 20.0),
        DeductionRule("cod_cancellation_rate", "above", 30.0, 10.0),
        DeductionRule("repeat_rate", "below", 20.0, 10.0),
        DeductionRule("repeat_rate", "below", 30.0, 5.0),
        DeductionRule("profit_margin", "below", 15.0, 10.0),
        DeductionRule("profit_margin", "below", 20.0, 5.0),
    )
    fallback_opportunity: str = "Optimize existing customer base for repeat purchases"
    fallback_risk: str = "No critical risks detected"


DEFAULT_SCORING_CONFIG = ScoringConfig()


@dataclass(frozen=True)
class AppliedDeduction:
    signal: str
    value_pct: float
    threshold_pct: float
    points: float


@dataclass(frozen=True)
class HealthScore:
    overall_score: int
    health_status: HealthStatus
    recommended_action: str
    top_opportunity: str
    critical_risk: str
    deductions: tuple[AppliedDeduction, ...] = ()


def _signal_value(metrics: DerivedMetrics, signal: str) -> float:
    return float(getattr(metrics, signal))


def _triggered(rule: DeductionRule, value: float) -> bool:
    if rule.direction == "above":
        return value > rule.threshold_pct
    return value < rule.threshold_pct


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def classify_health(score: float, bands: ScoreBands = ScoreBands()) -> HealthStatus:
    if score >= bands.excellent_min:
        return "Excellent"
    if score >= bands.good_min:
        return "Good"
    if score >= bands.needs_attention_min:
        return "Needs Attention"
    return "Critical"


def recommended_action_for(status: HealthStatus) -> str:
    if status == "Excellent":
        return "Maintain current strategies and focus on scaling profitable segments"
    if status == "Good":
        return "Address key risks while optimizing high-performing areas"
    if status == "Needs Attention":
        return "Prioritize critical risk mitigation and operational improvements"
    return "Immediate action required on multiple business fronts"


def score_health(
    metrics: DerivedMetrics,
    insights: Iterable[Insight],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> HealthScore:
    applied: list[AppliedDeduction] = []
    score = config.base_score

    for rule in config.deductions:
        value = _signal_value(metrics, rule.signal)
        if _triggered(rule, value):
            score -= rule.points
            applied.append(
                AppliedDeduction(signal=rule.signal, value_pct=value, threshold_pct=rule.threshold_pct, points=rule.points)
            )

    overall_score = int(round(_clamp(score, 0.0, 100.0)))
    status = classify_health(overall_score, config.bands)

    insights = tuple(insights)
    opportunity = first_with_severity(insights, Severity.OPPORTUNITY)
    risk = first_with_severity(insights, Severity.CRITICAL)

    return HealthScore(
        overall_score=overall_score,
        health_status=status,
        recommended_action=recommended_action_for(status),
        top_opportunity=opportunity.title if opportunity else config.fallback_opportunity,
        critical_risk=risk.title if risk else config.fallback_risk,
        deductions=tuple(applied),
    )
