"""Report assembly: runs the pipeline once per batch and exposes projections."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from flowlytics.aggregator import (
    DEFAULT_AGGREGATION_CONFIG,
    AggregationConfig,
    Rollups,
    aggregate,
)
from flowlytics.derivation import DEFAULT_DERIVATION_CONFIG, DerivationConfig, DerivedMetrics, derive_metrics
from flowlytics.insights import (
    DEFAULT_INSIGHT_THRESHOLDS,
    DEFAULT_RULES,
    Insight,
    InsightRule,
    InsightThresholds,
    evaluate_insights,
)
from flowlytics.normalizer import DEFAULT_NORMALIZER_CONFIG, NormalizerConfig, SkippedRecord
from flowlytics.scoring import DEFAULT_SCORING_CONFIG, HealthScore, ScoringConfig, score_health

logger = logging.getLogger(__name__)


class AnalysisError(RuntimeError):
    """Raised when the pipeline fails as a whole rather than per record."""


@dataclass(frozen=True)
class AnalyticsConfig:
    normalizer: NormalizerConfig = DEFAULT_NORMALIZER_CONFIG
    aggregation: AggregationConfig = DEFAULT_AGGREGATION_CONFIG
    derivation: DerivationConfig = DEFAULT_DERIVATION_CONFIG
    insight_thresholds: InsightThresholds = DEFAULT_INSIGHT_THRESHOLDS
    insight_rules: tuple[InsightRule, ...] = DEFAULT_RULES
    scoring: ScoringConfig = DEFAULT_SCORING_CONFIG


DEFAULT_ANALYTICS_CONFIG = AnalyticsConfig()


@dataclass(frozen=True)
class Diagnostics:
    received: int
    processed: int
    skipped: tuple[SkippedRecord, ...]

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class Report:
    rollups: Rollups
    metrics: DerivedMetrics
    insights: tuple[Insight, ...]
    health: HealthScore
    diagnostics: Diagnostics

    @property
    def overall_score(self) -> int:
        return self.health.overall_score

    @property
    def health_status(self) -> str:
        return self.health.health_status


@dataclass(frozen=True)
class CustomerSummary:
    customer_id: str
    revenue: float
    orders: int
    average_order_value: float


def build_report(records: Iterable[Any], config: AnalyticsConfig = DEFAULT_ANALYTICS_CONFIG) -> Report:
    """Run normalize → aggregate → derive → insights → score over one batch.

    Per-record failures are absorbed by the aggregator and listed in
    ``Report.diagnostics``. Anything else that escapes a stage is raised as
    ``AnalysisError``.
    """
    batch = list(records)
    try:
        aggregation = aggregate(batch, config.normalizer, config.aggregation)
        metrics = derive_metrics(aggregation.rollups, config.derivation)
        insights = evaluate_insights(metrics, config.insight_rules, config.insight_thresholds)
        health = score_health(metrics, insights, config.scoring)
    except Exception as exc:
        logger.exception("analysis_failed orders=%s", len(batch))
        raise AnalysisError(f"Order analysis failed: {exc}") from exc

    if aggregation.skipped:
        logger.warning("orders_skipped count=%s of=%s", len(aggregation.skipped), len(batch))

    return Report(
        rollups=aggregation.rollups,
        metrics=metrics,
        insights=insights,
        health=health,
        diagnostics=Diagnostics(received=len(batch), processed=aggregation.processed, skipped=aggregation.skipped),
    )


def top_customers(report: Report, n: int = 5) -> list[CustomerSummary]:
    """Rank customers by total revenue, highest first; ties keep first-seen order."""
    if n <= 0:
        return []
    ranked = sorted(report.rollups.customers, key=lambda customer: customer.revenue, reverse=True)
    return [
        CustomerSummary(
            customer_id=customer.customer_id,
            revenue=customer.revenue,
            orders=customer.order_count,
            average_order_value=customer.revenue / customer.order_count if customer.order_count else 0.0,
        )
        for customer in ranked[:n]
    ]


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def report_to_dict(report: Report, include_orders: bool = False) -> dict[str, Any]:
    """Serialize a report to JSON-ready primitives.

    Per-customer order lists are summarized to counts unless
    ``include_orders`` is set, since they repeat every processed record.
    """
    payload = _plain(asdict(report))
    if not include_orders:
        for customer in payload["rollups"]["customers"]:
            customer["orders"] = len(customer["orders"])
    payload["diagnostics"]["skipped_count"] = report.diagnostics.skipped_count
    return payload
