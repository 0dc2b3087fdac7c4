from flowlytics.derivation import DerivedMetrics
from flowlytics.insights import (
    DEFAULT_RULES,
    Insight,
    InsightRule,
    InsightThresholds,
    Severity,
    evaluate_insights,
    first_with_severity,
)

HEALTHY = DerivedMetrics(unique_customers=10, repeat_buyers=5, repeat_rate=50.0, cod_orders=10, cod_cancellation_rate=10.0)


def _ids(insights: tuple[Insight, ...]) -> list[str]:
    return [insight.id for insight in insights]


def test_rule_table_order() -> None:
    assert [rule.id for rule in DEFAULT_RULES] == ["cod_high_cancellation", "low_repeat_rate", "high_value_customers"]


def test_healthy_metrics_emit_nothing() -> None:
    assert evaluate_insights(HEALTHY) == ()


def test_every_rule_fires_in_table_order() -> None:
    metrics = DerivedMetrics(
        unique_customers=4,
        repeat_buyers=0,
        repeat_rate=0.0,
        cod_orders=10,
        cod_cancellation_rate=60.0,
        high_value_customer_count=2,
    )
    insights = evaluate_insights(metrics)
    assert _ids(insights) == ["cod_high_cancellation", "low_repeat_rate", "high_value_customers"]
    assert [insight.severity for insight in insights] == [Severity.CRITICAL, Severity.OPPORTUNITY, Severity.OPPORTUNITY]


def test_cod_rule_boundary_and_description() -> None:
    at_threshold = DerivedMetrics(repeat_rate=50.0, cod_orders=10, cod_cancellation_rate=50.0)
    assert evaluate_insights(at_threshold) == ()

    above = DerivedMetrics(repeat_rate=50.0, cod_orders=10, cod_cancellation_rate=60.0)
    (insight,) = evaluate_insights(above)
    assert insight.title == "High COD Cancellation Detected"
    assert "60.0%" in insight.description
    assert insight.category == "Payment Risk"


def test_repeat_rule_interpolates_one_decimal() -> None:
    metrics = DerivedMetrics(unique_customers=3, repeat_buyers=0, repeat_rate=100 / 3 * 0.5)
    (insight,) = evaluate_insights(metrics)
    assert insight.id == "low_repeat_rate"
    assert "16.7%" in insight.description


def test_high_value_rule_reports_count() -> None:
    metrics = DerivedMetrics(repeat_rate=50.0, high_value_customer_count=3)
    (insight,) = evaluate_insights(metrics)
    assert insight.description == "3 customers spending over ₹1L each."


def test_thresholds_are_configurable() -> None:
    strict = InsightThresholds(repeat_rate_pct=60.0)
    assert _ids(evaluate_insights(HEALTHY, thresholds=strict)) == ["low_repeat_rate"]


def test_custom_rule_tables_extend_without_code_changes() -> None:
    warning = Insight(
        id="thin_catalogue",
        title="Thin Catalogue",
        description="Fewer than three products sold.",
        category="Catalogue",
        severity=Severity.WARNING,
        impact="Concentration Risk",
        recommendation="Broaden the assortment.",
        estimated_savings="n/a",
    )
    rules = (*DEFAULT_RULES, InsightRule("thin_catalogue", lambda m, t: len(m.products_by_revenue) < 3, lambda m: warning))
    insights = evaluate_insights(HEALTHY, rules)
    assert _ids(insights) == ["thin_catalogue"]
    assert first_with_severity(insights, Severity.WARNING) is warning
    assert first_with_severity(insights, Severity.CRITICAL) is None
