import json
import math

import pytest

from flowlytics.demo_data import build_cod_stress_orders, build_demo_orders, example_order
from flowlytics.normalizer import CustomerIdPolicy, NormalizerConfig
from flowlytics.report import AnalysisError, AnalyticsConfig, build_report, report_to_dict, top_customers
from flowlytics.scoring import DeductionRule, ScoringConfig

DERIVED_IDS = AnalyticsConfig(normalizer=NormalizerConfig(customer_id_policy=CustomerIdPolicy.DERIVED))


def _insight_ids(report) -> list[str]:
    return [insight.id for insight in report.insights]


def test_single_high_value_order() -> None:
    report = build_report([example_order()])

    assert report.rollups.financial.delivered_revenue == 150_000
    assert report.metrics.profit_margin == pytest.approx(20.0)
    assert report.metrics.unique_customers == 1
    assert report.rollups.high_value_customers == ("CUST001",)
    assert _insight_ids(report) == ["low_repeat_rate", "high_value_customers"]
    # Repeat rate 0% pays both repeat brackets; a 20.0% margin is not below 20.
    assert report.overall_score == 85
    assert report.health_status == "Excellent"
    assert report.health.top_opportunity == "Customer Retention Opportunity"
    assert report.health.critical_risk == "No critical risks detected"


def test_cod_stress_batch_hits_both_cod_brackets() -> None:
    report = build_report(build_cod_stress_orders(total=10, cancelled=6))

    assert report.metrics.cod_cancellation_rate == pytest.approx(60.0)
    cod_points = [item.points for item in report.health.deductions if item.signal == "cod_cancellation_rate"]
    assert cod_points == [20.0, 10.0]
    assert _insight_ids(report)[0] == "cod_high_cancellation"
    assert "60.0%" in report.insights[0].description
    assert report.overall_score == 55
    assert report.health_status == "Needs Attention"
    assert report.health.critical_risk == "High COD Cancellation Detected"


def test_empty_batch() -> None:
    report = build_report([])

    assert report.rollups.counts.total == 0
    assert report.metrics.conversion_rate == 0.0
    assert report.metrics.cancellation_rate == 0.0
    assert report.metrics.profit_margin == 0.0
    assert _insight_ids(report) == ["low_repeat_rate"]
    assert "0.0%" in report.insights[0].description
    assert report.overall_score == 70
    assert report.health_status == "Good"
    assert report.diagnostics.received == 0


def test_demo_batch_report() -> None:
    report = build_report(build_demo_orders())

    assert _insight_ids(report) == ["high_value_customers"]
    assert report.overall_score == 75
    assert report.health_status == "Good"
    assert report.health.recommended_action == "Address key risks while optimizing high-performing areas"


def test_status_counts_partition_processed_records() -> None:
    orders = [*build_demo_orders(), "garbage", 12, {"customer_id": "X", "status": "CANCELLED"}]
    report = build_report(orders)
    counts = report.rollups.counts

    assert counts.delivered + counts.cancelled + counts.other == counts.total
    assert counts.total == report.diagnostics.processed == 13
    assert report.diagnostics.received == 15
    assert [item.index for item in report.diagnostics.skipped] == [12, 13]


def test_all_invalid_batch_still_succeeds() -> None:
    report = build_report(["a", None, 3.5])
    assert report.diagnostics.processed == 0
    assert report.diagnostics.skipped_count == 3
    assert report.overall_score == 70


def test_overall_score_is_bounded_integer() -> None:
    batches = [[], build_demo_orders(), build_cod_stress_orders(), build_cod_stress_orders(10, 10), [example_order()]]
    for batch in batches:
        report = build_report(batch)
        assert isinstance(report.overall_score, int)
        assert 0 <= report.overall_score <= 100
        for rate in (report.metrics.profit_margin, report.metrics.conversion_rate, report.metrics.repeat_rate):
            assert math.isfinite(rate) and 0.0 <= rate <= 100.0


def test_rerun_is_idempotent_with_derived_ids() -> None:
    anonymous = [{"revenue": 500, "status": "Delivered"}, {"revenue": 500, "status": "Delivered"}, {"revenue": 900, "status": "Cancelled"}]
    batch = [*build_demo_orders(), *anonymous]

    first = build_report(batch, DERIVED_IDS)
    second = build_report(batch, DERIVED_IDS)

    assert first == second
    assert first.metrics.unique_customers == 9


def test_random_ids_never_merge_anonymous_orders() -> None:
    anonymous = [{"revenue": 500, "status": "Delivered"}, {"revenue": 500, "status": "Delivered"}]
    report = build_report(anonymous)
    assert report.metrics.unique_customers == 2
    assert report.metrics.repeat_buyers == 0


def test_require_ids_skips_anonymous_orders() -> None:
    config = AnalyticsConfig(normalizer=NormalizerConfig(customer_id_policy=CustomerIdPolicy.REQUIRE))
    report = build_report([example_order(), {"revenue": 500}], config)
    assert report.diagnostics.processed == 1
    assert report.diagnostics.skipped[0].reason == "missing customer_id"


def test_top_customers_projection() -> None:
    report = build_report(build_demo_orders())
    ranked = top_customers(report)

    assert [customer.customer_id for customer in ranked] == ["CUST-RAHUL", "CUST-DIVYA", "CUST-ANANYA", "CUST-IRFAN", "CUST-MEERA"]
    revenues = [customer.revenue for customer in ranked]
    assert revenues == sorted(revenues, reverse=True)
    ananya = ranked[2]
    assert ananya.orders == 3
    assert ananya.average_order_value == pytest.approx(4_630 / 3)


def test_top_customers_respects_bounds() -> None:
    report = build_report(build_demo_orders())
    assert len(top_customers(report, 100)) == report.metrics.unique_customers
    assert len(top_customers(report, 2)) == 2
    assert top_customers(report, 0) == []
    assert top_customers(build_report([]), 5) == []


def test_report_serializes_to_json() -> None:
    payload = report_to_dict(build_report(build_cod_stress_orders()))

    assert payload["health"]["overall_score"] == 55
    assert payload["insights"][0]["severity"] == "Critical"
    assert payload["rollups"]["customers"][0]["orders"] == 1
    assert payload["diagnostics"]["skipped_count"] == 0
    json.dumps(payload)


def test_pipeline_failures_surface_as_analysis_error() -> None:
    unknown_signal = DeductionRule("no_such_signal", "above", 1.0, 1.0)
    broken = AnalyticsConfig(scoring=ScoringConfig(deductions=(unknown_signal,)))
    with pytest.raises(AnalysisError):
        build_report(build_demo_orders(), broken)
