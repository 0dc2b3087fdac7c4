"""Manual analysis harness for order batches.

Reads an order batch from a JSON file (any shape the API accepts) or falls
back to the shared demo batch, then prints the health summary, insights, top
customers and record diagnostics.

Usage: python scripts/analyze_orders.py [orders.json] [--full]
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from flowlytics.demo_data import build_demo_orders
from flowlytics.report import build_report, report_to_dict, top_customers
from flowlytics.server import extract_orders, load_analytics_config


def load_orders(argv: list[str]) -> list:
    paths = [arg for arg in argv if not arg.startswith("--")]
    if not paths:
        return build_demo_orders()
    with open(paths[0], encoding="utf-8") as handle:
        return extract_orders(json.load(handle))


def main() -> None:
    """Analyze one batch and print a readable summary."""
    argv = sys.argv[1:]
    orders = load_orders(argv)
    report = build_report(orders, load_analytics_config())

    health = report.health
    print(f"score={health.overall_score} | status={health.health_status} | action={health.recommended_action}")
    print(f"top_opportunity={health.top_opportunity} | critical_risk={health.critical_risk}")

    print("\nInsights")
    for insight in report.insights:
        print(f"- [{insight.severity.value}] {insight.title}: {insight.description}")

    print("\nTop Customers")
    for customer in top_customers(report, 5):
        print(
            f"customer_id={customer.customer_id} | "
            f"revenue={customer.revenue:.2f} | "
            f"orders={customer.orders} | "
            f"aov={customer.average_order_value:.2f}"
        )

    diagnostics = report.diagnostics
    print(f"\nreceived={diagnostics.received} | processed={diagnostics.processed} | skipped={diagnostics.skipped_count}")
    for skipped in diagnostics.skipped:
        print(f"  skipped index={skipped.index} reason={skipped.reason}")

    if "--full" in argv:
        print("\nFull Report")
        print(json.dumps(report_to_dict(report), indent=2, sort_keys=True, ensure_ascii=False))


if __name__ == "__main__":
    main()
