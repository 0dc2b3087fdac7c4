"""HTML dashboard rendering for analysis reports."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from flowlytics.report import Report, top_customers

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
IST = timezone(timedelta(hours=5, minutes=30), name="IST")


def _group_indian(whole: int) -> str:
    digits = str(whole)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(value: Any) -> str:
    """Format rupees the way merchants read them: Cr, L, K, then grouped units."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "₹0"
    if not math.isfinite(amount):
        return "₹0"

    if amount >= 10_000_000:
        return f"₹{amount / 10_000_000:.2f} Cr"
    if amount >= 100_000:
        return f"₹{amount / 100_000:.2f} L"
    if amount >= 1_000:
        return f"₹{amount / 1_000:.1f}K"
    rounded = int(round(amount))
    sign = "-" if rounded < 0 else ""
    return f"₹{sign}{_group_indian(abs(rounded))}"


def severity_class(severity: str) -> str:
    if severity == "Critical":
        return "danger"
    if severity == "Warning":
        return "warning"
    return "success"


def _build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["currency"] = format_currency
    env.filters["severity_class"] = severity_class
    return env


_ENV = _build_environment()


def render_dashboard(report: Report, orders: Sequence[Any], generated_at: datetime | None = None) -> str:
    """Render the dashboard HTML. Reads ``report`` and ``orders`` without modifying either."""
    generated_at = generated_at or datetime.now(timezone.utc)
    template = _ENV.get_template("dashboard.html")
    return template.render(
        report=report,
        metrics=report.metrics,
        financial=report.rollups.financial,
        counts=report.rollups.counts,
        health=report.health,
        insights=report.insights,
        customers=top_customers(report, 5),
        products=report.metrics.products_by_revenue[:5],
        order_count=len(orders),
        generated_at=generated_at.astimezone(IST).strftime("%d/%m/%Y, %H:%M:%S"),
    )
