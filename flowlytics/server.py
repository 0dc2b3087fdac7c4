"""FastAPI transport for batch order analytics and the HTML dashboard."""

from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from flowlytics.demo_data import example_order
from flowlytics.normalizer import CustomerIdPolicy, NormalizerConfig
from flowlytics.rendering import render_dashboard
from flowlytics.report import AnalysisError, AnalyticsConfig, Report, build_report, report_to_dict, top_customers

SERVICE_NAME = "Flowlytics AI"
SERVICE_VERSION = "5.1"
DEFAULT_MAX_ORDERS = 50_000
EMPTY_BATCH_INSTRUCTIONS = "Send orders as array in body.orders, body.data, or directly as array"


class JsonLogFormatter(logging.Formatter):
    """Simple JSON log formatter for structured production logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        return json.dumps(payload)


def configure_logging() -> logging.Logger:
    """Install the JSON handler on the package logger so core and API records share it."""
    package_logger = logging.getLogger("flowlytics")
    if not any(isinstance(h.formatter, JsonLogFormatter) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonLogFormatter())
        package_logger.addHandler(handler)
    package_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    return package_logger


configure_logging()
logger = logging.getLogger("flowlytics.api")


class ErrorResponse(BaseModel):
    detail: str


class EmptyBatchResponse(BaseModel):
    success: bool
    error: str
    instructions: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    endpoints: dict[str, str]


class AnalyzeResponse(BaseModel):
    success: bool
    data: dict[str, Any]
    html: str
    generated_at: str


def load_analytics_config() -> AnalyticsConfig:
    """Build pipeline configuration from environment variables."""
    raw_policy = os.getenv("FLOWLYTICS_CUSTOMER_ID_POLICY", CustomerIdPolicy.RANDOM.value).strip().lower()
    try:
        policy = CustomerIdPolicy(raw_policy)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in CustomerIdPolicy)
        raise ValueError(f"FLOWLYTICS_CUSTOMER_ID_POLICY must be one of: {allowed}") from exc
    return AnalyticsConfig(normalizer=NormalizerConfig(customer_id_policy=policy))


def max_orders() -> int:
    return int(os.getenv("FLOWLYTICS_MAX_ORDERS", str(DEFAULT_MAX_ORDERS)))


def extract_orders(body: Any) -> list[Any]:
    """Shape a request body into an order list.

    Accepts a top-level array, ``{"orders": [...]}``, ``{"data": [...]}`` or a
    single order object. Anything else yields an empty list.
    """
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        if isinstance(body.get("orders"), list):
            return body["orders"]
        if isinstance(body.get("data"), list):
            return body["data"]
        if body:
            return [body]
    return []


def _orders_or_400(body: Any) -> list[Any]:
    orders = extract_orders(body)
    if not orders:
        raise HTTPException(status_code=400, detail="No order data provided")
    limit = max_orders()
    if len(orders) > limit:
        raise HTTPException(status_code=413, detail=f"Batch exceeds {limit} orders")
    return orders


def _analyze(orders: list[Any]) -> Report:
    try:
        return build_report(orders, load_analytics_config())
    except (AnalysisError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to analyze orders: {exc}") from exc


def _analytics_payload(report: Report) -> dict[str, Any]:
    serialized = report_to_dict(report)
    financial = report.rollups.financial
    metrics = report.metrics
    return {
        "orders_processed": report.diagnostics.processed,
        "analytics": {
            "financial": {
                "total_revenue": financial.total_revenue,
                "delivered_revenue": financial.delivered_revenue,
                "cancelled_revenue": financial.cancelled_revenue,
                "total_profit": financial.total_profit,
                "delivered_profit": financial.delivered_profit,
                "profit_margin": metrics.profit_margin,
                "average_order_value": metrics.average_order_value,
            },
            "orders": {
                "total": report.rollups.counts.total,
                "delivered": report.rollups.counts.delivered,
                "cancelled": report.rollups.counts.cancelled,
                "conversion_rate": metrics.conversion_rate,
                "cancellation_rate": metrics.cancellation_rate,
            },
            "customers": {
                "unique": metrics.unique_customers,
                "repeat_buyers": metrics.repeat_buyers,
                "repeat_rate": metrics.repeat_rate,
                "high_value_customers": list(report.rollups.high_value_customers),
            },
            "locations": {
                "high_risk_cities": serialized["metrics"]["high_risk_cities"],
                "top_performing_cities": serialized["metrics"]["top_cities"],
            },
            "products": serialized["metrics"]["products_by_revenue"],
            "payments": serialized["metrics"]["payment_performance"],
        },
        "insights": serialized["insights"],
        "business_health": {
            "score": report.health.overall_score,
            "status": report.health.health_status,
            "recommendation": report.health.recommended_action,
            "top_opportunity": report.health.top_opportunity,
            "critical_risk": report.health.critical_risk,
            "deductions": serialized["health"]["deductions"],
        },
        "top_customers": [
            {
                "id": customer.customer_id,
                "revenue": customer.revenue,
                "orders": customer.orders,
                "average_order_value": customer.average_order_value,
            }
            for customer in top_customers(report, 5)
        ],
        "diagnostics": serialized["diagnostics"],
    }


app = FastAPI(title="Flowlytics AI Order Analytics API", version=SERVICE_VERSION)


@app.middleware("http")
async def request_timing(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.info(
        f"request_completed {request.method} {request.url.path}",
        extra={"extra": {"path": request.url.path, "method": request.method, "status_code": response.status_code, "elapsed_ms": elapsed_ms}},
    )
    return response


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException):
    if exc.status_code == 400 and request.url.path == "/analyze":
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": exc.detail, "instructions": EMPTY_BATCH_INSTRUCTIONS},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception):
    logger.error(
        f"unhandled_exception: {exc}",
        extra={"extra": {"path": request.url.path, "method": request.method}},
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/", tags=["System"])
def root() -> dict:
    return {
        "message": f"{SERVICE_NAME} API",
        "version": SERVICE_VERSION,
        "endpoints": [
            "GET  /health - Health check",
            "POST /analyze - Analyze orders (returns JSON with HTML)",
            "POST /dashboard - Get HTML dashboard only",
        ],
        "example_request": {"method": "POST", "url": "/analyze", "body": {"orders": [example_order()]}},
    }


@app.get("/health", response_model=HealthResponse, tags=["System"])
def health() -> HealthResponse:
    """Healthcheck endpoint."""
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        endpoints={"analyze": "POST /analyze", "dashboard": "POST /dashboard", "health": "GET /health"},
    )


@app.post(
    "/analyze",
    response_model=AnalyzeResponse,
    tags=["Analytics"],
    responses={400: {"model": EmptyBatchResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def analyze(payload: Any = Body(None, examples=[{"orders": [example_order()]}])) -> AnalyzeResponse:
    orders = _orders_or_400(payload)
    logger.info(f"orders_received {len(orders)}", extra={"extra": {"orders": len(orders)}})

    report = _analyze(orders)
    generated_at = datetime.now(timezone.utc)
    return AnalyzeResponse(
        success=True,
        data=_analytics_payload(report),
        html=render_dashboard(report, orders, generated_at),
        generated_at=generated_at.isoformat(),
    )


@app.post(
    "/dashboard",
    response_class=HTMLResponse,
    tags=["Analytics"],
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def dashboard(payload: Any = Body(None)) -> HTMLResponse:
    """Render the HTML dashboard for a batch of orders."""
    orders = _orders_or_400(payload)
    report = _analyze(orders)
    return HTMLResponse(render_dashboard(report, orders))


def main() -> None:
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "3000")))


if __name__ == "__main__":
    main()
