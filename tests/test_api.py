import json
import logging

from fastapi.testclient import TestClient

from flowlytics.demo_data import build_cod_stress_orders, build_demo_orders, example_order
from flowlytics.server import JsonLogFormatter, app, configure_logging, extract_orders


def _client() -> TestClient:
    return TestClient(app)


def test_health_and_root_endpoints() -> None:
    client = _client()

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["service"] == "Flowlytics AI"

    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["example_request"]["body"]["orders"][0]["customer_id"] == "CUST001"


def test_extract_orders_accepts_every_body_shape() -> None:
    order = example_order()
    assert extract_orders([order]) == [order]
    assert extract_orders({"orders": [order]}) == [order]
    assert extract_orders({"data": [order]}) == [order]
    assert extract_orders(order) == [order]
    assert extract_orders({}) == []
    assert extract_orders(None) == []
    assert extract_orders("orders") == []


def test_analyze_single_order_body_shapes_agree() -> None:
    client = _client()
    order = example_order()

    scores = []
    for body in ([order], {"orders": [order]}, {"data": [order]}, order):
        response = client.post("/analyze", json=body)
        assert response.status_code == 200
        payload = response.json()
        assert payload["success"] is True
        assert payload["data"]["orders_processed"] == 1
        assert "Flowlytics AI" in payload["html"]
        scores.append(payload["data"]["business_health"]["score"])

    assert scores == [85, 85, 85, 85]


def test_analyze_payload_sections() -> None:
    response = _client().post("/analyze", json={"orders": build_cod_stress_orders()})
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["analytics"]["orders"]["cancelled"] == 6
    assert data["analytics"]["financial"]["delivered_revenue"] == 4_000
    assert data["insights"][0]["id"] == "cod_high_cancellation"
    assert data["business_health"]["status"] == "Needs Attention"
    assert data["business_health"]["critical_risk"] == "High COD Cancellation Detected"
    assert len(data["top_customers"]) == 5
    assert data["diagnostics"]["skipped_count"] == 0


def test_analyze_reports_skipped_records() -> None:
    response = _client().post("/analyze", json=[*build_demo_orders(), "junk"])
    assert response.status_code == 200
    diagnostics = response.json()["data"]["diagnostics"]
    assert diagnostics["received"] == 13
    assert diagnostics["processed"] == 12
    assert diagnostics["skipped"][0]["index"] == 12


def test_analyze_rejects_empty_batches() -> None:
    client = _client()
    for body in ([], {}, {"orders": []}):
        response = client.post("/analyze", json=body)
        assert response.status_code == 400
        payload = response.json()
        assert payload["success"] is False
        assert payload["error"] == "No order data provided"
        assert "body.orders" in payload["instructions"]


def test_dashboard_returns_html() -> None:
    client = _client()
    response = client.post("/dashboard", json={"orders": build_demo_orders()})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Flowlytics AI" in response.text
    assert "Gaming Laptop" in response.text

    empty = client.post("/dashboard", json=[])
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No order data provided"


def test_requests_carry_timing_header() -> None:
    response = _client().get("/health")
    assert float(response.headers["X-Process-Time-Ms"]) >= 0


def test_oversized_batches_are_rejected(monkeypatch) -> None:
    monkeypatch.setenv("FLOWLYTICS_MAX_ORDERS", "3")
    response = _client().post("/analyze", json=build_demo_orders())
    assert response.status_code == 413


def test_invalid_customer_id_policy_fails_analysis(monkeypatch) -> None:
    monkeypatch.setenv("FLOWLYTICS_CUSTOMER_ID_POLICY", "sometimes")
    response = _client().post("/analyze", json=[example_order()])
    assert response.status_code == 500
    assert "FLOWLYTICS_CUSTOMER_ID_POLICY" in response.json()["detail"]


def test_derived_policy_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("FLOWLYTICS_CUSTOMER_ID_POLICY", "derived")
    anonymous = {"revenue": 500, "status": "Delivered"}
    response = _client().post("/analyze", json=[anonymous, anonymous])
    customers = response.json()["data"]["analytics"]["customers"]
    assert customers["unique"] == 1
    assert customers["repeat_buyers"] == 1


def test_core_loggers_share_the_json_handler() -> None:
    configure_logging()
    package_logger = logging.getLogger("flowlytics")
    handlers = [h for h in package_logger.handlers if isinstance(h.formatter, JsonLogFormatter)]
    assert len(handlers) == 1

    core_logger = logging.getLogger("flowlytics.aggregator")
    assert core_logger.propagate
    record = core_logger.makeRecord(
        core_logger.name, logging.WARNING, __file__, 1, "order_skipped index=%s reason=%s", (4, "missing customer_id"), None
    )
    payload = json.loads(handlers[0].format(record))
    assert payload["logger"] == "flowlytics.aggregator"
    assert payload["level"] == "WARNING"
    assert payload["message"] == "order_skipped index=4 reason=missing customer_id"
