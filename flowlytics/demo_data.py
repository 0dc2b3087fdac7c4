"""Demo order batches: the API example order, a mixed 12-order batch and a COD stress batch.

The mixed batch carries messy inputs on purpose (string amounts, blank
labels, free-text statuses) so it exercises the normalizer defaults.
"""

from __future__ import annotations

from typing import Any


def example_order() -> dict[str, Any]:
    """Return the single-order example advertised by the API root."""
    return {
        "order_id": "TEST001",
        "customer_id": "CUST001",
        "revenue": 150000,
        "profit": 30000,
        "status": "Delivered",
        "city": "Mumbai",
        "payment_method": "UPI",
        "product_name": "Test Product",
        "product_category": "Electronics",
        "quantity": 1,
    }


def build_demo_orders() -> list[dict[str, Any]]:
    """Return a mixed twelve-order batch covering every status and payment path."""
    return [
        {"order_id": "D-001", "customer_id": "CUST-ANANYA", "revenue": 2_450, "profit": 610, "status": "Delivered", "city": "Mumbai", "payment_method": "UPI", "product_name": "Cotton Kurta", "quantity": 2},
        {"order_id": "D-002", "customer_id": "CUST-ANANYA", "revenue": 1_200, "profit": 300, "status": "Delivered", "city": "Mumbai", "payment_method": "Card", "product_name": "Silk Dupatta", "quantity": 1},
        {"order_id": "D-003", "customer_id": "CUST-RAHUL", "revenue": 135_000, "profit": 14_000, "status": "Delivered", "city": "Bengaluru", "payment_method": "Card", "product_name": "Gaming Laptop", "quantity": 1},
        {"order_id": "D-004", "customer_id": "CUST-MEERA", "revenue": 899, "profit": 90, "status": "Cancelled by customer", "city": "Jaipur", "payment_method": "COD", "product_name": "Cotton Kurta", "quantity": 1},
        {"order_id": "D-005", "customer_id": "CUST-MEERA", "revenue": "1,499", "status": "RTO - cancelled", "city": "Jaipur", "payment_method": "COD", "product_name": "Block Print Bedsheet", "quantity": "1"},
        {"order_id": "D-006", "customer_id": "CUST-IRFAN", "revenue": 3_200, "profit": 960, "status": "delivered", "city": "Lucknow", "payment_method": "COD", "product_name": "Chikan Saree", "quantity": 1},
        {"order_id": "D-007", "customer_id": "CUST-IRFAN", "revenue": 640, "status": "Shipped", "city": "Lucknow", "payment_method": "COD", "product_name": "Cotton Kurta", "quantity": 1},
        {"order_id": "D-008", "customer_id": "CUST-DIVYA", "revenue": 5_600, "profit": 1_400, "status": "Delivered", "city": "Pune", "payment_method": "UPI", "product_name": "Silk Dupatta", "quantity": 4},
        {"order_id": "D-009", "customer_id": "CUST-KABIR", "revenue": 760, "profit": 60, "status": "Delivered", "city": "Jaipur", "payment_method": "COD", "product_name": "Block Print Bedsheet", "quantity": 1},
        {"order_id": "D-010", "customer_id": "CUST-KABIR", "revenue": "n/a", "status": None, "city": "", "payment_method": None, "product_name": None},
        {"order_id": "D-011", "customer_id": "CUST-SANA", "revenue": 2_100, "profit": 525, "status": "Delivered", "city": "Bengaluru", "payment_method": "UPI", "product_name": "Chikan Saree", "quantity": 1},
        {"order_id": "D-012", "customer_id": "CUST-ANANYA", "revenue": 980, "profit": 245, "status": "Cancelled", "city": "Mumbai", "payment_method": "UPI", "product_name": "Cotton Kurta", "quantity": 1},
    ]


def build_cod_stress_orders(total: int = 10, cancelled: int = 6) -> list[dict[str, Any]]:
    """Return ``total`` COD orders from distinct customers, the first ``cancelled`` of them cancelled."""
    return [
        {
            "order_id": f"COD-{position:03d}",
            "customer_id": f"CUST-COD-{position:03d}",
            "revenue": 1_000,
            "profit": 250,
            "status": "Cancelled" if position < cancelled else "Delivered",
            "city": "Delhi",
            "payment_method": "COD",
            "product_name": "Steel Bottle",
            "quantity": 1,
        }
        for position in range(total)
    ]
