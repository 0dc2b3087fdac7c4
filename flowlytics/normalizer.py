"""Per-record coercion and classification for raw order records."""

from __future__ import annotations

import hashlib
import json
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import ValidationError

from flowlytics.models import OrderRecord


class DeliveryState(str, Enum):
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    OTHER = "other"


class CustomerIdPolicy(str, Enum):
    """How a record without ``customer_id`` is attributed to a customer.

    - ``random``: a fresh surrogate per record. Anonymous orders are never
      merged and repeated runs produce different ids.
    - ``derived``: a stable id hashed from the record's other fields, so the
      same literal batch always yields the same report.
    - ``require``: the record is skipped and reported in diagnostics.
    """

    RANDOM = "random"
    DERIVED = "derived"
    REQUIRE = "require"


@dataclass(frozen=True)
class NormalizerConfig:
    default_profit_ratio: float = 0.2
    unknown_label: str = "Unknown"
    customer_id_policy: CustomerIdPolicy = CustomerIdPolicy.RANDOM
    # Per-order ceiling for amounts and quantities; larger values count as unparseable.
    max_amount: float = 1e15


DEFAULT_NORMALIZER_CONFIG = NormalizerConfig()


@dataclass(frozen=True)
class NormalizedOrder:
    index: int
    revenue: float
    profit: float
    status: DeliveryState
    quantity: float
    payment_method: str
    city: str
    product_name: str
    customer_id: str

    @property
    def is_delivered(self) -> bool:
        return self.status is DeliveryState.DELIVERED

    @property
    def is_cancelled(self) -> bool:
        return self.status is DeliveryState.CANCELLED


@dataclass(frozen=True)
class SkippedRecord:
    index: int
    reason: str


def _coerce_number(value: Any) -> float | None:
    """Parse a finite number from loosely typed input, else None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip().replace(",", "").lstrip("₹").strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def _coerce_amount(value: Any, ceiling: float) -> float | None:
    number = _coerce_number(value)
    if number is None or number > ceiling:
        return None
    return number


def _coerce_label(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def classify_status(raw_status: Any) -> DeliveryState:
    """Classify a free-text status; 'delivered' takes precedence over 'cancel'."""
    status = "" if raw_status is None else str(raw_status).lower()
    if "delivered" in status:
        return DeliveryState.DELIVERED
    if "cancel" in status:
        return DeliveryState.CANCELLED
    return DeliveryState.OTHER


def _random_customer_id() -> str:
    return f"CUST_{uuid.uuid4().hex[:9].upper()}"


def _derived_customer_id(record: OrderRecord) -> str:
    normalized = json.dumps(record.identity_fields(), sort_keys=True, separators=(",", ":"), default=str)
    return f"CUST_{hashlib.sha256(normalized.encode('utf-8')).hexdigest()[:12].upper()}"


def resolve_customer_id(record: OrderRecord, policy: CustomerIdPolicy) -> str | None:
    """Return the record's customer id, a surrogate per policy, or None under ``require``."""
    supplied = _coerce_label(record.customer_id, "")
    if supplied:
        return supplied
    if policy is CustomerIdPolicy.DERIVED:
        return _derived_customer_id(record)
    if policy is CustomerIdPolicy.REQUIRE:
        return None
    return _random_customer_id()


def normalize_order(
    raw: Any,
    index: int,
    config: NormalizerConfig = DEFAULT_NORMALIZER_CONFIG,
) -> NormalizedOrder | SkippedRecord:
    """Coerce one raw record into a ``NormalizedOrder``.

    Field-level problems never raise; they resolve to documented defaults.
    Only structural problems produce a ``SkippedRecord``: the record is not an
    object, or it has no customer id under the ``require`` policy.
    """
    if isinstance(raw, Mapping) and not isinstance(raw, dict):
        raw = dict(raw)

    try:
        record = OrderRecord.model_validate(raw)
    except ValidationError:
        return SkippedRecord(index=index, reason=f"record is not an object (got {type(raw).__name__})")

    customer_id = resolve_customer_id(record, config.customer_id_policy)
    if customer_id is None:
        return SkippedRecord(index=index, reason="missing customer_id")

    revenue = _coerce_amount(record.revenue, config.max_amount)
    if revenue is None or revenue < 0:
        revenue = 0.0

    profit = _coerce_amount(record.profit, config.max_amount)
    if profit is None:
        profit = revenue * config.default_profit_ratio
    elif profit < 0:
        profit = 0.0

    quantity = _coerce_amount(record.quantity, config.max_amount)
    if quantity is None or quantity <= 0:
        quantity = 1.0

    return NormalizedOrder(
        index=index,
        revenue=revenue,
        profit=profit,
        status=classify_status(record.status),
        quantity=quantity,
        payment_method=_coerce_label(record.payment_method, config.unknown_label),
        city=_coerce_label(record.city, config.unknown_label),
        product_name=_coerce_label(record.product_name, config.unknown_label),
        customer_id=customer_id,
    )
