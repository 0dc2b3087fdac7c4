"""Single-pass rollup accumulation over normalized order records.

The accumulator is private to one ``aggregate`` call. It is frozen into an
immutable ``Rollups`` value before it leaves, so later stages can read it but
never write to it. Keyed groups keep first-seen order, which later ranking
stages rely on for tie-breaks.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from flowlytics.normalizer import (
    DEFAULT_NORMALIZER_CONFIG,
    NormalizedOrder,
    NormalizerConfig,
    SkippedRecord,
    normalize_order,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationConfig:
    high_value_order_threshold: float = 100_000.0
    low_margin_threshold_pct: float = 15.0
    cod_labels: frozenset[str] = frozenset({"COD"})


DEFAULT_AGGREGATION_CONFIG = AggregationConfig()


@dataclass(frozen=True)
class FinancialTotals:
    total_revenue: float = 0.0
    total_profit: float = 0.0
    delivered_revenue: float = 0.0
    delivered_profit: float = 0.0
    cancelled_revenue: float = 0.0


@dataclass(frozen=True)
class OrderCounts:
    total: int = 0
    delivered: int = 0
    cancelled: int = 0
    other: int = 0


@dataclass(frozen=True)
class CustomerRollup:
    customer_id: str
    orders: tuple[NormalizedOrder, ...]
    revenue: float

    @property
    def order_count(self) -> int:
        return len(self.orders)


@dataclass(frozen=True)
class CityCustomers:
    city: str
    customer_ids: tuple[str, ...]


@dataclass(frozen=True)
class ProductRollup:
    name: str
    revenue: float
    profit: float
    quantity: float
    orders: int


@dataclass(frozen=True)
class LowMarginOrder:
    index: int
    product_name: str
    revenue: float
    profit: float
    margin_pct: float


@dataclass(frozen=True)
class CityRollup:
    city: str
    revenue: float
    orders: int
    cod_orders: int


@dataclass(frozen=True)
class PaymentRollup:
    method: str
    revenue: float = 0.0
    orders: int = 0
    delivered: int = 0
    cancelled: int = 0
    profit: float = 0.0


@dataclass(frozen=True)
class Rollups:
    financial: FinancialTotals = FinancialTotals()
    counts: OrderCounts = OrderCounts()
    customers: tuple[CustomerRollup, ...] = ()
    city_customers: tuple[CityCustomers, ...] = ()
    high_value_customers: tuple[str, ...] = ()
    products: tuple[ProductRollup, ...] = ()
    low_margin_orders: tuple[LowMarginOrder, ...] = ()
    cities: tuple[CityRollup, ...] = ()
    payment_methods: tuple[PaymentRollup, ...] = ()
    cod: PaymentRollup = PaymentRollup(method="COD")
    prepaid: PaymentRollup = PaymentRollup(method="Prepaid")


@dataclass(frozen=True)
class AggregationResult:
    rollups: Rollups
    processed: int
    skipped: tuple[SkippedRecord, ...]


@dataclass
class _Bucket:
    """Mutable running totals for one keyed group."""

    revenue: float = 0.0
    profit: float = 0.0
    quantity: float = 0.0
    orders: int = 0
    delivered: int = 0
    cancelled: int = 0
    cod_orders: int = 0

    def add(self, order: NormalizedOrder) -> None:
        self.revenue += order.revenue
        self.profit += order.profit
        self.quantity += order.quantity
        self.orders += 1
        if order.is_delivered:
            self.delivered += 1
        if order.is_cancelled:
            self.cancelled += 1

    def as_payment(self, method: str) -> PaymentRollup:
        return PaymentRollup(
            method=method,
            revenue=self.revenue,
            orders=self.orders,
            delivered=self.delivered,
            cancelled=self.cancelled,
            profit=self.profit,
        )


@dataclass
class RollupSet:
    """Mutable accumulator owned by exactly one aggregation run."""

    config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG
    total_revenue: float = 0.0
    total_profit: float = 0.0
    delivered_revenue: float = 0.0
    delivered_profit: float = 0.0
    cancelled_revenue: float = 0.0
    delivered: int = 0
    cancelled: int = 0
    other: int = 0
    customer_orders: dict[str, list[NormalizedOrder]] = field(default_factory=dict)
    customer_revenue: dict[str, float] = field(default_factory=dict)
    city_customers: dict[str, dict[str, None]] = field(default_factory=dict)
    high_value_customers: dict[str, None] = field(default_factory=dict)
    products: dict[str, _Bucket] = field(default_factory=dict)
    low_margin_orders: list[LowMarginOrder] = field(default_factory=list)
    cities: dict[str, _Bucket] = field(default_factory=dict)
    payment_methods: dict[str, _Bucket] = field(default_factory=dict)
    cod: _Bucket = field(default_factory=_Bucket)
    prepaid: _Bucket = field(default_factory=_Bucket)

    def add(self, order: NormalizedOrder) -> RollupSet:
        """Fold one order into the running totals, in fixed stage order."""
        is_cod = order.payment_method in self.config.cod_labels

        self.total_revenue += order.revenue
        self.total_profit += order.profit

        if order.is_delivered:
            self.delivered_revenue += order.revenue
            self.delivered_profit += order.profit
            self.delivered += 1
        elif order.is_cancelled:
            self.cancelled_revenue += order.revenue
            self.cancelled += 1
        else:
            self.other += 1

        self.customer_orders.setdefault(order.customer_id, []).append(order)
        self.customer_revenue[order.customer_id] = self.customer_revenue.get(order.customer_id, 0.0) + order.revenue
        if order.revenue >= self.config.high_value_order_threshold:
            self.high_value_customers.setdefault(order.customer_id, None)

        self.city_customers.setdefault(order.city, {}).setdefault(order.customer_id, None)

        if order.is_delivered:
            self.products.setdefault(order.product_name, _Bucket()).add(order)
            margin_pct = (order.profit / order.revenue * 100.0) if order.revenue > 0 else 0.0
            if margin_pct < self.config.low_margin_threshold_pct:
                self.low_margin_orders.append(
                    LowMarginOrder(
                        index=order.index,
                        product_name=order.product_name,
                        revenue=order.revenue,
                        profit=order.profit,
                        margin_pct=margin_pct,
                    )
                )

        city = self.cities.setdefault(order.city, _Bucket())
        city.add(order)
        if is_cod:
            city.cod_orders += 1

        self.payment_methods.setdefault(order.payment_method, _Bucket()).add(order)

        if is_cod:
            self.cod.add(order)
        else:
            self.prepaid.add(order)

        return self

    def freeze(self) -> Rollups:
        return Rollups(
            financial=FinancialTotals(
                total_revenue=self.total_revenue,
                total_profit=self.total_profit,
                delivered_revenue=self.delivered_revenue,
                delivered_profit=self.delivered_profit,
                cancelled_revenue=self.cancelled_revenue,
            ),
            counts=OrderCounts(
                total=self.delivered + self.cancelled + self.other,
                delivered=self.delivered,
                cancelled=self.cancelled,
                other=self.other,
            ),
            customers=tuple(
                CustomerRollup(customer_id=customer_id, orders=tuple(orders), revenue=self.customer_revenue[customer_id])
                for customer_id, orders in self.customer_orders.items()
            ),
            city_customers=tuple(
                CityCustomers(city=city, customer_ids=tuple(customers))
                for city, customers in self.city_customers.items()
            ),
            high_value_customers=tuple(self.high_value_customers),
            products=tuple(
                ProductRollup(name=name, revenue=b.revenue, profit=b.profit, quantity=b.quantity, orders=b.orders)
                for name, b in self.products.items()
            ),
            low_margin_orders=tuple(self.low_margin_orders),
            cities=tuple(
                CityRollup(city=city, revenue=b.revenue, orders=b.orders, cod_orders=b.cod_orders)
                for city, b in self.cities.items()
            ),
            payment_methods=tuple(b.as_payment(method) for method, b in self.payment_methods.items()),
            cod=self.cod.as_payment("COD"),
            prepaid=self.prepaid.as_payment("Prepaid"),
        )


def aggregate(
    records: Iterable[Any],
    normalizer_config: NormalizerConfig = DEFAULT_NORMALIZER_CONFIG,
    config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
) -> AggregationResult:
    """Fold raw records into frozen rollups.

    Records that cannot be normalized contribute nothing; each is logged at
    WARNING and returned in ``skipped``. Errors raised while folding a
    normalized order are not caught here.
    """
    rollups = RollupSet(config=config)
    skipped: list[SkippedRecord] = []
    processed = 0

    for index, raw in enumerate(records):
        try:
            outcome = normalize_order(raw, index, normalizer_config)
        except (ValidationError, TypeError, ValueError, ArithmeticError) as exc:
            outcome = SkippedRecord(index=index, reason=f"normalization failed: {exc}")

        if isinstance(outcome, SkippedRecord):
            logger.warning("order_skipped index=%s reason=%s", outcome.index, outcome.reason)
            skipped.append(outcome)
            continue

        rollups = rollups.add(outcome)
        processed += 1

    return AggregationResult(rollups=rollups.freeze(), processed=processed, skipped=tuple(skipped))
