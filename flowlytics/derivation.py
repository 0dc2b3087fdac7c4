"""Rates, margins and rankings derived from frozen rollups.

Every percentage is finite and within [0, 100]. Division by zero resolves to
0. Rankings are stable, so ties keep the first-seen order of the rollups.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from flowlytics.aggregator import Rollups


@dataclass(frozen=True)
class DerivationConfig:
    high_risk_cod_ratio_pct: float = 50.0
    top_cities_count: int = 3


DEFAULT_DERIVATION_CONFIG = DerivationConfig()


@dataclass(frozen=True)
class ProductPerformance:
    name: str
    revenue: float
    profit: float
    quantity: float
    orders: int
    margin_pct: float


@dataclass(frozen=True)
class CityCodRatio:
    city: str
    total_orders: int
    cod_orders: int
    ratio_pct: float


@dataclass(frozen=True)
class CityRevenue:
    city: str
    revenue: float


@dataclass(frozen=True)
class PaymentPerformance:
    method: str
    revenue: float
    orders: int
    delivery_rate_pct: float
    cancellation_rate_pct: float


@dataclass(frozen=True)
class DerivedMetrics:
    total_orders: int = 0
    profit_margin: float = 0.0
    average_order_value: float = 0.0
    conversion_rate: float = 0.0
    cancellation_rate: float = 0.0
    unique_customers: int = 0
    repeat_buyers: int = 0
    repeat_rate: float = 0.0
    high_value_customer_count: int = 0
    cod_orders: int = 0
    cod_cancellation_rate: float = 0.0
    products_by_revenue: tuple[ProductPerformance, ...] = ()
    city_cod_ratios: tuple[CityCodRatio, ...] = ()
    high_risk_cities: tuple[str, ...] = ()
    top_cities: tuple[CityRevenue, ...] = ()
    payment_performance: tuple[PaymentPerformance, ...] = ()


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def _pct(numerator: float, denominator: float) -> float:
    return max(0.0, min(100.0, _ratio(numerator, denominator) * 100.0))


def derive_metrics(rollups: Rollups, config: DerivationConfig = DEFAULT_DERIVATION_CONFIG) -> DerivedMetrics:
    financial = rollups.financial
    counts = rollups.counts

    unique_customers = len(rollups.customers)
    repeat_buyers = sum(1 for customer in rollups.customers if customer.order_count > 1)

    products_by_revenue = sorted(
        (
            ProductPerformance(
                name=product.name,
                revenue=product.revenue,
                profit=product.profit,
                quantity=product.quantity,
                orders=product.orders,
                margin_pct=_pct(product.profit, product.revenue),
            )
            for product in rollups.products
        ),
        key=lambda product: product.revenue,
        reverse=True,
    )

    city_cod_ratios = tuple(
        CityCodRatio(
            city=city.city,
            total_orders=city.orders,
            cod_orders=city.cod_orders,
            ratio_pct=_pct(city.cod_orders, city.orders),
        )
        for city in rollups.cities
    )
    high_risk_cities = tuple(
        ratio.city for ratio in city_cod_ratios if ratio.ratio_pct > config.high_risk_cod_ratio_pct
    )

    top_cities = sorted(rollups.cities, key=lambda city: city.revenue, reverse=True)[: max(0, config.top_cities_count)]

    payment_performance = tuple(
        PaymentPerformance(
            method=method.method,
            revenue=method.revenue,
            orders=method.orders,
            delivery_rate_pct=_pct(method.delivered, method.orders),
            cancellation_rate_pct=_pct(method.cancelled, method.orders),
        )
        for method in rollups.payment_methods
    )

    return DerivedMetrics(
        total_orders=counts.total,
        profit_margin=_pct(financial.delivered_profit, financial.delivered_revenue),
        average_order_value=_ratio(financial.delivered_revenue, counts.delivered),
        conversion_rate=_pct(counts.delivered, counts.total),
        cancellation_rate=_pct(counts.cancelled, counts.total),
        unique_customers=unique_customers,
        repeat_buyers=repeat_buyers,
        repeat_rate=_pct(repeat_buyers, max(unique_customers, 1)),
        high_value_customer_count=len(rollups.high_value_customers),
        cod_orders=rollups.cod.orders,
        cod_cancellation_rate=_pct(rollups.cod.cancelled, rollups.cod.orders),
        products_by_revenue=tuple(products_by_revenue),
        city_cod_ratios=city_cod_ratios,
        high_risk_cities=high_risk_cities,
        top_cities=tuple(CityRevenue(city=city.city, revenue=city.revenue) for city in top_cities),
        payment_performance=payment_performance,
    )
