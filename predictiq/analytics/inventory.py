"""
Inventory Optimization Module

Per-product replenishment metrics computed from product aggregates:
- Safety stock at a configurable service level
- Reorder point
- Stock coverage in days
- ABC classification by cumulative revenue share
- Economic order quantity (only when ordering and holding costs are given)
"""

import math
from typing import Iterable, List, Optional

from scipy import stats
import structlog

from predictiq.config.pipeline import AbcThresholds
from predictiq.errors import ConfigurationError, require_observations
from predictiq.models import AbcCategory, InventoryInsight, ProductAggregate

logger = structlog.get_logger(__name__)

MIN_RECORDS = 2
DAYS_PER_YEAR = 365


def z_for_service_level(service_level: float) -> float:
    """One-sided normal quantile for a target in-stock probability"""
    if not 0 < service_level < 1:
        raise ConfigurationError("serviceLevel must be a probability between 0 and 1.")
    return float(stats.norm.ppf(service_level))


def safety_stock(z: float, sales_std_dev: float, lead_time_days: float) -> int:
    """ceil(z * sigma * sqrt(lead time)), never negative"""
    return max(0, math.ceil(z * sales_std_dev * math.sqrt(max(lead_time_days, 0.0))))


def reorder_point(avg_daily_sales: float, lead_time_days: float, buffer: int) -> int:
    return math.ceil(avg_daily_sales * lead_time_days + buffer)


def stock_coverage_days(stock_level: int, avg_daily_sales: float) -> Optional[float]:
    """Days of stock at the average sales rate; None when nothing sells"""
    if avg_daily_sales == 0:
        return None
    return stock_level / avg_daily_sales


def economic_order_quantity(
    avg_daily_sales: float,
    order_cost: float,
    holding_cost: float,
) -> int:
    """ceil(sqrt(2 * annual demand * order cost / holding cost))"""
    if order_cost <= 0 or holding_cost <= 0:
        raise ConfigurationError("orderCost and holdingCost must both be positive.")
    annual_demand = avg_daily_sales * DAYS_PER_YEAR
    return math.ceil(math.sqrt(2 * annual_demand * order_cost / holding_cost))


def classify_abc(cumulative_before: float, thresholds: AbcThresholds) -> AbcCategory:
    """
    Category for a product whose share starts at ``cumulative_before`` percent.

    A product that reaches or crosses a boundary stays in the lower band.
    """
    if cumulative_before < thresholds.a:
        return AbcCategory.A
    if cumulative_before < thresholds.b:
        return AbcCategory.B
    return AbcCategory.C


class InventoryOptimizer:
    """
    Computes replenishment insights per product.

    Example:
        optimizer = InventoryOptimizer(service_level_z=1.65)
        insights = optimizer.analyze(aggregates.products.values(), record_count=40)
    """

    def __init__(
        self,
        service_level_z: float = 1.65,
        abc_thresholds: Optional[AbcThresholds] = None,
        order_cost: Optional[float] = None,
        holding_cost: Optional[float] = None,
    ):
        if service_level_z < 0:
            raise ConfigurationError("serviceLevelZ must not be negative.")
        self.service_level_z = service_level_z
        self.abc_thresholds = abc_thresholds or AbcThresholds()
        self.order_cost = order_cost
        self.holding_cost = holding_cost

    @property
    def eoq_enabled(self) -> bool:
        return self.order_cost is not None and self.holding_cost is not None

    def analyze(
        self,
        products: Iterable[ProductAggregate],
        record_count: int,
    ) -> List[InventoryInsight]:
        """
        Build insights ordered by revenue (the ABC ranking).

        Raises:
            InsufficientData: with fewer than two underlying records
        """
        require_observations(record_count, MIN_RECORDS, "inventory records")

        ranked = sorted(products, key=lambda p: (-p.total_revenue, p.product))
        total_revenue = sum(p.total_revenue for p in ranked)

        insights = []
        cumulative = 0.0
        for product in ranked:
            share = (product.total_revenue / total_revenue * 100) if total_revenue > 0 else 0.0
            category = classify_abc(cumulative, self.abc_thresholds)
            cumulative += share

            lead_time = product.avg_lead_time_days
            buffer = safety_stock(self.service_level_z, product.sales_std_dev, lead_time)
            rop = reorder_point(product.avg_daily_sales, lead_time, buffer)

            eoq = None
            if self.eoq_enabled:
                eoq = economic_order_quantity(
                    product.avg_daily_sales, self.order_cost, self.holding_cost
                )

            insights.append(InventoryInsight(
                product=product.product,
                revenue=product.total_revenue,
                revenue_share_percent=share,
                abc_category=category,
                stock_level=product.last_known_stock,
                reorder_point=rop,
                safety_stock=buffer,
                avg_daily_sales=product.avg_daily_sales,
                lead_time_days=lead_time,
                stock_coverage_days=stock_coverage_days(
                    product.last_known_stock, product.avg_daily_sales
                ),
                economic_order_quantity=eoq,
                needs_reorder=product.last_known_stock <= rop,
            ))

        logger.info(
            "Inventory analysis complete",
            products=len(insights),
            category_a=sum(1 for i in insights if i.abc_category == AbcCategory.A),
            needs_reorder=sum(1 for i in insights if i.needs_reorder),
        )
        return insights
