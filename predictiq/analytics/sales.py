"""
Sales Analysis

Headline revenue metrics, month-over-month growth, best-selling products and
the daily sales series.
"""

from typing import Iterable, List, Optional, Sequence

import polars as pl
import structlog

from predictiq.errors import require_observations
from predictiq.models import (
    DailyAggregate,
    OverallMetrics,
    ProductAggregate,
    SalesAnalysis,
    TopProduct,
)

logger = structlog.get_logger(__name__)

MIN_RECORDS = 3


def monthly_growth_percent(daily: Sequence[DailyAggregate]) -> Optional[float]:
    """
    Revenue of the month ending on the last sales date against the month
    before it, as a percentage change.

    Month boundaries are calendar offsets from the last date (clamped to
    month end, so 31 March looks back to 28 or 29 February). None when the
    earlier month has no revenue.
    """
    if not daily:
        return None

    frame = pl.DataFrame(
        {
            "date": [day.date for day in daily],
            "revenue": [day.total_revenue for day in daily],
        },
        schema={"date": pl.Date, "revenue": pl.Float64},
    )
    last_date = frame["date"].max()
    one_month_back, two_months_back = frame.select(
        pl.lit(last_date).dt.offset_by("-1mo").alias("one_month_back"),
        pl.lit(last_date).dt.offset_by("-2mo").alias("two_months_back"),
    ).row(0)

    recent = frame.filter(pl.col("date") >= one_month_back)["revenue"].sum()
    previous = frame.filter(
        (pl.col("date") >= two_months_back) & (pl.col("date") < one_month_back)
    )["revenue"].sum()

    if previous <= 0:
        return None
    return (recent / previous - 1) * 100


class SalesAnalyzer:
    """
    Example:
        analyzer = SalesAnalyzer(top_products_limit=5)
        analysis = analyzer.analyze(aggregates.daily, aggregates.products.values(), 40)
    """

    def __init__(self, top_products_limit: int = 5):
        self.top_products_limit = top_products_limit

    def top_products(self, products: Iterable[ProductAggregate]) -> List[TopProduct]:
        ranked = sorted(products, key=lambda p: (-p.total_revenue, p.product))
        return [
            TopProduct(
                product=p.product,
                revenue=p.total_revenue,
                units=p.total_units,
                average_price=p.avg_price,
            )
            for p in ranked[:self.top_products_limit]
        ]

    def analyze(
        self,
        daily: Sequence[DailyAggregate],
        products: Iterable[ProductAggregate],
        record_count: int,
    ) -> SalesAnalysis:
        """
        Raises:
            InsufficientData: with fewer than three underlying records
        """
        require_observations(record_count, MIN_RECORDS, "sales records")

        total_revenue = sum(day.total_revenue for day in daily)
        total_units = sum(day.total_units for day in daily)
        transactions = sum(day.transaction_count for day in daily)

        metrics = OverallMetrics(
            total_revenue=total_revenue,
            total_units=total_units,
            transaction_count=transactions,
            average_ticket_size=total_revenue / transactions if transactions else 0.0,
            monthly_growth_percent=monthly_growth_percent(daily),
        )

        analysis = SalesAnalysis(
            overall_metrics=metrics,
            top_products=self.top_products(products),
            daily_sales=list(daily),
        )

        logger.info(
            "Sales analysis complete",
            total_revenue=round(total_revenue, 2),
            transactions=transactions,
            days=len(daily),
        )
        return analysis
