"""
Pricing Analysis

Competitive price position and promotion effectiveness per product. Both
views are descriptive and degrade to empty lists when the upload carries no
competitor prices or no promotion flags.
"""

from typing import Iterable, List, Optional, Sequence

import polars as pl
import structlog

from predictiq.models import (
    PriceComparison,
    PricingAnalysis,
    ProductAggregate,
    PromotionImpact,
    TransactionRecord,
)
from predictiq.transformation.aggregations import records_to_frame

logger = structlog.get_logger(__name__)


def price_comparisons(
    products: Iterable[ProductAggregate],
    competitive_index_threshold: float = 105.0,
) -> List[PriceComparison]:
    """Price index against the competitor average, products without one skipped"""
    comparisons = []
    for product in sorted(products, key=lambda p: p.product):
        competitor = product.avg_competitor_price
        if not competitor:
            continue
        index = product.avg_price / competitor * 100
        comparisons.append(PriceComparison(
            product=product.product,
            avg_price=product.avg_price,
            avg_competitor_price=competitor,
            price_difference=product.avg_price - competitor,
            price_index=index,
            is_competitive=index <= competitive_index_threshold,
        ))
    return comparisons


def promotion_impacts(records: Sequence[TransactionRecord]) -> List[PromotionImpact]:
    """Mean units with and without promotion, for products that have both"""
    if not records:
        return []

    df = records_to_frame(records)
    summary = (
        df.group_by("product")
        .agg([
            pl.col("units_sold").filter(pl.col("promotion_active")).mean().alias("avg_promo_units"),
            pl.col("units_sold").filter(~pl.col("promotion_active")).mean().alias("avg_regular_units"),
        ])
        .drop_nulls()
        .sort("product")
    )

    impacts = []
    for row in summary.iter_rows(named=True):
        regular = row["avg_regular_units"]
        impacts.append(PromotionImpact(
            product=row["product"],
            avg_promo_units=row["avg_promo_units"],
            avg_regular_units=regular,
            lift=row["avg_promo_units"] / regular if regular else None,
        ))
    return impacts


class PricingAnalyzer:
    """
    Example:
        analyzer = PricingAnalyzer(competitive_index_threshold=105, promotion_lift_threshold=1.2)
        pricing = analyzer.analyze(aggregates.products.values(), aggregates.records)
    """

    def __init__(
        self,
        competitive_index_threshold: float = 105.0,
        promotion_lift_threshold: float = 1.2,
    ):
        self.competitive_index_threshold = competitive_index_threshold
        self.promotion_lift_threshold = promotion_lift_threshold

    def analyze(
        self,
        products: Iterable[ProductAggregate],
        records: Sequence[TransactionRecord],
    ) -> PricingAnalysis:
        comparisons = price_comparisons(products, self.competitive_index_threshold)
        impacts = promotion_impacts(records)

        lifts = [i.lift for i in impacts if i.lift is not None]
        average_lift: Optional[float] = sum(lifts) / len(lifts) if lifts else None

        pricing = PricingAnalysis(
            price_comparison=comparisons,
            promotion_impacts=impacts,
            average_lift=average_lift,
            promotions_effective=(
                average_lift is not None and average_lift > self.promotion_lift_threshold
            ),
        )

        logger.info(
            "Pricing analysis complete",
            compared=len(comparisons),
            competitive=sum(1 for c in comparisons if c.is_competitive),
            promotion_products=len(impacts),
        )
        return pricing
