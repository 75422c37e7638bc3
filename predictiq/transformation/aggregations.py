"""
Aggregation Engine

Groups validated transaction records into the read-only views the analytics
modules consume:
- Daily totals (ascending by date)
- Per-product summaries
- Per-customer-segment summaries

Built fresh on every pipeline run; nothing is cached between runs.
"""

from typing import Dict, List, Sequence

import polars as pl
import structlog

from predictiq.models import (
    Aggregates,
    CustomerAggregate,
    DailyAggregate,
    ProductAggregate,
    TransactionRecord,
)

logger = structlog.get_logger(__name__)


RECORD_SCHEMA = {
    "row_index": pl.Int64,
    "date": pl.Date,
    "product": pl.Utf8,
    "units_sold": pl.Int64,
    "unit_price": pl.Float64,
    "revenue": pl.Float64,
    "competitor_price": pl.Float64,
    "promotion_active": pl.Boolean,
    "customer_segment_key": pl.Utf8,
    "stock_level": pl.Int64,
    "lead_time_days": pl.Float64,
    "store": pl.Utf8,
}


def records_to_frame(records: Sequence[TransactionRecord]) -> pl.DataFrame:
    """
    Build a chronologically sorted DataFrame from records.

    Rows on the same date keep their upload order.
    """
    columns = {
        name: [getattr(record, name) for record in records]
        for name in RECORD_SCHEMA
    }
    return pl.DataFrame(columns, schema=RECORD_SCHEMA).sort(["date", "row_index"])


class AggregationEngine:
    """
    Pure grouping and reduction over validated records.

    Example:
        engine = AggregationEngine()
        aggregates = engine.aggregate(records)
        aggregates.daily[0].total_units
    """

    def daily_sales(self, df: pl.DataFrame) -> List[DailyAggregate]:
        """Daily unit, transaction and revenue totals, ascending by date"""
        daily = (
            df.group_by("date")
            .agg([
                pl.col("units_sold").sum().alias("total_units"),
                pl.len().alias("transaction_count"),
                pl.col("revenue").sum().alias("total_revenue"),
            ])
            .sort("date")
        )
        return [DailyAggregate(**row) for row in daily.iter_rows(named=True)]

    def product_summary(self, df: pl.DataFrame) -> Dict[str, ProductAggregate]:
        """
        Per-product revenue, volume, pricing and stock statistics.

        Means are single-pass sum/count aggregations. The standard deviation
        is the population deviation of per-record unit sales. Stock comes from
        the chronologically last record, which relies on ``df`` being sorted.
        """
        products = (
            df.group_by("product", maintain_order=True)
            .agg([
                pl.col("revenue").sum().alias("total_revenue"),
                pl.col("units_sold").sum().alias("total_units"),
                pl.len().alias("transaction_count"),
                pl.col("unit_price").mean().alias("avg_price"),
                pl.col("stock_level").last().alias("last_known_stock"),
                pl.col("units_sold").mean().alias("avg_daily_sales"),
                pl.col("units_sold").std(ddof=0).alias("sales_std_dev"),
                pl.col("lead_time_days").mean().alias("avg_lead_time_days"),
                pl.col("competitor_price").mean().alias("avg_competitor_price"),
            ])
            .sort("product")
        )
        return {
            row["product"]: ProductAggregate(**row)
            for row in products.iter_rows(named=True)
        }

    def customer_summary(self, df: pl.DataFrame) -> Dict[str, CustomerAggregate]:
        """Per-segment transaction counts, revenue and last purchase date"""
        customers = (
            df.group_by("customer_segment_key")
            .agg([
                pl.len().alias("transaction_count"),
                pl.col("revenue").sum().alias("total_revenue"),
                pl.col("date").max().alias("last_purchase_date"),
                pl.col("units_sold").sum().alias("total_units"),
            ])
            .sort("customer_segment_key")
            .rename({"customer_segment_key": "segment_key"})
        )
        return {
            row["segment_key"]: CustomerAggregate(**row)
            for row in customers.iter_rows(named=True)
        }

    def aggregate(self, records: Sequence[TransactionRecord]) -> Aggregates:
        """Build every grouped view of ``records``"""
        df = records_to_frame(records)
        ordered = tuple(sorted(records, key=lambda r: (r.date, r.row_index)))

        aggregates = Aggregates(
            records=ordered,
            daily=tuple(self.daily_sales(df)),
            products=self.product_summary(df),
            customers=self.customer_summary(df),
        )

        logger.debug(
            "Aggregation complete",
            records=len(ordered),
            days=len(aggregates.daily),
            products=len(aggregates.products),
            segments=len(aggregates.customers),
        )
        return aggregates


def aggregate_records(records: Sequence[TransactionRecord]) -> Aggregates:
    """Convenience function for one-off aggregation"""
    return AggregationEngine().aggregate(records)
