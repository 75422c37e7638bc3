"""
Unit Tests - Aggregation
"""
from datetime import date

import pytest

from predictiq.quality.normalizer import normalize
from predictiq.transformation.aggregations import AggregationEngine, records_to_frame


class TestRecordsToFrame:
    """Tests for records_to_frame"""

    def test_sorted_chronologically(self, record_factory):
        records = [
            record_factory(date(2025, 1, 3), row_index=0),
            record_factory(date(2025, 1, 1), row_index=2),
            record_factory(date(2025, 1, 1), row_index=1),
        ]

        df = records_to_frame(records)

        assert df["row_index"].to_list() == [1, 2, 0]


class TestAggregationEngine:
    """Tests for AggregationEngine"""

    def test_daily_totals(self, record_factory):
        records = [
            record_factory(date(2025, 1, 2), units=3, price=2.0, row_index=0),
            record_factory(date(2025, 1, 1), units=5, price=2.0, row_index=1),
            record_factory(date(2025, 1, 2), product="B", units=4, price=1.0, row_index=2),
        ]

        aggregates = AggregationEngine().aggregate(records)

        assert [d.date for d in aggregates.daily] == [date(2025, 1, 1), date(2025, 1, 2)]
        assert [d.total_units for d in aggregates.daily] == [5, 7]
        assert [d.transaction_count for d in aggregates.daily] == [1, 2]
        assert aggregates.daily[1].total_revenue == pytest.approx(10.0)

    def test_conservation(self, raw_rows):
        """Test totals survive grouping unchanged"""
        records, _ = normalize(raw_rows)

        aggregates = AggregationEngine().aggregate(records)

        assert sum(d.total_units for d in aggregates.daily) == sum(r.units_sold for r in records)
        assert sum(p.total_revenue for p in aggregates.products.values()) == pytest.approx(
            sum(r.revenue for r in records)
        )
        assert sum(c.transaction_count for c in aggregates.customers.values()) == len(records)

    def test_product_means_match_direct_computation(self, raw_rows):
        records, _ = normalize(raw_rows)

        products = AggregationEngine().aggregate(records).products

        for name, aggregate in products.items():
            own = [r for r in records if r.product == name]
            assert aggregate.avg_price == pytest.approx(sum(r.unit_price for r in own) / len(own))
            assert aggregate.avg_daily_sales == pytest.approx(sum(r.units_sold for r in own) / len(own))
            assert aggregate.avg_lead_time_days == pytest.approx(5.0)

    def test_population_std_dev(self, record_factory):
        records = [
            record_factory(date(2025, 1, i + 1), units=u, row_index=i)
            for i, u in enumerate([2, 4, 4, 4, 5, 5, 7, 9])
        ]

        product = AggregationEngine().aggregate(records).products["Widget"]

        assert product.sales_std_dev == pytest.approx(2.0)

    def test_single_record_std_dev_is_zero(self, record_factory):
        records = [record_factory(date(2025, 1, 1))]

        product = AggregationEngine().aggregate(records).products["Widget"]

        assert product.sales_std_dev == pytest.approx(0.0)

    def test_last_known_stock_is_chronological(self, record_factory):
        records = [
            record_factory(date(2025, 1, 5), stock_level=40, row_index=0),
            record_factory(date(2025, 1, 1), stock_level=90, row_index=1),
        ]

        product = AggregationEngine().aggregate(records).products["Widget"]

        assert product.last_known_stock == 40

    def test_competitor_price_ignores_missing(self, record_factory):
        records = [
            record_factory(date(2025, 1, 1), competitor_price=6.0, row_index=0),
            record_factory(date(2025, 1, 2), competitor_price=None, row_index=1),
        ]

        product = AggregationEngine().aggregate(records).products["Widget"]

        assert product.avg_competitor_price == pytest.approx(6.0)

    def test_customer_summary(self, record_factory):
        records = [
            record_factory(date(2025, 1, 1), customer_segment_key="Families", row_index=0),
            record_factory(date(2025, 1, 9), customer_segment_key="Families", row_index=1),
            record_factory(date(2025, 1, 4), customer_segment_key="Students", row_index=2),
        ]

        customers = AggregationEngine().aggregate(records).customers

        assert list(customers) == ["Families", "Students"]
        assert customers["Families"].transaction_count == 2
        assert customers["Families"].total_revenue == pytest.approx(100.0)
        assert customers["Families"].last_purchase_date == date(2025, 1, 9)
