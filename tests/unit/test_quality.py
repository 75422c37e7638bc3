"""
Unit Tests - Data Quality
"""
from datetime import date, datetime, timedelta

import pytest

from predictiq.config import AnomalyThresholds
from predictiq.errors import InsufficientData, InvalidDataFormat
from predictiq.quality.anomaly_detector import (
    AnomalyDetector,
    AnomalyDirection,
    AnomalySeverity,
)
from predictiq.quality.normalizer import (
    RecordNormalizer,
    RejectionReason,
    normalize,
    parse_bool,
    parse_date,
    parse_decimal,
)


class TestCoercion:
    """Tests for field coercion helpers"""

    def test_day_first_date(self):
        assert parse_date("02/03/2025") == date(2025, 3, 2)

    def test_iso_date(self):
        assert parse_date("2025-03-02") == date(2025, 3, 2)

    def test_unparseable_date(self):
        assert parse_date("next tuesday") is None
        assert parse_date(20250302) is None

    def test_iso_timestamp_with_zone(self):
        assert parse_date("2025-01-15T00:00:00.000Z") == date(2025, 1, 15)
        assert parse_date("2025-01-15T08:30:00+02:00") == date(2025, 1, 15)
        assert parse_date("2025-01-15 08:30") == date(2025, 1, 15)

    def test_datetime_object(self):
        assert parse_date(datetime(2025, 3, 2, 14, 5)) == date(2025, 3, 2)

    def test_invalid_timestamp(self):
        assert parse_date("2025-02-30T00:00:00Z") is None
        assert parse_date("2025-01-15T25:00:00Z") is None

    def test_month_first_when_day_first_cannot_parse(self):
        assert parse_date("12/31/2025") == date(2025, 12, 31)

    def test_currency_stripped(self):
        assert parse_decimal("P1,234.50") == pytest.approx(1234.5)
        assert parse_decimal("$ 99") == pytest.approx(99.0)
        assert parse_decimal("250 BWP") == pytest.approx(250.0)

    def test_non_numeric_decimal(self):
        assert parse_decimal("n/a") is None
        assert parse_decimal(float("nan")) is None
        assert parse_decimal("NaN") is None
        assert parse_decimal(True) is None

    def test_bool_values(self):
        assert parse_bool(1) is True
        assert parse_bool("no") is False
        assert parse_bool("maybe") is None


class TestRecordNormalizer:
    """Tests for RecordNormalizer"""

    def test_upload_columns_resolved(self, raw_rows):
        """Test dashboard export column names map onto record fields"""
        records, report = RecordNormalizer().normalize_with_report(raw_rows[:1])

        record = records[0]
        assert report.rejected_records == 0
        assert record.date == date(2025, 1, 1)
        assert record.product == "Rice 5kg"
        assert record.units_sold == 20
        assert record.unit_price == pytest.approx(75.0)
        assert record.revenue == pytest.approx(1500.0)
        assert record.store == "Gaborone"
        assert record.customer_segment_key == "Families"
        assert record.promotion_active is True
        assert record.competitor_price == pytest.approx(82.5)
        assert record.lead_time_days == pytest.approx(5.0)
        assert record.row_index == 0

    def test_column_names_case_insensitive(self):
        rows = [{"DATE": "2025-01-01", "PRODUCT": "A", "UNITS_SOLD": "3", "PRICE": "2.5"}]
        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert records[0].revenue == pytest.approx(7.5)

    def test_defaults_for_absent_fields(self):
        rows = [{"date": "2025-01-01", "product": "A", "units": 2, "price": 3.0}]
        records, _ = RecordNormalizer(default_lead_time_days=9.0).normalize_with_report(rows)

        record = records[0]
        assert record.promotion_active is False
        assert record.lead_time_days == pytest.approx(9.0)
        assert record.customer_segment_key == "Unknown"
        assert record.stock_level == 0
        assert record.competitor_price is None

    def test_price_derived_from_revenue(self):
        rows = [{"date": "2025-01-01", "product": "A", "units": 4, "revenue": 10.0}]
        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert records[0].unit_price == pytest.approx(2.5)

    def test_units_derived_from_revenue(self):
        rows = [{"date": "2025-01-01", "product": "A", "price": 2.5, "revenue": 10.0}]
        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert records[0].units_sold == 4

    def test_revenue_mismatch_counted_and_kept(self):
        rows = [{"date": "2025-01-01", "product": "A", "units": 2, "price": 3.0, "revenue": 10.0}]
        records, report = RecordNormalizer().normalize_with_report(rows)

        assert records[0].revenue == pytest.approx(10.0)
        assert report.revenue_mismatches == 1
        assert report.rejected_records == 0

    @pytest.mark.parametrize(
        "row,reason",
        [
            ({"date": "not a date", "product": "A", "units": 1, "price": 1}, RejectionReason.INVALID_DATE),
            ({"date": "2025-01-01", "product": "A", "units": -1, "price": 1}, RejectionReason.NEGATIVE_UNITS),
            ({"date": "2025-01-01", "product": "A", "units": 1}, RejectionReason.MISSING_AMOUNTS),
            ({"date": "2025-01-01", "units": 1, "price": 1}, RejectionReason.MISSING_PRODUCT),
            ({"date": "2025-01-01", "product": "A", "units": "lots", "price": 1}, RejectionReason.INVALID_UNITS),
            ({"date": "2025-01-01", "product": "A", "units": 2.5, "price": 1}, RejectionReason.INVALID_UNITS),
            (
                {"date": "2025-01-01", "product": "A", "units": 2, "price": float("nan"), "revenue": 10},
                RejectionReason.INVALID_PRICE,
            ),
            (
                {"date": "2025-01-01", "product": "A", "units": 2, "price": "NaN", "revenue": 10},
                RejectionReason.INVALID_PRICE,
            ),
            ({"date": "2025-01-01", "product": "A", "units": 2, "price": -3}, RejectionReason.INVALID_PRICE),
            ({"date": "2025-01-01", "product": "A", "units": 2, "revenue": "free"}, RejectionReason.INVALID_REVENUE),
            ({"date": "2025-01-01", "product": "A", "units": 2, "price": 1e308}, RejectionReason.INVALID_REVENUE),
            (
                {"date": "2025-01-01", "product": "A", "units": 2, "price": 1, "stock_level": 4.5},
                RejectionReason.INVALID_STOCK,
            ),
            (
                {"date": "2025-01-01", "product": "A", "units": 2, "price": 1, "lead_time_days": -1},
                RejectionReason.INVALID_LEAD_TIME,
            ),
            ("not a row", RejectionReason.NOT_A_MAPPING),
        ],
    )
    def test_rejection_reasons(self, row, reason):
        records, report = RecordNormalizer().normalize_with_report([row])

        assert records == []
        assert report.rejection_reasons == {reason: 1}

    @pytest.mark.parametrize(
        "template",
        ["2025-01-{day:02d}T00:00:00.000Z", "2025-01-{day:02d}T08:30:00+02:00"],
    )
    def test_timestamped_upload(self, template):
        """Test dashboard timestamps with a zone suffix keep their calendar date"""
        rows = [
            {"date": template.format(day=day), "product": "A", "units": 2, "price": 1.5}
            for day in range(1, 11)
        ]

        records, report = RecordNormalizer().normalize_with_report(rows)

        assert report.rejected_records == 0
        assert [r.date for r in records] == [date(2025, 1, day) for day in range(1, 11)]

    def test_month_first_upload(self):
        """Test one nn/nn/yyyy reading is applied to the whole upload"""
        rows = [
            {"date": "03/04/2025", "product": "A", "units": 1, "price": 1},
            {"date": "12/31/2025", "product": "A", "units": 1, "price": 1},
        ]

        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert [r.date for r in records] == [date(2025, 3, 4), date(2025, 12, 31)]

    def test_day_first_upload(self):
        rows = [
            {"date": "03/04/2025", "product": "A", "units": 1, "price": 1},
            {"date": "13/04/2025", "product": "A", "units": 1, "price": 1},
        ]

        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert [r.date for r in records] == [date(2025, 4, 3), date(2025, 4, 13)]

    def test_currency_text_amounts(self):
        rows = [{"date": "2025-01-01", "product": "A", "units": "3", "revenue": "P1,500.00"}]

        records, _ = RecordNormalizer().normalize_with_report(rows)

        assert records[0].revenue == pytest.approx(1500.0)
        assert records[0].unit_price == pytest.approx(500.0)

    def test_frame_keeps_upload_positions(self):
        frame, skipped = RecordNormalizer().to_frame(
            [{"date": "2025-01-01"}, "junk", {"DATE": "2025-01-02"}]
        )

        assert skipped == 1
        assert frame["row_index"].to_list() == [0, 2]
        assert frame["date"].to_list() == ["2025-01-01", "2025-01-02"]

    def test_rejection_accounting(self, raw_rows):
        """Test valid + rejected always equals the input size"""
        rows = list(raw_rows)
        rows[0] = dict(rows[0], Date="31/31/2025")
        rows[1] = dict(rows[1], Units_Sold=-5)
        rows.append({"Product": "orphan"})

        valid, rejected = normalize(rows)

        assert rejected == 3
        assert len(valid) + rejected == len(rows)

    def test_not_a_list(self):
        with pytest.raises(InvalidDataFormat):
            normalize({"date": "2025-01-01"})

    def test_string_is_not_a_list(self):
        with pytest.raises(InvalidDataFormat):
            normalize("date,product\n2025-01-01,A")

    def test_empty_input(self):
        with pytest.raises(InsufficientData):
            normalize([])

    def test_report_rejection_rate(self):
        rows = [
            {"date": "2025-01-01", "product": "A", "units": 1, "price": 1},
            {"date": "bad", "product": "A", "units": 1, "price": 1},
        ]
        _, report = RecordNormalizer().normalize_with_report(rows)

        assert report.rejection_rate == pytest.approx(0.5)
        assert report.to_dict()["rejectionRate"] == pytest.approx(0.5)


class TestAnomalyDetector:
    """Tests for AnomalyDetector"""

    def _series(self, record_factory, product, units, prices=None, start_index=0):
        start = date(2025, 1, 1)
        prices = prices or [5.0] * len(units)
        return [
            record_factory(
                start + timedelta(days=i),
                product=product,
                units=u,
                price=p,
                row_index=start_index + i,
            )
            for i, (u, p) in enumerate(zip(units, prices))
        ]

    def test_zscore_spike(self, record_factory):
        """Test a single spike is flagged with its z-score"""
        records = self._series(record_factory, "A", [10] * 9 + [100])

        report = AnomalyDetector().detect(records)

        assert len(report.sales) == 1
        anomaly = report.sales[0]
        assert anomaly.value == 100
        assert anomaly.group_mean == pytest.approx(19.0)
        assert anomaly.z_score == pytest.approx(3.0)
        assert anomaly.direction == AnomalyDirection.HIGH
        assert anomaly.severity == AnomalySeverity.MEDIUM
        assert anomaly.row_index == 9

    def test_constant_series_has_no_anomalies(self, record_factory):
        records = self._series(record_factory, "A", [7] * 10)

        report = AnomalyDetector().detect(records)

        assert report.sales == []
        assert report.price == []

    def test_price_detected_independently(self, record_factory):
        prices = [5.0] * 9 + [50.0]
        records = self._series(record_factory, "A", [10] * 10, prices=prices)

        report = AnomalyDetector(AnomalyThresholds(sales=2.5, price=2.0)).detect(records)

        assert report.sales == []
        assert len(report.price) == 1
        assert report.price[0].value == pytest.approx(50.0)

    def test_drop_direction(self, record_factory):
        records = self._series(record_factory, "A", [50] * 9 + [0])

        report = AnomalyDetector().detect(records)

        assert report.sales[0].direction == AnomalyDirection.LOW

    def test_groups_are_per_product(self, record_factory):
        """Test each product is scored against its own mean"""
        records = (
            self._series(record_factory, "B", [10] * 9 + [100], start_index=10)
            + self._series(record_factory, "A", [1000] * 10, start_index=0)
        )

        report = AnomalyDetector().detect(records)

        assert [a.product for a in report.sales] == ["B"]

    def test_output_ordered_by_product_then_row(self, record_factory):
        records = (
            self._series(record_factory, "B", [10] * 9 + [100], start_index=0)
            + self._series(record_factory, "A", [100] + [10] * 9, start_index=10)
        )

        report = AnomalyDetector().detect(records)

        assert [(a.product, a.row_index) for a in report.sales] == [("A", 10), ("B", 9)]

    def test_serializes_camel_case(self, record_factory):
        records = self._series(record_factory, "A", [10] * 9 + [100])

        data = AnomalyDetector().detect(records).to_dict()

        assert set(data) == {"sales", "price"}
        assert data["sales"][0]["groupMean"] == pytest.approx(19.0)
        assert data["sales"][0]["direction"] == "high"
