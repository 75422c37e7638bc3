"""
Record Normalization Module

Turns raw uploaded rows (arbitrary column names, mixed types) into typed
TransactionRecords. Handles:
- Column alias resolution
- Date, decimal and boolean coercion on a polars string frame
- Revenue / units / price derivation
- Row rejection with per-reason accounting

Individual bad rows never raise; they are dropped and counted.
"""

from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import polars as pl
import structlog

from predictiq.errors import InsufficientData, InvalidDataFormat
from predictiq.models import NormalizationReport, TransactionRecord

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

# Canonical field -> accepted column names (compared case-insensitively)
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "date": ("date", "transaction_date", "order_date"),
    "product": ("product", "product_id", "product_name", "sku"),
    "units_sold": ("units_sold", "units", "quantity", "qty"),
    "unit_price": ("price_per_unit", "price_per_unit_bwp", "unit_price", "price"),
    "revenue": ("revenue", "revenue_bwp", "amount", "total_amount"),
    "competitor_price": ("competition_price", "competition_price_bwp", "competitor_price"),
    "promotion_active": ("promotion_active", "promotion", "on_promotion"),
    "customer_segment_key": ("customer_demographic", "customer_segment", "segment", "customer_id"),
    "stock_level": ("stock_level", "stock", "on_hand"),
    "lead_time_days": ("lead_time_days", "lead_time"),
    "store": ("store", "store_id", "location"),
}

NUMERIC_FIELDS = (
    "units_sold",
    "unit_price",
    "revenue",
    "competitor_price",
    "stock_level",
    "lead_time_days",
)

# Unambiguous layouts, tried in order
DATE_FORMATS = [
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%Y/%m/%d",
]

# nn/nn/yyyy is read one way for the whole upload; day-first wins ties
DAY_MONTH_FORMATS = ["%d/%m/%Y", "%m/%d/%Y"]
DAY_MONTH_PATTERN = r"^\d{1,2}/\d{1,2}/\d{4}$"

# ISO-8601 timestamps, with optional seconds, fraction and zone suffix.
# The calendar date is taken as written.
ISO_TIMESTAMP_PATTERN = (
    r"^(\d{4}-\d{2}-\d{2})[T ]([01]\d|2[0-3]):[0-5]\d"
    r"(?::[0-5]\d(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$"
)

CURRENCY_SYMBOLS = r"[$€£¥,\s]"
CURRENCY_CODES = r"^(?:BWP|P)|BWP$"

TRUE_VALUES = ["1", "1.0", "true", "yes", "y", "t"]
FALSE_VALUES = ["0", "0.0", "false", "no", "n", "f"]

DEFAULT_SEGMENT_KEY = "Unknown"


class RejectionReason:
    NOT_A_MAPPING = "not_a_mapping"
    MISSING_PRODUCT = "missing_product"
    INVALID_DATE = "invalid_date"
    MISSING_AMOUNTS = "missing_amounts"
    INVALID_UNITS = "invalid_units"
    NEGATIVE_UNITS = "negative_units"
    INVALID_PRICE = "invalid_price"
    INVALID_REVENUE = "invalid_revenue"
    INVALID_STOCK = "invalid_stock"
    INVALID_LEAD_TIME = "invalid_lead_time"


# =============================================================================
# COERCION EXPRESSIONS
# =============================================================================

def to_cell(value: Any) -> Optional[str]:
    """Render a raw value as frame text; None and blank strings are absent"""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def decimal_expr(column: str) -> pl.Expr:
    """Currency-tolerant Float64 parse; unreadable text becomes null"""
    return (
        pl.col(column)
        .str.replace_all(CURRENCY_SYMBOLS, "")
        .str.replace_all(CURRENCY_CODES, "")
        .cast(pl.Float64, strict=False)
    )


def date_expr(column: str, day_month_format: str = DAY_MONTH_FORMATS[0]) -> pl.Expr:
    text = pl.col(column)
    return pl.coalesce([
        text.str.extract(ISO_TIMESTAMP_PATTERN, 1).str.to_date("%Y-%m-%d", strict=False),
        text.str.to_date(day_month_format, strict=False),
        *[text.str.to_date(fmt, strict=False) for fmt in DATE_FORMATS],
    ])


def bool_expr(column: str) -> pl.Expr:
    text = pl.col(column).str.to_lowercase()
    return (
        pl.when(text.is_in(TRUE_VALUES)).then(pl.lit(True))
        .when(text.is_in(FALSE_VALUES)).then(pl.lit(False))
        .otherwise(pl.lit(None, dtype=pl.Boolean))
    )


def choose_day_month_format(dates: pl.Series) -> str:
    """The nn/nn/yyyy reading that parses the most dates in the upload"""
    present = dates.drop_nulls()
    candidates = present.filter(present.str.contains(DAY_MONTH_PATTERN))
    if candidates.is_empty():
        return DAY_MONTH_FORMATS[0]
    return max(
        DAY_MONTH_FORMATS,
        key=lambda fmt: candidates.len() - candidates.str.to_date(fmt, strict=False).null_count(),
    )


def _evaluate(value: Any, expression: Callable[[pl.DataFrame], pl.Expr]) -> Any:
    frame = pl.DataFrame({"value": [to_cell(value)]}, schema={"value": pl.Utf8})
    return frame.select(expression(frame).alias("parsed")).item()


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from a date/datetime object, an ISO timestamp or a known layout"""
    return _evaluate(value, lambda frame: date_expr("value", choose_day_month_format(frame["value"])))


def parse_decimal(value: Any) -> Optional[float]:
    """Parse a finite number, stripping currency symbols and separators"""
    def finite(_: pl.DataFrame) -> pl.Expr:
        number = decimal_expr("value")
        return pl.when(number.is_finite()).then(number)

    return _evaluate(value, finite)


def parse_bool(value: Any) -> Optional[bool]:
    return _evaluate(value, lambda _: bool_expr("value"))


def _unreadable(field_name: str) -> pl.Expr:
    """Present in the upload but not a finite number"""
    value = pl.col(f"{field_name}_value")
    return pl.col(field_name).is_not_null() & (value.is_null() | ~value.is_finite())


# =============================================================================
# NORMALIZER
# =============================================================================

class RecordNormalizer:
    """
    Validation boundary between uploaded rows and the analytics core.

    Rows are resolved onto canonical columns, loaded into a string frame and
    coerced column-wise.

    Example:
        normalizer = RecordNormalizer(default_lead_time_days=7.0)
        records, report = normalizer.normalize_with_report(rows)
    """

    def __init__(
        self,
        default_lead_time_days: float = 7.0,
        revenue_tolerance: float = 0.01,
    ):
        self.default_lead_time_days = default_lead_time_days
        self.revenue_tolerance = revenue_tolerance

    def _resolve(self, row: Mapping) -> Dict[str, Optional[str]]:
        """Map a raw row onto canonical field names; None when absent or blank"""
        keys = {str(k).strip().lower(): k for k in row.keys()}
        cells: Dict[str, Optional[str]] = {}
        for field_name, aliases in FIELD_ALIASES.items():
            cells[field_name] = None
            for alias in aliases:
                if alias in keys:
                    cells[field_name] = to_cell(row[keys[alias]])
                    break
        return cells

    def to_frame(self, raw_records: Sequence[Any]) -> Tuple[pl.DataFrame, int]:
        """
        Load mapping rows into a Utf8 frame keyed by upload position.

        Returns:
            (frame, number of rows that were not mappings)
        """
        columns: Dict[str, List[Optional[str]]] = {name: [] for name in FIELD_ALIASES}
        row_indexes: List[int] = []
        skipped = 0

        for index, row in enumerate(raw_records):
            if not isinstance(row, Mapping):
                skipped += 1
                continue
            for name, cell in self._resolve(row).items():
                columns[name].append(cell)
            row_indexes.append(index)

        schema = {name: pl.Utf8 for name in FIELD_ALIASES}
        schema["row_index"] = pl.Int64
        frame = pl.DataFrame({**columns, "row_index": row_indexes}, schema=schema)
        return frame, skipped

    def coerce(self, frame: pl.DataFrame) -> pl.DataFrame:
        """
        Typed values, derived amounts, a rejection ``reason`` (null when the
        row is valid) and a ``revenue_mismatch`` flag per row.
        """
        day_month_format = choose_day_month_format(frame["date"])
        if day_month_format != DAY_MONTH_FORMATS[0]:
            logger.info("Reading nn/nn/yyyy dates month-first", format=day_month_format)

        parsed = frame.with_columns(
            date_expr("date", day_month_format).alias("date_value"),
            *[decimal_expr(name).alias(f"{name}_value") for name in NUMERIC_FIELDS],
            bool_expr("promotion_active").fill_null(False).alias("promotion"),
        )

        has_units = pl.col("units_sold").is_not_null()
        has_price = pl.col("unit_price").is_not_null()
        has_revenue = pl.col("revenue").is_not_null()
        units = pl.col("units_sold_value")
        price = pl.col("unit_price_value")
        revenue = pl.col("revenue_value")
        competitor = pl.col("competitor_price_value")
        expected = units * price

        derived = parsed.with_columns(
            pl.when(has_units).then(units)
            .when(has_revenue & has_price & (price > 0)).then((revenue / price + 0.5).floor())
            .alias("units"),
            pl.when(has_price).then(price)
            .when(has_units & (units > 0)).then(revenue / units)
            .otherwise(pl.lit(0.0))
            .alias("price"),
            pl.when(has_revenue).then(revenue).otherwise(expected).alias("amount"),
            pl.when(competitor.is_finite() & (competitor >= 0)).then(competitor).alias("competitor"),
            (
                has_revenue & has_units & has_price
                & ((revenue - expected).abs() > pl.max_horizontal(
                    expected.abs() * self.revenue_tolerance, pl.lit(0.01)
                ))
            ).alias("revenue_mismatch"),
        )

        stock = pl.col("stock_level_value")
        lead_time = pl.col("lead_time_days_value")
        reason = (
            pl.when(pl.col("date_value").is_null()).then(pl.lit(RejectionReason.INVALID_DATE))
            .when(pl.col("product").is_null()).then(pl.lit(RejectionReason.MISSING_PRODUCT))
            .when(_unreadable("units_sold")).then(pl.lit(RejectionReason.INVALID_UNITS))
            .when(units < 0).then(pl.lit(RejectionReason.NEGATIVE_UNITS))
            .when(units.floor() != units).then(pl.lit(RejectionReason.INVALID_UNITS))
            .when(_unreadable("unit_price") | (price < 0)).then(pl.lit(RejectionReason.INVALID_PRICE))
            .when(_unreadable("revenue") | (revenue < 0)).then(pl.lit(RejectionReason.INVALID_REVENUE))
            .when(pl.col("units").is_null() | pl.col("amount").is_null())
            .then(pl.lit(RejectionReason.MISSING_AMOUNTS))
            .when(~pl.col("amount").is_finite()).then(pl.lit(RejectionReason.INVALID_REVENUE))
            .when(~pl.col("units").is_finite()).then(pl.lit(RejectionReason.INVALID_UNITS))
            .when(_unreadable("stock_level") | (stock < 0) | (stock.floor() != stock))
            .then(pl.lit(RejectionReason.INVALID_STOCK))
            .when(_unreadable("lead_time_days") | (lead_time < 0))
            .then(pl.lit(RejectionReason.INVALID_LEAD_TIME))
            .otherwise(pl.lit(None, dtype=pl.Utf8))
        )

        return derived.with_columns(
            reason.alias("reason"),
            stock.fill_null(0.0).alias("stock"),
            lead_time.fill_null(self.default_lead_time_days).alias("lead_time"),
            pl.col("customer_segment_key").fill_null(DEFAULT_SEGMENT_KEY).alias("segment"),
        )

    def _records(self, valid: pl.DataFrame) -> List[TransactionRecord]:
        return [
            TransactionRecord(
                date=row["date_value"],
                product=row["product"],
                units_sold=int(row["units"]),
                unit_price=float(row["price"]),
                revenue=float(row["amount"]),
                competitor_price=row["competitor"],
                promotion_active=row["promotion"],
                customer_segment_key=row["segment"],
                stock_level=int(row["stock"]),
                lead_time_days=float(row["lead_time"]),
                store=row["store"],
                row_index=row["row_index"],
            )
            for row in valid.iter_rows(named=True)
        ]

    def normalize_with_report(
        self,
        raw_records: Any,
    ) -> Tuple[List[TransactionRecord], NormalizationReport]:
        """
        Normalize every row, counting rejections by reason.

        Raises:
            InvalidDataFormat: if the input is not a sequence of rows
            InsufficientData: if the input is empty
        """
        if isinstance(raw_records, (str, bytes, Mapping)) or not isinstance(raw_records, Sequence):
            raise InvalidDataFormat("Uploaded data must be a list of records.")
        if len(raw_records) == 0:
            raise InsufficientData("No records were provided. Please upload data first.")

        frame, skipped = self.to_frame(raw_records)
        coerced = self.coerce(frame)

        reasons: Counter = Counter(coerced["reason"].drop_nulls().to_list())
        if skipped:
            reasons[RejectionReason.NOT_A_MAPPING] += skipped

        valid_frame = coerced.filter(pl.col("reason").is_null())
        valid = self._records(valid_frame)
        mismatches = int(valid_frame["revenue_mismatch"].sum())

        report = NormalizationReport(
            total_records=len(raw_records),
            valid_records=len(valid),
            rejected_records=sum(reasons.values()),
            rejection_reasons=dict(sorted(reasons.items())),
            revenue_mismatches=mismatches,
        )

        if report.rejected_records:
            logger.warning(
                "Records rejected during normalization",
                rejected=report.rejected_records,
                total=report.total_records,
                reasons=report.rejection_reasons,
            )
        if mismatches:
            logger.warning("Revenue differs from units x price", records=mismatches)

        logger.info(
            "Normalization complete",
            valid=report.valid_records,
            rejected=report.rejected_records,
        )
        return valid, report


def normalize(
    raw_records: Any,
    default_lead_time_days: float = 7.0,
) -> Tuple[List[TransactionRecord], int]:
    """
    Convenience function returning ``(valid_records, rejected_count)``.

    Args:
        raw_records: Sequence of untyped key-value rows
        default_lead_time_days: Lead time for rows that carry none
    """
    normalizer = RecordNormalizer(default_lead_time_days=default_lead_time_days)
    valid, report = normalizer.normalize_with_report(raw_records)
    return valid, report.rejected_records
