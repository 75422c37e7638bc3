"""
Analytics Domain Models

Typed records, aggregates and result structures exchanged between the
pipeline stages. Results serialize to camelCase dictionaries for the
presentation layer; nothing here carries rendering concerns.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic.alias_generators import to_camel


def _serialize(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): _serialize(getattr(value, f.name))
            for f in fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class Serializable:
    """Mixin giving dataclasses a camelCase ``to_dict``"""

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


class AbcCategory(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class CustomerTier(str, Enum):
    HIGH_VALUE = "High-Value"
    MID_VALUE = "Mid-Value"
    LOW_VALUE = "Low-Value"


# =============================================================================
# RECORDS AND AGGREGATES
# =============================================================================

@dataclass(frozen=True)
class TransactionRecord(Serializable):
    """One validated row of the uploaded transaction table"""
    date: date
    product: str
    units_sold: int
    unit_price: float
    revenue: float
    competitor_price: Optional[float] = None
    promotion_active: bool = False
    customer_segment_key: str = "Unknown"
    stock_level: int = 0
    lead_time_days: float = 0.0
    store: Optional[str] = None
    row_index: int = 0


@dataclass(frozen=True)
class DailyAggregate(Serializable):
    date: date
    total_units: int
    transaction_count: int
    total_revenue: float


@dataclass(frozen=True)
class ProductAggregate(Serializable):
    product: str
    total_revenue: float
    total_units: int
    transaction_count: int
    avg_price: float
    last_known_stock: int
    avg_daily_sales: float
    sales_std_dev: float
    avg_lead_time_days: float
    avg_competitor_price: Optional[float] = None


@dataclass(frozen=True)
class CustomerAggregate(Serializable):
    segment_key: str
    transaction_count: int
    total_revenue: float
    last_purchase_date: date
    total_units: int = 0


@dataclass(frozen=True)
class Aggregates:
    """All grouped views of one validated record set"""
    records: Tuple[TransactionRecord, ...]
    daily: Tuple[DailyAggregate, ...]
    products: Dict[str, ProductAggregate]
    customers: Dict[str, CustomerAggregate]

    @property
    def record_count(self) -> int:
        return len(self.records)


# =============================================================================
# DATA QUALITY
# =============================================================================

@dataclass
class NormalizationReport(Serializable):
    """Data-quality signal emitted by the record normalizer"""
    total_records: int
    valid_records: int
    rejected_records: int
    rejection_reasons: Dict[str, int] = field(default_factory=dict)
    revenue_mismatches: int = 0

    @property
    def rejection_rate(self) -> float:
        if self.total_records == 0:
            return 0.0
        return self.rejected_records / self.total_records

    def to_dict(self) -> Dict[str, Any]:
        data = _serialize(self)
        data["rejectionRate"] = self.rejection_rate
        return data


# =============================================================================
# MODULE RESULTS
# =============================================================================

@dataclass(frozen=True)
class OverallMetrics(Serializable):
    total_revenue: float
    total_units: int
    transaction_count: int
    average_ticket_size: float
    monthly_growth_percent: Optional[float] = None


@dataclass(frozen=True)
class TopProduct(Serializable):
    product: str
    revenue: float
    units: int
    average_price: float


@dataclass(frozen=True)
class SalesAnalysis(Serializable):
    overall_metrics: OverallMetrics
    top_products: List[TopProduct]
    daily_sales: List[DailyAggregate]


@dataclass(frozen=True)
class ForecastPoint(Serializable):
    date: date
    actual_value: Optional[float] = None
    moving_average: Optional[float] = None
    predicted_value: Optional[float] = None


@dataclass(frozen=True)
class DriverImportance(Serializable):
    """Absolute correlation of one record field with units sold"""
    feature: str
    correlation: float
    importance: float


@dataclass(frozen=True)
class ForecastResult(Serializable):
    historical: List[ForecastPoint]
    forecast: List[ForecastPoint]
    mae: Optional[float] = None
    rmse: Optional[float] = None
    mse: Optional[float] = None
    r2: Optional[float] = None
    drivers: List[DriverImportance] = field(default_factory=list)


@dataclass(frozen=True)
class CustomerSegment(Serializable):
    segment_key: str
    recency_days: int
    frequency: int
    monetary_value: float
    r_score: int
    f_score: int
    m_score: int
    rfm_score: float
    tier: CustomerTier


@dataclass(frozen=True)
class SegmentCluster(Serializable):
    cluster: int
    label: str
    size: int
    avg_monetary: float
    avg_frequency: float
    avg_recency_days: float
    segment_keys: List[str]


@dataclass(frozen=True)
class InventoryInsight(Serializable):
    product: str
    revenue: float
    revenue_share_percent: float
    abc_category: AbcCategory
    stock_level: int
    reorder_point: int
    safety_stock: int
    avg_daily_sales: float
    lead_time_days: float
    stock_coverage_days: Optional[float]
    economic_order_quantity: Optional[int] = None
    needs_reorder: bool = False


@dataclass(frozen=True)
class FrequentItemset(Serializable):
    items: Tuple[str, ...]
    support: float


@dataclass(frozen=True)
class AssociationRule(Serializable):
    antecedent: str
    consequent: str
    support: float
    confidence: float
    lift: float


@dataclass(frozen=True)
class PriceComparison(Serializable):
    product: str
    avg_price: float
    avg_competitor_price: float
    price_difference: float
    price_index: float
    is_competitive: bool


@dataclass(frozen=True)
class PromotionImpact(Serializable):
    product: str
    avg_promo_units: float
    avg_regular_units: float
    lift: Optional[float]


@dataclass(frozen=True)
class PricingAnalysis(Serializable):
    price_comparison: List[PriceComparison]
    promotion_impacts: List[PromotionImpact]
    average_lift: Optional[float]
    promotions_effective: bool


@dataclass(frozen=True)
class ModuleError(Serializable):
    kind: str
    message: str
