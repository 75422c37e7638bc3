"""
Per-call pipeline configuration.

PipelineConfig holds the tunables of one analytics run. Defaults come from
AnalyticsSettings (environment, prefix ANALYTICS_) and callers override them
per request using either snake_case names or the camelCase names used by the
dashboard (movingAverageWindow, smoothingAlpha, ...).
"""

from datetime import date
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from predictiq.config.settings import AnalyticsSettings, get_settings
from predictiq.errors import ConfigurationError


class AbcThresholds(BaseModel):
    """Cumulative revenue share boundaries (percent) for ABC classes"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    a: float = 70.0
    b: float = 90.0

    @model_validator(mode="after")
    def check_order(self) -> "AbcThresholds":
        if not (0 < self.a <= self.b <= 100):
            raise ValueError("ABC thresholds must satisfy 0 < a <= b <= 100")
        return self


class AnomalyThresholds(BaseModel):
    """Z-score thresholds for the sales and price series"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sales: float = Field(default=2.5, gt=0)
    price: float = Field(default=2.0, gt=0)


class PipelineConfig(BaseModel):
    """Validated options for a single pipeline invocation"""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    # Forecasting
    moving_average_window: int = Field(default=7, gt=0)
    smoothing_alpha: float = Field(default=0.2, gt=0, le=1)
    forecast_horizon_days: int = Field(default=30, gt=0)

    # Inventory
    service_level_z: float = Field(default=1.65, ge=0)
    service_level: Optional[float] = Field(default=None, gt=0, lt=1)
    abc_thresholds: AbcThresholds = Field(default_factory=AbcThresholds)
    order_cost: Optional[float] = Field(default=None, gt=0)
    holding_cost: Optional[float] = Field(default=None, gt=0)
    default_lead_time_days: float = Field(default=7.0, ge=0)

    # Segmentation
    rfm_reference_max: float = Field(default=1000.0, gt=0)
    rfm_recency_max: Optional[float] = Field(default=None, gt=0)
    rfm_frequency_max: Optional[float] = Field(default=None, gt=0)
    rfm_monetary_max: Optional[float] = Field(default=None, gt=0)
    evaluation_date: Optional[date] = None
    cluster_count: int = Field(default=3, gt=1)
    cluster_random_state: int = 42

    # Anomalies and market basket
    anomaly_z_threshold: AnomalyThresholds = Field(default_factory=AnomalyThresholds)
    min_support: float = Field(default=0.05, gt=0, le=1)
    min_confidence: float = Field(default=0.3, gt=0, le=1)

    # Sales and pricing
    top_products_limit: int = Field(default=5, gt=0)
    competitive_index_threshold: float = Field(default=105.0, gt=0)
    promotion_lift_threshold: float = Field(default=1.2, gt=0)

    # Data quality
    max_rejection_rate: float = Field(default=0.5, ge=0, le=1)
    revenue_tolerance: float = Field(default=0.01, ge=0)

    # Execution
    parallel: bool = False
    max_workers: int = Field(default=4, gt=0)

    @property
    def recency_reference(self) -> float:
        return self.rfm_recency_max or self.rfm_reference_max

    @property
    def frequency_reference(self) -> float:
        return self.rfm_frequency_max or self.rfm_reference_max

    @property
    def monetary_reference(self) -> float:
        return self.rfm_monetary_max or self.rfm_reference_max

    @property
    def eoq_enabled(self) -> bool:
        return self.order_cost is not None and self.holding_cost is not None

    def resolve_evaluation_date(self) -> date:
        """Injected evaluation date, or today when none was given"""
        return self.evaluation_date or date.today()

    @classmethod
    def from_settings(cls, settings: Optional[AnalyticsSettings] = None) -> Dict[str, Any]:
        """Default option values taken from environment-backed settings"""
        s = settings or get_settings().analytics
        return {
            "moving_average_window": s.moving_average_window,
            "smoothing_alpha": s.smoothing_alpha,
            "forecast_horizon_days": s.forecast_horizon_days,
            "service_level_z": s.service_level_z,
            "abc_thresholds": {"a": s.abc_threshold_a, "b": s.abc_threshold_b},
            "default_lead_time_days": s.default_lead_time_days,
            "rfm_reference_max": s.rfm_reference_max,
            "cluster_count": s.cluster_count,
            "cluster_random_state": s.cluster_random_state,
            "anomaly_z_threshold": {"sales": s.anomaly_sales_z, "price": s.anomaly_price_z},
            "min_support": s.min_support,
            "min_confidence": s.min_confidence,
            "max_rejection_rate": s.max_rejection_rate,
            "revenue_tolerance": s.revenue_tolerance,
            "parallel": s.parallel,
            "max_workers": s.max_workers,
        }

    @classmethod
    def build(
        cls,
        overrides: Optional[Mapping[str, Any]] = None,
        settings: Optional[AnalyticsSettings] = None,
    ) -> "PipelineConfig":
        """
        Build a validated config from settings defaults plus overrides.

        Raises:
            ConfigurationError: if any option is unknown or out of range
        """
        values = cls.from_settings(settings)

        if overrides:
            by_alias = {
                (field.alias or name): name
                for name, field in cls.model_fields.items()
            }
            for key, value in overrides.items():
                values[by_alias.get(key, key)] = value

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(_describe_validation_error(e)) from None


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(to_camel(str(part)) for part in item["loc"])
        message = item["msg"].removeprefix("Value error, ")
        problems.append(f"{location}: {message}" if location else message)
    return "Invalid configuration: " + "; ".join(problems)
