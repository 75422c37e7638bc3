"""
Analytics Pipeline

Orchestrates one analytics run:
normalize -> data-quality gate -> aggregate -> independent modules -> result.

Each module reads the shared, immutable aggregates and fails on its own. A
classified failure in one module is recorded on the result and the remaining
modules still report.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from predictiq.analytics.association import MarketBasketAnalyzer
from predictiq.analytics.clustering import SegmentClusterer
from predictiq.analytics.forecasting import DemandForecaster
from predictiq.analytics.inventory import InventoryOptimizer, z_for_service_level
from predictiq.analytics.pricing import PricingAnalyzer
from predictiq.analytics.sales import SalesAnalyzer
from predictiq.analytics.segmentation import RFMSegmenter
from predictiq.config.pipeline import PipelineConfig
from predictiq.errors import (
    AnalyticsError,
    InsufficientData,
    InvalidDataFormat,
    UnsupportedDataType,
)
from predictiq.models import (
    Aggregates,
    AssociationRule,
    CustomerSegment,
    ForecastResult,
    FrequentItemset,
    InventoryInsight,
    ModuleError,
    NormalizationReport,
    PricingAnalysis,
    SalesAnalysis,
    SegmentCluster,
    Serializable,
    TransactionRecord,
)
from predictiq.quality.anomaly_detector import AnomalyDetector, AnomalyReport
from predictiq.quality.normalizer import RecordNormalizer, normalize
from predictiq.transformation.aggregations import AggregationEngine

logger = structlog.get_logger(__name__)

ConfigInput = Union[PipelineConfig, Mapping[str, Any], None]


class AnalysisMode(str, Enum):
    """Which group of modules a run executes"""
    FULL = "full"
    SALES = "sales"
    CUSTOMER = "customer"
    INVENTORY = "inventory"


# Fixed execution and assembly order
MODULES_BY_MODE: Dict[AnalysisMode, Tuple[str, ...]] = {
    AnalysisMode.SALES: ("sales", "forecast", "anomalies"),
    AnalysisMode.CUSTOMER: ("segmentation", "clustering", "association"),
    AnalysisMode.INVENTORY: ("inventory", "pricing"),
}
MODULES_BY_MODE[AnalysisMode.FULL] = (
    MODULES_BY_MODE[AnalysisMode.SALES]
    + MODULES_BY_MODE[AnalysisMode.CUSTOMER]
    + MODULES_BY_MODE[AnalysisMode.INVENTORY]
)


@dataclass
class AnalyticsResult(Serializable):
    """Everything one pipeline run produced; modules not run stay None"""
    mode: AnalysisMode
    evaluation_date: date
    data_quality: NormalizationReport
    sales_analysis: Optional[SalesAnalysis] = None
    predictions: Optional[ForecastResult] = None
    customer_segments: Optional[List[CustomerSegment]] = None
    segment_clusters: Optional[List[SegmentCluster]] = None
    inventory_insights: Optional[List[InventoryInsight]] = None
    anomalies: Optional[AnomalyReport] = None
    association_rules: Optional[List[AssociationRule]] = None
    frequent_itemsets: Optional[List[FrequentItemset]] = None
    pricing: Optional[PricingAnalysis] = None
    errors: Dict[str, ModuleError] = field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["dataQuality"] = self.data_quality.to_dict()
        return data


def resolve_mode(mode: Union[str, AnalysisMode]) -> AnalysisMode:
    """
    Raises:
        UnsupportedDataType: for an unknown mode
    """
    try:
        return AnalysisMode(mode)
    except ValueError:
        supported = ", ".join(m.value for m in AnalysisMode)
        raise UnsupportedDataType(
            f"Unsupported data type '{mode}'. Supported types: {supported}."
        ) from None


def resolve_config(config: ConfigInput) -> PipelineConfig:
    if isinstance(config, PipelineConfig):
        return config
    return PipelineConfig.build(config)


class AnalyticsPipeline:
    """
    Analytics pipeline orchestrator.

    Example:
        pipeline = AnalyticsPipeline(PipelineConfig.build({"forecastHorizonDays": 14}))
        result = pipeline.run(raw_rows, mode="sales")
        result.to_dict()
    """

    def __init__(self, config: ConfigInput = None):
        self.config = resolve_config(config)
        self.engine = AggregationEngine()

    # -------------------------------------------------------------------------
    # Modules
    # -------------------------------------------------------------------------

    def _run_sales(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        analyzer = SalesAnalyzer(top_products_limit=self.config.top_products_limit)
        return {"sales_analysis": analyzer.analyze(
            aggregates.daily, aggregates.products.values(), aggregates.record_count
        )}

    def _run_forecast(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        forecaster = DemandForecaster(
            window=self.config.moving_average_window,
            alpha=self.config.smoothing_alpha,
            horizon=self.config.forecast_horizon_days,
        )
        return {"predictions": forecaster.forecast(aggregates.daily, aggregates.records)}

    def _run_anomalies(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        detector = AnomalyDetector(self.config.anomaly_z_threshold)
        return {"anomalies": detector.detect(aggregates.records)}

    def _run_segmentation(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        segmenter = RFMSegmenter(
            evaluation_date=evaluation_date,
            recency_max=self.config.recency_reference,
            frequency_max=self.config.frequency_reference,
            monetary_max=self.config.monetary_reference,
        )
        return {"customer_segments": segmenter.segment(
            aggregates.customers.values(), aggregates.record_count
        )}

    def _run_clustering(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        clusterer = SegmentClusterer(
            n_clusters=self.config.cluster_count,
            random_state=self.config.cluster_random_state,
        )
        return {"segment_clusters": clusterer.cluster(aggregates.records, evaluation_date)}

    def _run_association(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        analyzer = MarketBasketAnalyzer(
            min_support=self.config.min_support,
            min_confidence=self.config.min_confidence,
        )
        itemsets, rules = analyzer.analyze(aggregates.records)
        return {"frequent_itemsets": itemsets, "association_rules": rules}

    def _run_inventory(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        z = self.config.service_level_z
        if self.config.service_level is not None:
            z = z_for_service_level(self.config.service_level)
        optimizer = InventoryOptimizer(
            service_level_z=z,
            abc_thresholds=self.config.abc_thresholds,
            order_cost=self.config.order_cost,
            holding_cost=self.config.holding_cost,
        )
        return {"inventory_insights": optimizer.analyze(
            aggregates.products.values(), aggregates.record_count
        )}

    def _run_pricing(self, aggregates: Aggregates, evaluation_date: date) -> Dict[str, Any]:
        analyzer = PricingAnalyzer(
            competitive_index_threshold=self.config.competitive_index_threshold,
            promotion_lift_threshold=self.config.promotion_lift_threshold,
        )
        return {"pricing": analyzer.analyze(aggregates.products.values(), aggregates.records)}

    def _module(self, name: str) -> Callable[[Aggregates, date], Dict[str, Any]]:
        return getattr(self, f"_run_{name}")

    def _execute(
        self,
        name: str,
        aggregates: Aggregates,
        evaluation_date: date,
    ) -> Union[Dict[str, Any], ModuleError]:
        """Run one module, converting a classified failure into a ModuleError"""
        try:
            return self._module(name)(aggregates, evaluation_date)
        except AnalyticsError as e:
            logger.warning(
                "Analytics module failed",
                module=name,
                kind=e.kind.value,
                error=e.message,
            )
            return ModuleError(kind=e.kind.value, message=e.message)

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def check_quality(self, report: NormalizationReport) -> None:
        """
        Data-quality gate applied before any module runs.

        Raises:
            InsufficientData: when no valid records remain
            InvalidDataFormat: when the rejection rate exceeds the limit
        """
        if report.total_records and report.rejection_rate > self.config.max_rejection_rate:
            raise InvalidDataFormat(
                f"Too many invalid records: {report.rejected_records} of "
                f"{report.total_records} rows could not be read "
                f"(limit {self.config.max_rejection_rate:.0%}). "
                "Please check the file format and column names."
            )
        if report.valid_records == 0:
            raise InsufficientData("No valid records to analyze. Please upload data first.")

    def analyze(
        self,
        records: Sequence[TransactionRecord],
        report: NormalizationReport,
        mode: Union[str, AnalysisMode] = AnalysisMode.FULL,
    ) -> AnalyticsResult:
        """Run the modules of ``mode`` over already validated records"""
        resolved = resolve_mode(mode)
        self.check_quality(report)

        evaluation_date = self.config.resolve_evaluation_date()
        aggregates = self.engine.aggregate(records)
        modules = MODULES_BY_MODE[resolved]

        logger.info(
            "Starting analytics run",
            mode=resolved.value,
            records=aggregates.record_count,
            modules=list(modules),
            parallel=self.config.parallel,
        )

        if self.config.parallel:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = [
                    executor.submit(self._execute, name, aggregates, evaluation_date)
                    for name in modules
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self._execute(name, aggregates, evaluation_date) for name in modules]

        result = AnalyticsResult(
            mode=resolved,
            evaluation_date=evaluation_date,
            data_quality=report,
        )
        for name, outcome in zip(modules, outcomes):
            if isinstance(outcome, ModuleError):
                result.errors[name] = outcome
            else:
                for attribute, value in outcome.items():
                    setattr(result, attribute, value)

        logger.info(
            "Analytics run complete",
            mode=resolved.value,
            failed_modules=sorted(result.errors),
        )
        return result

    def process(
        self,
        valid_records: Sequence[TransactionRecord],
        mode: Union[str, AnalysisMode] = AnalysisMode.FULL,
        rejected_count: int = 0,
    ) -> AnalyticsResult:
        """Analyze records normalized elsewhere"""
        report = NormalizationReport(
            total_records=len(valid_records) + rejected_count,
            valid_records=len(valid_records),
            rejected_records=rejected_count,
        )
        return self.analyze(valid_records, report, mode)

    def run(
        self,
        raw_records: Any,
        mode: Union[str, AnalysisMode] = AnalysisMode.FULL,
    ) -> AnalyticsResult:
        """Normalize raw rows and analyze them"""
        resolve_mode(mode)
        normalizer = RecordNormalizer(
            default_lead_time_days=self.config.default_lead_time_days,
            revenue_tolerance=self.config.revenue_tolerance,
        )
        records, report = normalizer.normalize_with_report(raw_records)
        return self.analyze(records, report, mode)


def process_data(
    valid_records: Sequence[TransactionRecord],
    config: ConfigInput = None,
    mode: Union[str, AnalysisMode] = AnalysisMode.FULL,
    rejected_count: int = 0,
) -> AnalyticsResult:
    """Analyze validated records with per-call options"""
    return AnalyticsPipeline(config).process(valid_records, mode, rejected_count)


def run_pipeline(
    raw_records: Any,
    config: ConfigInput = None,
    mode: Union[str, AnalysisMode] = AnalysisMode.FULL,
) -> AnalyticsResult:
    """Normalize, gate on data quality and analyze in one call"""
    return AnalyticsPipeline(config).run(raw_records, mode)


__all__ = [
    "AnalysisMode",
    "AnalyticsPipeline",
    "AnalyticsResult",
    "normalize",
    "process_data",
    "run_pipeline",
]
