"""
Anomaly Detection Module

Batch z-score anomaly detection over transaction records.
Implements:
- Per-product grouping of unit-sales and price series
- Population z-score against the group mean
- Severity bands relative to the threshold
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog

from predictiq.config.pipeline import AnomalyThresholds
from predictiq.models import Serializable, TransactionRecord

logger = structlog.get_logger(__name__)


class AnomalyDirection(str, Enum):
    """Side of the group mean an anomaly falls on"""
    HIGH = "high"
    LOW = "low"


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class Anomaly(Serializable):
    """Single flagged record value"""
    date: date
    product: str
    value: float
    group_mean: float
    z_score: float
    direction: AnomalyDirection
    severity: AnomalySeverity
    row_index: int


@dataclass
class AnomalyReport(Serializable):
    """Anomalies found in the sales and price series"""
    sales: List[Anomaly] = field(default_factory=list)
    price: List[Anomaly] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sales) + len(self.price)


def _severity(z_score: float, threshold: float) -> AnomalySeverity:
    if z_score > threshold * 2:
        return AnomalySeverity.CRITICAL
    if z_score > threshold * 1.5:
        return AnomalySeverity.HIGH
    return AnomalySeverity.MEDIUM


class AnomalyDetector:
    """
    Z-score anomaly detector for per-product series.

    Each product's records form one group; a record is flagged when its value
    lies more than ``threshold`` population standard deviations from the
    group mean. A constant series has no anomalies.

    Example:
        detector = AnomalyDetector(thresholds=AnomalyThresholds(sales=2.5, price=2.0))
        report = detector.detect(records)
        report.sales[0].z_score
    """

    def __init__(self, thresholds: Optional[AnomalyThresholds] = None):
        self.thresholds = thresholds or AnomalyThresholds()

    def _detect_zscore_anomalies(
        self,
        records: Sequence[TransactionRecord],
        values: np.ndarray,
        threshold: float,
    ) -> List[Anomaly]:
        """Flag records of one group whose value is beyond the threshold"""
        anomalies = []

        mean = float(np.mean(values))
        std = float(np.std(values))

        if std == 0:
            return anomalies

        z_scores = np.abs((values - mean) / std)

        for record, value, z_score in zip(records, values, z_scores):
            if z_score > threshold:
                anomalies.append(Anomaly(
                    date=record.date,
                    product=record.product,
                    value=float(value),
                    group_mean=mean,
                    z_score=float(z_score),
                    direction=AnomalyDirection.HIGH if value > mean else AnomalyDirection.LOW,
                    severity=_severity(float(z_score), threshold),
                    row_index=record.row_index,
                ))

        return anomalies

    def detect(self, records: Sequence[TransactionRecord]) -> AnomalyReport:
        """
        Run detection on unit sales and unit price independently.

        Returns:
            AnomalyReport with each list ordered by product, then row index
        """
        groups: Dict[str, List[TransactionRecord]] = defaultdict(list)
        for record in sorted(records, key=lambda r: (r.product, r.row_index)):
            groups[record.product].append(record)

        report = AnomalyReport()
        for product in sorted(groups):
            group = groups[product]
            units = np.array([r.units_sold for r in group], dtype=float)
            prices = np.array([r.unit_price for r in group], dtype=float)

            report.sales.extend(
                self._detect_zscore_anomalies(group, units, self.thresholds.sales)
            )
            report.price.extend(
                self._detect_zscore_anomalies(group, prices, self.thresholds.price)
            )

        critical_count = sum(
            1 for a in report.sales + report.price
            if a.severity == AnomalySeverity.CRITICAL
        )
        if critical_count:
            logger.warning(
                "Critical anomalies detected",
                critical=critical_count,
                total_anomalies=report.total,
            )
        else:
            logger.info(
                "Anomaly detection complete",
                products=len(groups),
                sales_anomalies=len(report.sales),
                price_anomalies=len(report.price),
            )

        return report


def detect_anomalies(
    records: Sequence[TransactionRecord],
    thresholds: Optional[AnomalyThresholds] = None,
) -> AnomalyReport:
    """Convenience function for one-off detection"""
    return AnomalyDetector(thresholds).detect(records)
