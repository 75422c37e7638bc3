"""
Customer Segmentation Module

RFM (Recency, Frequency, Monetary) scoring of customer-segment aggregates.

Scores are quintile bands against fixed reference ceilings rather than the
batch maximum, so a segment scores the same regardless of how many other
segments are in the upload.
"""

from datetime import date
import math
from typing import Iterable, List

import structlog

from predictiq.errors import ConfigurationError, require_observations
from predictiq.models import CustomerAggregate, CustomerSegment, CustomerTier

logger = structlog.get_logger(__name__)

MIN_RECORDS = 3
QUINTILES = 5
HIGH_VALUE_SCORE = 4.0
MID_VALUE_SCORE = 3.0


def score_against_reference(value: float, reference_max: float, inverse: bool = False) -> int:
    """
    Band ``value`` onto 1..5 relative to ``reference_max``.

    Direct scores grow with the value; inverse scores (recency) shrink.
    """
    if reference_max <= 0:
        raise ConfigurationError("RFM reference maximum must be positive.")

    ratio = min(max(value / reference_max, 0.0), 1.0)
    if inverse:
        ratio = 1.0 - ratio

    # Rounding strips float noise such as 0.6 * 5 = 3.0000000000000004
    score = math.ceil(round(ratio * QUINTILES, 9))
    return max(1, min(QUINTILES, score))


def assign_tier(rfm_score: float) -> CustomerTier:
    if rfm_score >= HIGH_VALUE_SCORE:
        return CustomerTier.HIGH_VALUE
    if rfm_score >= MID_VALUE_SCORE:
        return CustomerTier.MID_VALUE
    return CustomerTier.LOW_VALUE


class RFMSegmenter:
    """
    Scores customer segments and assigns value tiers.

    Example:
        segmenter = RFMSegmenter(evaluation_date=date(2025, 1, 31))
        segments = segmenter.segment(aggregates.customers.values(), record_count=120)
    """

    def __init__(
        self,
        evaluation_date: date,
        recency_max: float = 1000.0,
        frequency_max: float = 1000.0,
        monetary_max: float = 1000.0,
    ):
        self.evaluation_date = evaluation_date
        self.recency_max = recency_max
        self.frequency_max = frequency_max
        self.monetary_max = monetary_max

    def score(self, customer: CustomerAggregate) -> CustomerSegment:
        """Score a single segment aggregate"""
        recency_days = max(0, (self.evaluation_date - customer.last_purchase_date).days)
        frequency = customer.transaction_count
        monetary = customer.total_revenue

        r_score = score_against_reference(recency_days, self.recency_max, inverse=True)
        f_score = score_against_reference(frequency, self.frequency_max)
        m_score = score_against_reference(monetary, self.monetary_max)

        rfm_score = (r_score + f_score + m_score) / 3

        return CustomerSegment(
            segment_key=customer.segment_key,
            recency_days=recency_days,
            frequency=frequency,
            monetary_value=monetary,
            r_score=r_score,
            f_score=f_score,
            m_score=m_score,
            rfm_score=rfm_score,
            tier=assign_tier(rfm_score),
        )

    def segment(
        self,
        customers: Iterable[CustomerAggregate],
        record_count: int,
    ) -> List[CustomerSegment]:
        """
        Score every segment, best first.

        Ties on score are broken by monetary value (descending), then by
        segment key.

        Raises:
            InsufficientData: with fewer than three underlying records
        """
        require_observations(record_count, MIN_RECORDS, "customer transactions")

        segments = [self.score(customer) for customer in customers]
        segments.sort(key=lambda s: (-s.rfm_score, -s.monetary_value, s.segment_key))

        logger.info(
            "Segmentation complete",
            segments=len(segments),
            high_value=sum(1 for s in segments if s.tier == CustomerTier.HIGH_VALUE),
        )
        return segments
