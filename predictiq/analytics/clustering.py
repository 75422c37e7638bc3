"""
Segment Clustering

K-means grouping of customer segments on behavioural features. Complements
the RFM tiers with data-driven groups.

Features per segment key:
- average revenue per transaction
- transaction count
- recency in days
- average units per transaction
- share of transactions under promotion
"""

from datetime import date
from typing import List, Sequence

import polars as pl
from sklearn.cluster import KMeans
from sklearn.preprocessing import StandardScaler
import structlog

from predictiq.errors import require_observations
from predictiq.models import SegmentCluster, TransactionRecord
from predictiq.transformation.aggregations import records_to_frame

logger = structlog.get_logger(__name__)

FEATURE_COLUMNS = [
    "avg_monetary",
    "frequency",
    "recency_days",
    "avg_units",
    "promotion_share",
]

# Ordered best to worst by mean monetary value
CLUSTER_LABELS = ["High-Value Loyal", "Regular", "Occasional"]


def segment_features(records: Sequence[TransactionRecord], evaluation_date: date) -> pl.DataFrame:
    """Behavioural feature table, one row per customer segment key"""
    df = records_to_frame(records)
    return (
        df.group_by("customer_segment_key")
        .agg([
            pl.col("revenue").mean().alias("avg_monetary"),
            pl.len().alias("frequency"),
            pl.col("date").max().alias("last_purchase_date"),
            pl.col("units_sold").mean().alias("avg_units"),
            pl.col("promotion_active").cast(pl.Float64).mean().alias("promotion_share"),
        ])
        .with_columns(
            (pl.lit(evaluation_date) - pl.col("last_purchase_date"))
            .dt.total_days()
            .clip(lower_bound=0)
            .alias("recency_days")
        )
        .sort("customer_segment_key")
    )


def _cluster_label(rank: int) -> str:
    if rank < len(CLUSTER_LABELS):
        return CLUSTER_LABELS[rank]
    return f"{CLUSTER_LABELS[-1]} {rank - len(CLUSTER_LABELS) + 2}"


class SegmentClusterer:
    """
    Standardize segment features and cluster them with k-means.

    Example:
        clusterer = SegmentClusterer(n_clusters=3, random_state=42)
        clusters = clusterer.cluster(records, evaluation_date)
    """

    def __init__(self, n_clusters: int = 3, random_state: int = 42):
        self.n_clusters = n_clusters
        self.random_state = random_state

    def cluster(
        self,
        records: Sequence[TransactionRecord],
        evaluation_date: date,
    ) -> List[SegmentCluster]:
        """
        Group customer segments into ``n_clusters`` clusters.

        Clusters are numbered and labelled by descending mean monetary value.

        Raises:
            InsufficientData: with fewer distinct segments than clusters
        """
        features = segment_features(records, evaluation_date)
        require_observations(features.height, self.n_clusters, "distinct customer segments for clustering")

        X = features.select(FEATURE_COLUMNS).to_numpy().astype(float)
        X_scaled = StandardScaler().fit_transform(X)

        kmeans = KMeans(n_clusters=self.n_clusters, random_state=self.random_state, n_init=10)
        assignments = kmeans.fit_predict(X_scaled)

        features = features.with_columns(pl.Series("cluster", assignments))
        summary = (
            features.group_by("cluster")
            .agg([
                pl.len().alias("size"),
                pl.col("avg_monetary").mean(),
                pl.col("frequency").mean().alias("avg_frequency"),
                pl.col("recency_days").mean().alias("avg_recency_days"),
                pl.col("customer_segment_key").sort().alias("segment_keys"),
            ])
            .sort(["avg_monetary", "cluster"], descending=[True, False])
        )

        clusters = []
        for rank, row in enumerate(summary.iter_rows(named=True)):
            clusters.append(SegmentCluster(
                cluster=rank,
                label=_cluster_label(rank),
                size=row["size"],
                avg_monetary=float(row["avg_monetary"]),
                avg_frequency=float(row["avg_frequency"]),
                avg_recency_days=float(row["avg_recency_days"]),
                segment_keys=list(row["segment_keys"]),
            ))

        logger.info(
            "Segment clustering complete",
            segments=features.height,
            clusters=len(clusters),
            inertia=float(kmeans.inertia_),
        )
        return clusters


def cluster_segments(
    records: Sequence[TransactionRecord],
    evaluation_date: date,
    n_clusters: int = 3,
    random_state: int = 42,
) -> List[SegmentCluster]:
    """Convenience function for one-off clustering"""
    return SegmentClusterer(n_clusters, random_state).cluster(records, evaluation_date)
