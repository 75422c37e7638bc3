"""
Data Transformation Module
"""
from .aggregations import AggregationEngine, aggregate_records, records_to_frame

__all__ = [
    "AggregationEngine",
    "aggregate_records",
    "records_to_frame",
]
