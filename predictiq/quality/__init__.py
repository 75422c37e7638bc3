"""
Data Quality Module
"""
from .normalizer import RecordNormalizer, normalize
from .anomaly_detector import Anomaly, AnomalyDetector, AnomalyReport

__all__ = [
    "RecordNormalizer",
    "normalize",
    "Anomaly",
    "AnomalyDetector",
    "AnomalyReport",
]
