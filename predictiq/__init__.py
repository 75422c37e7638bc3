"""
PredictIQ Analytics Core

Turns uploaded business-transaction tables into sales analysis, demand
forecasts, customer segments and inventory recommendations.
"""
from .config import PipelineConfig
from .errors import (
    AnalyticsError,
    ConfigurationError,
    ErrorKind,
    InsufficientData,
    InvalidDataFormat,
    UnsupportedDataType,
)
from .pipeline import (
    AnalysisMode,
    AnalyticsPipeline,
    AnalyticsResult,
    normalize,
    process_data,
    run_pipeline,
)

__version__ = "1.0.0"

__all__ = [
    "PipelineConfig",
    "AnalyticsError",
    "ConfigurationError",
    "ErrorKind",
    "InsufficientData",
    "InvalidDataFormat",
    "UnsupportedDataType",
    "AnalysisMode",
    "AnalyticsPipeline",
    "AnalyticsResult",
    "normalize",
    "process_data",
    "run_pipeline",
]
