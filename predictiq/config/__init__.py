"""
PredictIQ Analytics Core
Configuration Module
"""
from .settings import AnalyticsSettings, Settings, get_settings
from .pipeline import AbcThresholds, AnomalyThresholds, PipelineConfig

__all__ = [
    "AnalyticsSettings",
    "Settings",
    "get_settings",
    "AbcThresholds",
    "AnomalyThresholds",
    "PipelineConfig",
]
