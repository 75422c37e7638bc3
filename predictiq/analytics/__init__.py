"""
Analytics Modules
"""
from .association import MarketBasketAnalyzer
from .clustering import SegmentClusterer, cluster_segments
from .forecasting import DemandForecaster
from .inventory import InventoryOptimizer
from .pricing import PricingAnalyzer
from .sales import SalesAnalyzer
from .segmentation import RFMSegmenter

__all__ = [
    "MarketBasketAnalyzer",
    "SegmentClusterer",
    "cluster_segments",
    "DemandForecaster",
    "InventoryOptimizer",
    "PricingAnalyzer",
    "SalesAnalyzer",
    "RFMSegmenter",
]
