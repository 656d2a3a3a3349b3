"""
API services
"""
from .metrics import PipelineMetrics, metrics
from .reel_service import ReelService

__all__ = [
    "PipelineMetrics",
    "ReelService",
    "metrics",
]
