"""
Request and response models
"""
from .reel import ErrorDetail, ErrorResponse, HealthResponse, ReelResponse

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "ReelResponse",
]
