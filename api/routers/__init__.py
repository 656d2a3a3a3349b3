"""
API routers
"""
from . import health, reels

__all__ = [
    "health",
    "reels",
]
