"""
Tiered usage rate limiting
"""

from .config import RECEIPT_SCAN_ACTION, RECEIPT_SCAN_LIMITS, RateLimitConfig, RateLimitWindow
from .limiter import RateLimiter
from .models import RateLimitAlert, RateLimitDecision, WindowUsage
from .recorder import UsageRecorder

__all__ = [
    "RECEIPT_SCAN_ACTION",
    "RECEIPT_SCAN_LIMITS",
    "RateLimitAlert",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitWindow",
    "RateLimiter",
    "UsageRecorder",
    "WindowUsage",
]
