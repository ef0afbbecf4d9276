"""
Rate limit decision and alert payloads
"""

from typing import Optional

from pydantic import BaseModel


class RateLimitDecision(BaseModel):
    """Outcome of RateLimiter.check. Denials carry the first window breached."""
    allowed: bool
    limit_hit: Optional[str] = None
    current: Optional[int] = None
    limit: Optional[int] = None
    retry_after_seconds: Optional[int] = None

    @classmethod
    def allow(cls) -> "RateLimitDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, limit_hit: str, current: int, limit: int, retry_after_seconds: int) -> "RateLimitDecision":
        return cls(
            allowed=False,
            limit_hit=limit_hit,
            current=current,
            limit=limit,
            retry_after_seconds=retry_after_seconds,
        )


class WindowUsage(BaseModel):
    """Read-only usage snapshot for one window"""
    name: str
    seconds: int
    limit: int
    current: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)


class RateLimitAlert(BaseModel):
    """Payload handed to the alert dispatcher on an alertable breach"""
    tenant_id: str
    action_type: str
    limit_hit: str
    current: int
    limit: int
