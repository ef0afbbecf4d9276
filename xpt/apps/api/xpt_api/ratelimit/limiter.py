"""
Tiered usage rate limiter.

Counts usage events of one action type for a tenant inside each configured
window (smallest first) and denies on the first window that is full.

CONTRACT:
- check() only reads. Recording is UsageRecorder's job and happens after the
  gated operation succeeds, so failed operations never consume quota.
- Check-then-act is not atomic: concurrent callers can each pass check()
  and overshoot a limit by the number of in-flight requests.
- Every alertable breach submits one alert. There is no deduplication, so a
  tenant pinned at its daily cap triggers one alert per blocked attempt.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from xpt_api.db.models import utc_now
from xpt_api.db.ports import UsageStore
from xpt_api.ratelimit.config import RateLimitConfig
from xpt_api.ratelimit.models import RateLimitAlert, RateLimitDecision, WindowUsage

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def dispatch(self, alert: RateLimitAlert) -> object: ...


class RateLimiter:
    """Evaluates RateLimitConfig windows against the usage ledger."""

    def __init__(
        self,
        store: UsageStore,
        alerts: Optional[AlertSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.alerts = alerts
        self.clock = clock

    def check(self, tenant_id: str, config: RateLimitConfig) -> RateLimitDecision:
        """Return the decision for one more `config.action_type` event.

        Raises:
            StoreError: usage count could not be read
        """
        now = self.clock()

        for window in config.windows:
            since = now - timedelta(seconds=window.seconds)
            current = self.store.count_usage(tenant_id, config.action_type, since)

            if current < window.limit:
                continue

            logger.warning(
                "ratelimit.breached",
                extra={
                    "action_type": config.action_type,
                    "limit_hit": window.name,
                    "current": current,
                    "limit": window.limit,
                },
            )

            if config.should_alert(window):
                self._submit_alert(
                    RateLimitAlert(
                        tenant_id=tenant_id,
                        action_type=config.action_type,
                        limit_hit=window.name,
                        current=current,
                        limit=window.limit,
                    )
                )

            return RateLimitDecision.deny(
                limit_hit=window.name,
                current=current,
                limit=window.limit,
                retry_after_seconds=window.seconds,
            )

        return RateLimitDecision.allow()

    def usage(self, tenant_id: str, config: RateLimitConfig) -> list[WindowUsage]:
        """Current count per window, smallest first. Read-only, never alerts."""
        now = self.clock()
        snapshot = []
        for window in config.windows:
            since = now - timedelta(seconds=window.seconds)
            snapshot.append(
                WindowUsage(
                    name=window.name,
                    seconds=window.seconds,
                    limit=window.limit,
                    current=self.store.count_usage(tenant_id, config.action_type, since),
                )
            )
        return snapshot

    def _submit_alert(self, alert: RateLimitAlert) -> None:
        if self.alerts is None:
            return
        try:
            self.alerts.dispatch(alert)
        except Exception as e:
            # Alerting never changes the decision
            logger.error(
                "ratelimit.alert.submit_failed",
                extra={"limit_hit": alert.limit_hit, "error_type": type(e).__name__},
            )
