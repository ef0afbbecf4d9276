"""Detached rate limit alert delivery.

dispatch() submits the work to a bounded thread pool and returns at once,
so the request that tripped the limit is never slowed down by email.
Delivery failures are logged once and swallowed. With no recipients
configured (ALERT_RECIPIENTS unset) delivery is skipped.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from xpt_api.alerts.email import AlertSender, render_alert
from xpt_api.config.env import get_alert_recipients, get_alert_workers
from xpt_api.db.models import utc_now
from xpt_api.db.repository import GateRepository
from xpt_api.ratelimit.models import RateLimitAlert

logger = logging.getLogger(__name__)


class AlertDispatcher:
    def __init__(
        self,
        sender: AlertSender,
        session_factory: Callable[[], Session],
        recipients: Optional[list[str]] = None,
        max_workers: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sender = sender
        # Own DB sessions: the request session may be closed before the work runs
        self.session_factory = session_factory
        self.recipients = recipients if recipients is not None else get_alert_recipients()
        self.clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or get_alert_workers(),
            thread_name_prefix="xpt-alerts",
        )

    def dispatch(self, alert: RateLimitAlert) -> Optional[Future]:
        """Queue one alert. Returns the Future (tests wait on it), or None if refused."""
        try:
            return self._executor.submit(self._deliver, alert)
        except RuntimeError:
            # Executor already shut down (application stopping)
            logger.warning("alert.dispatch.rejected", extra={"limit_hit": alert.limit_hit})
            return None

    def _resolve_tenant_name(self, tenant_id: str) -> str:
        try:
            with self.session_factory() as db:
                tenant = GateRepository(db).get_tenant(tenant_id)
        except Exception:
            logger.warning("alert.tenant_lookup.failed", extra={"alert_tenant_id": tenant_id})
            return tenant_id
        return tenant.name if tenant is not None else tenant_id

    def _deliver(self, alert: RateLimitAlert) -> bool:
        if not self.recipients:
            logger.warning(
                "alert.recipients.not_configured",
                extra={"action_type": alert.action_type, "limit_hit": alert.limit_hit},
            )
            return False

        try:
            tenant_name = self._resolve_tenant_name(alert.tenant_id)
            message = render_alert(alert, tenant_name, self.clock())
            self.sender.send(message, self.recipients)
        except Exception as e:
            logger.error(
                "alert.delivery.failed",
                extra={
                    "alert_tenant_id": alert.tenant_id,
                    "action_type": alert.action_type,
                    "limit_hit": alert.limit_hit,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            return False

        logger.info(
            "alert.delivery.sent",
            extra={"action_type": alert.action_type, "limit_hit": alert.limit_hit},
        )
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        close = getattr(self.sender, "close", None)
        if close is not None:
            close()
