"""
Usage ledger writer.
"""

import logging
from datetime import datetime
from typing import Callable

from xpt_api.db.models import utc_now
from xpt_api.db.ports import UsageStore

logger = logging.getLogger(__name__)


class UsageRecorder:
    """Appends one usage event per successful gated operation."""

    def __init__(self, store: UsageStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def record(self, tenant_id: str, action_type: str) -> None:
        """Append an event stamped now.

        Only call this after the operation succeeded.

        Raises:
            StoreError: the event could not be written
        """
        self.store.add_usage(tenant_id, action_type, self.clock())
        logger.debug("ratelimit.usage.recorded", extra={"action_type": action_type})
