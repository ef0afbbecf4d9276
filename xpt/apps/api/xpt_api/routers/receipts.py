"""Receipt scanning endpoints (rate limited).

Flow for POST /v1/receipts/scan:
1. require_tenant_auth (401/400/403)
2. RateLimiter.check -> 429 on the first full window
3. ReceiptScanner.scan -> 400 on rejected input (not counted)
4. UsageRecorder.record (only after a successful scan)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from xpt_api.auth.session_auth import AuthResult, get_gate_repository, require_tenant_auth
from xpt_api.db.repository import GateRepository
from xpt_api.errors import RateLimitExceededError, ScannerUnavailableError
from xpt_api.ratelimit import RECEIPT_SCAN_LIMITS, RateLimiter, UsageRecorder
from xpt_api.receipts.scanner import ReceiptScanner
from xpt_api.schemas import (
    ReceiptScanRequest,
    ReceiptScanResponse,
    ReceiptUsageResponse,
    WindowUsageEntry,
)

router = APIRouter(prefix="/v1/receipts", tags=["receipts"])
logger = logging.getLogger(__name__)


def get_rate_limiter(
    request: Request,
    repo: GateRepository = Depends(get_gate_repository),
) -> RateLimiter:
    return RateLimiter(repo, alerts=getattr(request.app.state, "alert_dispatcher", None))


def get_usage_recorder(repo: GateRepository = Depends(get_gate_repository)) -> UsageRecorder:
    return UsageRecorder(repo)


def get_receipt_scanner(request: Request) -> ReceiptScanner:
    scanner: Optional[ReceiptScanner] = getattr(request.app.state, "receipt_scanner", None)
    if scanner is None:
        logger.error("receipts.scanner.not_configured")
        raise ScannerUnavailableError(
            reason="scanner_not_configured",
            detail="Receipt scanning is not configured.",
        )
    return scanner


@router.get("/usage", response_model=ReceiptUsageResponse)
def get_scan_usage(
    auth: AuthResult = Depends(require_tenant_auth),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ReceiptUsageResponse:
    """Per-window scan usage for the tenant. Read-only."""
    windows = limiter.usage(auth.tenant_id, RECEIPT_SCAN_LIMITS)
    return ReceiptUsageResponse(
        action_type=RECEIPT_SCAN_LIMITS.action_type,
        windows=[
            WindowUsageEntry(
                name=w.name,
                seconds=w.seconds,
                limit=w.limit,
                current=w.current,
                remaining=w.remaining,
            )
            for w in windows
        ],
    )


@router.post("/scan", response_model=ReceiptScanResponse)
def scan_receipt(
    body: ReceiptScanRequest,
    response: Response,
    auth: AuthResult = Depends(require_tenant_auth),
    limiter: RateLimiter = Depends(get_rate_limiter),
    recorder: UsageRecorder = Depends(get_usage_recorder),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
) -> ReceiptScanResponse:
    response.headers["Cache-Control"] = "no-store"

    decision = limiter.check(auth.tenant_id, RECEIPT_SCAN_LIMITS)
    if not decision.allowed:
        raise RateLimitExceededError(
            limit_hit=decision.limit_hit,
            current=decision.current,
            limit=decision.limit,
            retry_after_seconds=decision.retry_after_seconds,
        )

    # ScanRejectedError propagates as 400 and the attempt is not counted
    data = scanner.scan(body.blob_url)

    recorder.record(auth.tenant_id, RECEIPT_SCAN_LIMITS.action_type)
    logger.info("receipts.scan.completed")
    return ReceiptScanResponse(success=True, data=data)
