"""End-to-end tests for the rate-limited receipt scan flow.

auth -> check -> scan -> record, over HTTP with an in-memory database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tests.factories import grant_access, make_tenant
from xpt_api.db.models import RateLimitUsage
from xpt_api.main import app

SCAN_BODY = {"blob_url": "https://files.example.com/receipts/0001.jpg"}


@pytest.fixture
def member_client(test_client, member_session):
    test_client.cookies.set("session", member_session.token)
    return test_client


def scan(client, tenant: str = "acme"):
    return client.post("/v1/receipts/scan", params={"tenant": tenant}, json=SCAN_BODY)


def usage_rows(db_session) -> int:
    return db_session.query(RateLimitUsage).count()


def test_scan_success_records_usage(member_client, db_session, tenant, receipt_scanner):
    response = scan(member_client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["vendor"]["value"] == "Corner Hardware"
    assert response.headers["Cache-Control"] == "no-store"
    assert receipt_scanner.calls == [SCAN_BODY["blob_url"]]

    row = db_session.query(RateLimitUsage).one()
    assert row.tenant_id == tenant.id
    assert row.action_type == "receipt_scan"


def test_eleventh_scan_in_a_minute_is_rejected(member_client, db_session, receipt_scanner, alert_sink):
    for _ in range(10):
        assert scan(member_client).status_code == 200

    response = scan(member_client)

    assert response.status_code == 429
    assert response.headers["content-type"] == "application/problem+json"
    assert response.headers["Retry-After"] == "60"
    problem = response.json()
    assert problem["status"] == 429
    assert problem["limit_hit"] == "perMinute"
    assert problem["current"] == 10
    assert problem["limit"] == 10
    assert problem["retry_after_seconds"] == 60

    # Denied attempt is neither scanned nor counted, and minute breaches do not alert
    assert len(receipt_scanner.calls) == 10
    assert usage_rows(db_session) == 10
    assert alert_sink.alerts == []


def test_daily_cap_rejects_and_alerts(member_client, db_session, tenant, alert_sink):
    two_hours_ago = datetime.now(timezone.utc) - timedelta(hours=2)
    db_session.add_all(
        RateLimitUsage(tenant_id=tenant.id, action_type="receipt_scan", created_at=two_hours_ago)
        for _ in range(100)
    )
    db_session.commit()

    response = scan(member_client)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "86400"
    assert response.json()["limit_hit"] == "perDay"
    assert len(alert_sink.alerts) == 1
    assert alert_sink.alerts[0].tenant_id == tenant.id


def test_rejected_scan_is_not_counted(member_client, db_session, receipt_scanner):
    receipt_scanner.reject = True

    response = scan(member_client)

    assert response.status_code == 400
    assert response.json()["reason"] == "unsupported_file_type"
    assert usage_rows(db_session) == 0


def test_scanner_not_configured(member_client, db_session):
    app.state.receipt_scanner = None

    response = scan(member_client)

    assert response.status_code == 503
    assert response.json()["reason"] == "scanner_not_configured"
    assert usage_rows(db_session) == 0


def test_unauthenticated_scan_never_reaches_scanner(test_client, receipt_scanner):
    response = scan(test_client)

    assert response.status_code == 401
    assert receipt_scanner.calls == []


def test_scan_requires_tenant_access(member_client, db_session, receipt_scanner):
    make_tenant(db_session, subdomain="globex", name="Globex")

    response = scan(member_client, tenant="globex")

    assert response.status_code == 403
    assert receipt_scanner.calls == []
    assert usage_rows(db_session) == 0


def test_usage_is_scoped_per_tenant(member_client, db_session, member):
    globex = make_tenant(db_session, subdomain="globex", name="Globex")
    grant_access(db_session, member, globex)
    for _ in range(3):
        scan(member_client)

    response = member_client.get("/v1/receipts/usage", params={"tenant": "globex"})

    assert response.status_code == 200
    assert all(w["current"] == 0 for w in response.json()["windows"])


def test_usage_snapshot(member_client):
    for _ in range(2):
        scan(member_client)

    response = member_client.get("/v1/receipts/usage", params={"tenant": "acme"})

    assert response.status_code == 200
    body = response.json()
    assert body["action_type"] == "receipt_scan"
    assert [(w["name"], w["current"], w["limit"], w["remaining"]) for w in body["windows"]] == [
        ("perMinute", 2, 10, 8),
        ("perHour", 2, 60, 58),
        ("perDay", 2, 100, 98),
        ("perMonth", 2, 200, 198),
    ]
