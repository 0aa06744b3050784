from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from spicymarg_api.core.settings import settings
from spicymarg_api.services.admin import hash_password


@pytest.fixture
def admin_password(monkeypatch) -> str:
    monkeypatch.setattr(settings, "admin_password_hash", hash_password("let-me-in", rounds=4))
    return "let-me-in"


async def _login(client: AsyncClient, password: str) -> dict[str, str]:
    response = await client.post("/api/v1/admin/sessions", json={"password": password})
    assert response.status_code == 201
    return {"X-Admin-Session": response.json()["token"]}


@pytest.mark.asyncio
async def test_dashboard_requires_session(app_with_db, admin_password) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        anonymous = await client.get("/api/v1/admin/funnel/stats")
        forged = await client.get("/api/v1/admin/funnel/stats", headers={"X-Admin-Session": "forged"})
        wrong = await client.post("/api/v1/admin/sessions", json={"password": "guess"})

    assert anonymous.status_code == 401
    assert forged.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json()["detail"]["code"] == "access_denied"


@pytest.mark.asyncio
async def test_funnel_stats_for_admin(app_with_db, admin_password, make_guest) -> None:
    app, session_factory = app_with_db
    await make_guest(session_factory, email="a@example.com", stage=0)
    await make_guest(session_factory, email="b@example.com", stage=2)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        headers = await _login(client, admin_password)
        response = await client.get("/api/v1/admin/funnel/stats", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert [stage["count"] for stage in body["stages"]] == [2, 1, 1, 0, 0]
    assert body["overall_conversion"] == 0.0


@pytest.mark.asyncio
async def test_monthly_metrics_aggregate_then_list(app_with_db, admin_password, make_guest) -> None:
    app, session_factory = app_with_db
    await make_guest(
        session_factory,
        email="sep@example.com",
        stage=2,
        created_at=datetime(2026, 9, 3, 9, 0, tzinfo=timezone.utc),
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        headers = await _login(client, admin_password)
        aggregated = await client.post(
            "/api/v1/admin/metrics/monthly/aggregate",
            json={"targetDate": "2026-09-15"},
            headers=headers,
        )
        listed = await client.get("/api/v1/admin/metrics/monthly", params={"limit": 5}, headers=headers)

    assert aggregated.status_code == 200
    assert aggregated.json()["month"] == "2026-09-01"
    assert aggregated.json()["first_visits"] == 1
    metrics = listed.json()["metrics"]
    assert len(metrics) == 1
    assert metrics[0]["vouchers_claimed"] == 1
    assert metrics[0]["stage1_sms_cost"] == 0.11


@pytest.mark.asyncio
async def test_logout_revokes_token(app_with_db, admin_password) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        headers = await _login(client, admin_password)
        before = await client.get("/api/v1/observability/funnel", headers=headers)
        logout = await client.delete("/api/v1/admin/sessions/current", headers=headers)
        after = await client.get("/api/v1/observability/funnel", headers=headers)

    assert before.status_code == 200
    assert set(before.json()) == {"signups", "otp", "redemptions", "conflicts", "notifications"}
    assert logout.status_code == 204
    assert after.status_code == 401


@pytest.mark.asyncio
async def test_unconfigured_password_is_a_server_error(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "admin_password_hash", "")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/admin/sessions", json={"password": "anything"})

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "configuration_error"
