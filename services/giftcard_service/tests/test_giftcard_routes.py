from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from services.giftcard_service.app import settings as giftcard_settings_module
from services.giftcard_service.app.dependencies import get_session_factory, get_token_claims
from services.giftcard_service.app.ledger import LedgerEngine
from services.giftcard_service.app.main import create_app

from conftest import U1, U2

EXPIRY = (datetime.now(timezone.utc).date() + timedelta(days=30)).isoformat()


def _asgi_client(app):
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://testserver")


@pytest_asyncio.fixture()
async def giftcard_test_app(monkeypatch, session_factory):
    giftcard_settings_module.giftcard_settings.cache_clear()
    monkeypatch.setenv("GIFTCARD_OTEL_ENABLED", "false")
    monkeypatch.setenv("GIFTCARD_SECRET_KEY", "test-secret")

    caller = {"sub": str(U1), "scope": "access", "roles": "customer,admin"}

    def _override_claims() -> dict:
        return dict(caller)

    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_token_claims] = _override_claims
    yield app, caller

    giftcard_settings_module.giftcard_settings.cache_clear()


async def _issue(client: AsyncClient, balance: str = "100.00", owner: int | None = U1) -> str:
    response = await client.post(
        "/api/v1/cards",
        json={"initial_balance": balance, "expiration_date": EXPIRY, "owner_user_id": owner},
    )
    assert response.status_code == 201
    return response.json()["card_id"]


@pytest.mark.asyncio
async def test_redeem_recharge_transfer_flow(giftcard_test_app):
    app, caller = giftcard_test_app
    async with _asgi_client(app) as client:
        card_id = await _issue(client)

        redeem = await client.post(f"/api/v1/cards/{card_id}/redeem", json={"amount": "30.00"})
        assert redeem.status_code == 200
        body = redeem.json()
        assert body["success"] is True
        assert Decimal(str(body["card"]["current_balance"])) == Decimal("70.00")

        insufficient = await client.post(f"/api/v1/cards/{card_id}/redeem", json={"amount": "80.00"})
        assert insufficient.status_code == 409
        assert insufficient.json()["message"] == "Insufficient balance"
        assert insufficient.json()["reason"] == "insufficient_balance"

        recharge = await client.post(f"/api/v1/cards/{card_id}/recharge", json={"amount": "50.00"})
        assert recharge.status_code == 200
        assert Decimal(str(recharge.json()["card"]["current_balance"])) == Decimal("120.00")

        transfer = await client.post(f"/api/v1/cards/{card_id}/transfer", json={"to_user_id": U2})
        assert transfer.status_code == 200
        assert transfer.json()["card"]["user_id"] == U2

        not_owned = await client.post(f"/api/v1/cards/{card_id}/redeem", json={"amount": "10.00"})
        assert not_owned.status_code == 409
        assert not_owned.json()["reason"] == "not_owned"
        assert not_owned.json()["card"] is None

        caller["sub"] = str(U2)
        as_new_owner = await client.post(f"/api/v1/cards/{card_id}/redeem", json={"amount": "10.00"})
        assert as_new_owner.status_code == 200

        statement = await client.get(f"/api/v1/cards/{card_id}/transactions", params={"limit": 3})
        assert statement.status_code == 200
        first_page = statement.json()
        assert [e["transaction_type"] for e in first_page["entries"]] == ["redemption", "recharge", "transfer_out"]
        assert first_page["next_cursor"] is not None

        rest = await client.get(
            f"/api/v1/cards/{card_id}/transactions",
            params={"limit": 3, "cursor": first_page["next_cursor"]},
        )
        assert [e["transaction_type"] for e in rest.json()["entries"]] == ["transfer_in", "redemption"]
        assert rest.json()["next_cursor"] is None


@pytest.mark.asyncio
async def test_unknown_card_returns_404(giftcard_test_app):
    app, _caller = giftcard_test_app
    async with _asgi_client(app) as client:
        redeem = await client.post("/api/v1/cards/nope123/redeem", json={"amount": "5.00"})
        assert redeem.status_code == 404
        assert redeem.json()["message"] == "Gift card not found"

        card = await client.get("/api/v1/cards/nope123")
        assert card.status_code == 404
        assert card.json()["error"] == "card_not_found"
        assert card.json()["request_id"]


@pytest.mark.asyncio
async def test_bulk_issue_and_admin_lifecycle(giftcard_test_app):
    app, _caller = giftcard_test_app
    async with _asgi_client(app) as client:
        bulk = await client.post(
            "/api/v1/cards/bulk",
            json={"count": 5, "initial_balance": "25.00", "expiration_date": EXPIRY},
        )
        assert bulk.status_code == 201
        card_ids = bulk.json()["card_ids"]
        assert len(set(card_ids)) == 5
        assert bulk.json()["message"] == "Successfully generated 5 inactive gift cards"

        summary = await client.get("/api/v1/reports/summary")
        assert summary.json() == {
            "total_issued": 5,
            "by_status": {"active": 0, "inactive": 5, "blocked": 0, "expired": 0},
        }

        assign = await client.put(f"/api/v1/cards/{card_ids[0]}/owner", json={"user_id": U1})
        assert assign.status_code == 204

        activate = await client.post(f"/api/v1/cards/{card_ids[0]}/status", json={"status": "active"})
        assert activate.status_code == 200
        assert activate.json()["message"] == "Gift card status updated to active"

        redeem = await client.post(f"/api/v1/cards/{card_ids[0]}/redeem", json={"amount": "5.00"})
        assert redeem.status_code == 200

        by_user = await client.get("/api/v1/reports/cards-by-user")
        counts = {row["user_id"]: row["cards_count"] for row in by_user.json()}
        assert counts == {None: 4, U1: 1}

        redeemed = await client.get("/api/v1/reports/redemptions")
        assert Decimal(str(redeemed.json()["total_redeemed"])) == Decimal("5.00")

        sweep = await client.post("/api/v1/cards/expire-due")
        assert sweep.status_code == 200
        assert sweep.json() == {"expired": 0}


@pytest.mark.asyncio
async def test_issue_validation_errors(giftcard_test_app):
    app, _caller = giftcard_test_app
    async with _asgi_client(app) as client:
        past = await client.post(
            "/api/v1/cards",
            json={"initial_balance": "10.00", "expiration_date": "2000-01-01"},
        )
        assert past.status_code == 422
        assert past.json()["error"] == "validation_error"
        assert past.json()["detail"] == "Expiration date must be in the future"

        unknown_owner = await client.post(
            "/api/v1/cards",
            json={"initial_balance": "10.00", "expiration_date": EXPIRY, "owner_user_id": 404},
        )
        assert unknown_owner.status_code == 404
        assert unknown_owner.json()["error"] == "user_not_found"


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(giftcard_test_app):
    app, caller = giftcard_test_app
    caller["roles"] = "customer"
    async with _asgi_client(app) as client:
        response = await client.post(
            "/api/v1/cards",
            json={"initial_balance": "10.00", "expiration_date": EXPIRY},
        )
        assert response.status_code == 403
        assert (await client.get("/api/v1/reports/summary")).status_code == 403


@pytest.mark.asyncio
async def test_bearer_token_is_validated(giftcard_test_app):
    app, _caller = giftcard_test_app
    app.dependency_overrides.pop(get_token_claims)
    settings = giftcard_settings_module.giftcard_settings()
    token = jwt.encode(
        {
            "sub": str(U1),
            "scope": "access",
            "roles": "customer",
            "aud": settings.jwt_audience,
            "iss": settings.jwt_issuer,
        },
        "test-secret",
        algorithm="HS256",
    )
    async with _asgi_client(app) as client:
        missing = await client.get("/api/v1/cards/nope123")
        assert missing.status_code == 401

        forged = await client.get("/api/v1/cards/nope123", headers={"Authorization": "Bearer not-a-token"})
        assert forged.status_code == 401

        valid = await client.get("/api/v1/cards/nope123", headers={"Authorization": f"Bearer {token}"})
        assert valid.status_code == 404


@pytest.mark.asyncio
async def test_health_and_metrics(giftcard_test_app):
    app, _caller = giftcard_test_app
    async with _asgi_client(app) as client:
        health = await client.get("/api/v1/healthz")
        assert health.json()["status"] == "ok"

        ready = await client.get("/api/v1/readyz")
        assert ready.status_code == 200
        assert ready.json()["database"] == "up"

        metrics = await client.get("/api/v1/metrics")
        assert metrics.status_code == 200
        assert "giftcard_redemption_total" in metrics.text


@pytest.mark.asyncio
async def test_amounts_too_large_for_a_balance_are_rejected(giftcard_test_app):
    app, _caller = giftcard_test_app
    async with _asgi_client(app) as client:
        card_id = await _issue(client)

        recharge = await client.post(f"/api/v1/cards/{card_id}/recharge", json={"amount": "999999999999.00"})
        assert recharge.status_code == 422

        issue = await client.post(
            "/api/v1/cards",
            json={"initial_balance": "100000000.00", "expiration_date": EXPIRY},
        )
        assert issue.status_code == 422

        card = await client.get(f"/api/v1/cards/{card_id}")
        assert Decimal(str(card.json()["current_balance"])) == Decimal("100.00")


@pytest.mark.asyncio
async def test_concurrent_first_requests_share_one_ledger(giftcard_test_app, monkeypatch):
    app, _caller = giftcard_test_app
    built: list[LedgerEngine] = []
    original = LedgerEngine.from_settings

    def counting_from_settings(*args, **kwargs):
        engine = original(*args, **kwargs)
        built.append(engine)
        return engine

    monkeypatch.setattr(LedgerEngine, "from_settings", counting_from_settings)
    async with _asgi_client(app) as client:
        responses = await asyncio.gather(
            *(client.post("/api/v1/cards/nope123/redeem", json={"amount": "5.00"}) for _ in range(5))
        )

    assert [r.status_code for r in responses] == [404] * 5
    assert len(built) == 1
    assert app.state.ledger is built[0]
