"""Every failure renders as {error, message, code}."""

import pytest
from fastapi import APIRouter
from httpx import ASGITransport, AsyncClient

from comityspace.config import settings
from comityspace.errors import ConflictError
from comityspace.main import create_app


def _app_with_failing_routes():
    app = create_app()
    router = APIRouter()

    @router.get("/boom")
    async def boom():
        raise RuntimeError("database exploded")

    @router.get("/conflict")
    async def conflict():
        raise ConflictError("Already there")

    app.include_router(router)
    return app


@pytest.mark.asyncio
async def test_domain_error_shape():
    transport = ASGITransport(app=_app_with_failing_routes())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/conflict")
    assert r.status_code == 409
    assert r.json() == {"error": "Conflict", "message": "Already there", "code": "CONFLICT"}
    assert "WWW-Authenticate" not in r.headers


@pytest.mark.asyncio
async def test_unexpected_error_hides_detail_outside_development(monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    transport = ASGITransport(app=_app_with_failing_routes(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/boom")
    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert "exploded" not in body["message"]


@pytest.mark.asyncio
async def test_unexpected_error_detail_in_development():
    transport = ASGITransport(app=_app_with_failing_routes(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/boom")
    assert r.status_code == 500
    assert r.json()["message"] == "database exploded"
