from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from brandscout.auth import create_access_token
from brandscout.config import Settings
from brandscout.errors import NotFound, UpstreamTransient
from brandscout.main import create_application
from brandscout.pipeline.gateway import DiscoveryGateway
from brandscout.schemas import Platform

from .conftest import MemoryCache, MemoryRateLimits, StubPipeline

SETTINGS = Settings(jwt_secret_key="test-secret", rate_limit_max_requests=3)


def make_client(pipeline=None, settings=SETTINGS):
    gateway = DiscoveryGateway(pipeline or StubPipeline(), MemoryCache(), MemoryRateLimits(), settings)
    return TestClient(create_application(settings=settings, gateways={Platform.instagram: gateway}))


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('alice', SETTINGS)}"}


def test_health():
    assert make_client().get("/health").json() == {"status": "ok"}


def test_requires_valid_token():
    client = make_client()
    assert client.post("/discover/instagram", json={"handle": "seed"}).status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.post("/discover/instagram", json={"handle": "seed"}, headers=bad).status_code == 401
    expired = create_access_token("alice", SETTINGS, expires_delta=timedelta(minutes=-5))
    response = client.post(
        "/discover/instagram", json={"handle": "seed"}, headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_discover_then_cached(auth_headers):
    client = make_client()
    first = client.post("/discover/instagram", json={"handle": "@Seed"}, headers=auth_headers)
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["data"]["metadata"]["cached"] is False
    assert body["data"]["metadata"]["candidate_source"] == "related"
    assert body["data"]["similar_creators"][0]["handle"] == "similar_one"

    second = client.post("/discover/instagram", json={"handle": "seed"}, headers=auth_headers)
    assert second.json()["data"]["metadata"]["cached"] is True


def test_rate_limited(auth_headers):
    client = make_client()
    for _ in range(3):
        assert client.post("/discover/instagram", json={"handle": "seed"}, headers=auth_headers).status_code == 200
    response = client.post("/discover/instagram", json={"handle": "seed"}, headers=auth_headers)
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "3600"


def test_unknown_handle(auth_headers):
    client = make_client(StubPipeline(error=NotFound("ghost")))
    response = client.post("/discover/instagram", json={"handle": "ghost"}, headers=auth_headers)
    assert response.status_code == 404
    assert "Try a different handle" in response.json()["detail"]


def test_upstream_failure(auth_headers):
    client = make_client(StubPipeline(error=UpstreamTransient("actor down")))
    response = client.post("/discover/instagram", json={"handle": "seed"}, headers=auth_headers)
    assert response.status_code == 502


def test_unsupported_platform(auth_headers):
    client = make_client()
    assert client.post("/discover/myspace", json={"handle": "seed"}, headers=auth_headers).status_code == 404
    assert client.post("/discover/tiktok", json={"handle": "seed"}, headers=auth_headers).status_code == 404


def test_invalid_handle(auth_headers):
    client = make_client()
    assert client.post("/discover/instagram", json={"handle": ""}, headers=auth_headers).status_code == 422
    assert client.post("/discover/instagram", json={"handle": " @ "}, headers=auth_headers).status_code == 422


def test_cache_status(auth_headers):
    pipeline = StubPipeline()
    client = make_client(pipeline)
    assert client.get("/discover/instagram/cache", params={"handle": "seed"}, headers=auth_headers).json()[
        "cached"
    ] is False

    client.post("/discover/instagram", json={"handle": "seed"}, headers=auth_headers)
    status = client.get("/discover/instagram/cache", params={"handle": "@SEED"}, headers=auth_headers).json()
    assert status["cached"] is True
    assert status["cached_at"] is not None
    assert status["similar_creators"][0]["handle"] == "similar_one"
    assert pipeline.calls == ["seed"]
