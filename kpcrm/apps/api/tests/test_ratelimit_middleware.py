"""
RateLimit middleware contract.

- 2xx responses carry RateLimit-Policy + RateLimit
- 429 carries {message, statusCode} + Retry-After
- handler-set RateLimit headers are never overridden
- only /api/v1/* is limited; sign-in has its own bucket
- buckets are keyed by client IP, never by the bearer value
"""

from dataclasses import replace
from types import SimpleNamespace

from fastapi import APIRouter, FastAPI, Response
from fastapi.testclient import TestClient

from conftest import CountingRedis, bearer
from kpcrm_api.middleware import RateLimitMiddleware
from kpcrm_api.rate_limiter import NoOpRateLimiter, RedisRateLimiter


def _limited_client(make_app, quota=2, auth_quota=1) -> TestClient:
    limiter = RedisRateLimiter(
        CountingRedis(), quota=quota, window=60, auth_quota=auth_quota, clock=lambda: 1000.0
    )
    return TestClient(make_app(rate_limiter=limiter))


def test_success_responses_carry_ratelimit_headers(make_app):
    client = _limited_client(make_app)

    resp = client.get("/api/v1/products")

    assert resp.status_code == 200
    assert resp.headers["RateLimit-Policy"] == '"api"; q=2; w=60'
    assert resp.headers["RateLimit"] == '"api"; r=1; t=20'


def test_quota_exhaustion_is_429(make_app):
    client = _limited_client(make_app)

    statuses = [client.get("/api/v1/products").status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    resp = client.get("/api/v1/products")
    assert resp.json() == {"message": "Too many requests, please try again later", "statusCode": 429}
    assert resp.headers["Retry-After"] == "20"
    assert resp.headers["RateLimit"] == '"api"; r=0; t=20'


def test_limits_apply_before_authentication(make_app, identity_provider):
    client = _limited_client(make_app, quota=1)

    client.get("/api/v1/contacts", headers=bearer("rep-token"))
    resp = client.get("/api/v1/contacts", headers=bearer("rep-token"))

    assert resp.status_code == 429
    assert identity_provider.calls == ["rep-token"]


def test_sign_in_bucket_is_separate(make_app, auth_client):
    auth_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=None, session=None)
    client = _limited_client(make_app, quota=10, auth_quota=1)

    client.post("/api/v1/auth/login", json={"email": "x@kitchenpantry.test", "password": "pw"})
    resp = client.post("/api/v1/auth/login", json={"email": "x@kitchenpantry.test", "password": "pw"})

    assert resp.status_code == 429
    assert resp.headers["RateLimit-Policy"] == '"auth"; q=1; w=60'
    assert client.get("/api/v1/products").status_code == 200


def test_rotating_bearer_values_share_the_sign_in_bucket(make_app, auth_client):
    auth_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=None, session=None)
    client = _limited_client(make_app, quota=10, auth_quota=2)

    statuses = [
        client.post(
            "/api/v1/auth/login",
            headers=bearer(f"junk{i}"),
            json={"email": "x@kitchenpantry.test", "password": "guess"},
        ).status_code
        for i in range(4)
    ]

    assert statuses == [401, 401, 429, 429]


def test_rotating_bearer_values_share_the_api_bucket(make_app):
    client = _limited_client(make_app, quota=2)

    statuses = [
        client.get("/api/v1/contacts", headers=bearer(f"junk{i}")).status_code for i in range(3)
    ]

    assert statuses == [401, 401, 429]


def test_health_is_not_limited(make_app):
    client = _limited_client(make_app, quota=1)
    assert [client.get("/health").status_code for _ in range(3)] == [200, 200, 200]


def test_ratelimit_middleware_respects_handler_headers():
    """Handler-set RateLimit headers are preserved; missing ones are filled in."""
    test_app = FastAPI()
    test_app.state.rate_limiter = NoOpRateLimiter(quota=60, window=60)

    test_router = APIRouter()

    @test_router.get("/api/v1/test-custom-ratelimit")
    def custom_ratelimit_handler(response: Response):
        response.headers["RateLimit-Policy"] = '"custom"; q=100; w=3600'
        response.headers["RateLimit"] = '"custom"; r=99; t=3500'
        return {"message": "custom headers set"}

    @test_router.get("/api/v1/test-policy-only")
    def policy_only_handler(response: Response):
        response.headers["RateLimit-Policy"] = '"custom-policy"; q=200; w=7200'
        return {"message": "policy only"}

    test_app.include_router(test_router)
    test_app.add_middleware(RateLimitMiddleware)
    client = TestClient(test_app)

    custom = client.get("/api/v1/test-custom-ratelimit")
    assert custom.headers["RateLimit-Policy"] == '"custom"; q=100; w=3600'
    assert custom.headers["RateLimit"] == '"custom"; r=99; t=3500'

    policy_only = client.get("/api/v1/test-policy-only")
    assert policy_only.headers["RateLimit-Policy"] == '"custom-policy"; q=200; w=7200'
    assert policy_only.headers["RateLimit"] == '"api"; r=60; t=60'


def test_unreachable_redis_fails_open(make_app, settings):
    app = make_app(
        replace(settings, rate_limit_enabled=True, redis_url="redis://127.0.0.1:1/0"),
        rate_limiter=None,
    )
    client = TestClient(app)

    assert isinstance(app.state.rate_limiter, RedisRateLimiter)
    assert client.get("/api/v1/products").status_code == 200
    assert client.get("/health").json()["services"]["rate_limiter"].startswith("down")
