from fastapi.testclient import TestClient

import checkout
import database
import main
import middleware
from middleware import SECURITY_HEADERS, RateLimiter


def test_security_headers_are_set(client):
    res = client.get("/")
    assert res.status_code == 200
    for name, value in SECURITY_HEADERS.items():
        assert res.headers[name] == value


def test_cors_allows_frontend_origin(client):
    res = client.options(
        "/api/products",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
    )
    assert res.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert res.headers["access-control-allow-credentials"] == "true"


def test_rate_limit_blocks_after_max(client, monkeypatch):
    monkeypatch.setattr(main.limiter, "max_requests", 2)

    first = client.get("/")
    assert first.headers["RateLimit-Limit"] == "2"
    assert first.headers["RateLimit-Remaining"] == "1"
    client.get("/")
    blocked = client.get("/")

    assert blocked.status_code == 429
    assert blocked.json() == {
        "success": False,
        "message": "Too many requests from this IP, please try again later.",
    }
    assert "Retry-After" in blocked.headers


def test_auth_routes_have_stricter_limit(client, monkeypatch):
    monkeypatch.setattr(main.auth_limiter, "max_requests", 1)

    client.post("/api/auth/login", json={})
    blocked = client.post("/api/auth/login", json={})

    assert blocked.status_code == 429
    assert blocked.json()["message"] == "Too many authentication attempts, please try again later."
    assert client.get("/").status_code == 200


def test_rate_limit_keys_on_forwarded_address(client, monkeypatch):
    monkeypatch.setattr(main.limiter, "max_requests", 1)

    assert client.get("/", headers={"X-Forwarded-For": "1.1.1.1, 10.0.0.1"}).status_code == 200
    assert client.get("/", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 200
    assert client.get("/", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429


def test_unknown_route(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Route /api/nope not found"}


def test_validation_error_is_400(client):
    res = client.post("/api/auth/login", json={"password": "x"})
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "email: Field required"}


def test_invalid_id_is_400(client, admin_headers):
    res = client.get("/api/admin/orders/not-an-id", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid id"


def test_unhandled_error_is_500(db, monkeypatch, user_headers, address):
    def boom(db, user, payload):
        raise RuntimeError("boom")

    monkeypatch.setattr(checkout, "create_order", boom)
    main.limiter.reset()
    client = TestClient(main.app, raise_server_exceptions=False)

    res = client.post("/api/orders", json={"order_items": [], "shipping_address": address}, headers=user_headers)

    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "boom"}


def test_missing_database(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)

    res = client.get("/api/products")
    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Database not configured"}

    health = client.get("/api/health").json()
    assert health["success"] is True
    assert health["mongodb"] == "disconnected"
    assert health["uptime"] >= 0


def test_rate_limiter_counts_per_key():
    limiter = RateLimiter(2, 60, "slow down")

    assert limiter.hit("a")[:2] == (True, 1)
    assert limiter.hit("a")[:2] == (True, 0)
    assert limiter.hit("a")[:2] == (False, 0)
    assert limiter.hit("b")[0] is True

    limiter.reset()
    assert limiter.hit("a")[0] is True


def test_rate_limiter_window_rolls_over():
    limiter = RateLimiter(1, 0, "slow down")
    assert limiter.hit("a")[0] is True
    assert limiter.hit("a")[0] is True


def test_rate_limiter_forgets_closed_windows():
    limiter = RateLimiter(1, 0, "slow down")
    for n in range(500):
        limiter.hit(f"10.0.{n // 256}.{n % 256}")
    assert len(limiter) == 1


def test_rate_limiter_sweeps_once_per_window(monkeypatch):
    clock = {"now": 1000.0}
    monkeypatch.setattr(middleware.time, "monotonic", lambda: clock["now"])
    limiter = RateLimiter(5, 60, "slow down")

    limiter.hit("a")
    limiter.hit("b")
    clock["now"] = 1030.0
    limiter.hit("c")
    assert len(limiter) == 3

    clock["now"] = 1061.0
    limiter.hit("d")
    assert len(limiter) == 2
    assert limiter.hit("c")[:2] == (True, 3)
