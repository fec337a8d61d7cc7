import base64
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from fastapi.testclient import TestClient

from cash_vouchers.app import create_app
from cash_vouchers.config import Config
from cash_vouchers.db_sa import Base, VoucherRepo, create_db
from cash_vouchers.domain import Voucher


def _config(**overrides) -> Config:
    values = {
        "auth_username": "store",
        "auth_password": "s3cret",
        "cleanup_enabled": False,
    }
    values.update(overrides)
    return Config(**values)


def _basic(username: str, password: str) -> str:
    raw = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _client(**overrides) -> TestClient:
    db = create_db(
        database_url="sqlite+pysqlite:///:memory:", db_path=":memory:"
    )
    Base.metadata.create_all(db.engine)

    app = create_app(db=db, config=_config(**overrides))
    c = TestClient(app)
    c.headers.update({"Authorization": _basic("store", "s3cret")})
    c._test_db = db  # type: ignore[attr-defined]
    return c


def _seed(c: TestClient, code: str, **fields) -> None:
    values = {
        "amount": Decimal("50.00"),
        "creation_date": datetime.now(UTC),
        "issuing_store_id": int(code[:4]),
    }
    values.update(fields)
    VoucherRepo(c._test_db).add(Voucher(code=code, **values))  # type: ignore[attr-defined]


def test_health_without_credentials():
    c = _client()
    c.headers.pop("Authorization")
    r = c.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_missing_credentials_get_challenge():
    c = _client()
    c.headers.pop("Authorization")
    r = c.get("/api/cash-vouchers")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"].startswith("Basic realm=")
    assert "detail" in (r.json() or {})


def test_wrong_password_is_rejected():
    c = _client()
    c.headers.update({"Authorization": _basic("store", "nope")})
    r = c.post(
        "/api/cash-vouchers", json={"amount": "10.00", "issuing_store_id": 1}
    )
    assert r.status_code == 401


def test_garbage_authorization_header_is_401_not_500():
    c = _client()
    c.headers.update({"Authorization": "Basic !!!not-base64!!!"})
    r = c.get("/api/cash-vouchers")
    assert r.status_code == 401


def test_unconfigured_credentials_reject_everything():
    c = _client(auth_username="", auth_password="")
    c.headers.update({"Authorization": _basic("", "")})
    r = c.get("/api/cash-vouchers")
    assert r.status_code == 401


def test_openapi_is_public():
    c = _client()
    c.headers.pop("Authorization")
    r = c.get("/openapi.json")
    assert r.status_code == 200


def test_generate_voucher():
    c = _client()
    expires = datetime.now(UTC) + timedelta(days=30)

    r = c.post(
        "/api/cash-vouchers",
        json={
            "amount": "100.50",
            "issuing_store_id": 1234,
            "expiration_date": expires.isoformat(),
            "issuing_sale_id": "SALE-42",
        },
    )
    assert r.status_code == 201
    v = r.json()
    assert v["code"].startswith("1234")
    assert len(v["code"]) == 13
    assert Decimal(str(v["amount"])) == Decimal("100.50")
    assert v["issuing_store_id"] == 1234
    assert v["issuing_sale_id"] == "SALE-42"
    assert v["in_use"] is False
    assert v["status"] == "Active"


def test_generate_validates_payload():
    c = _client()

    r = c.post(
        "/api/cash-vouchers", json={"amount": "10.00", "issuing_store_id": 10000}
    )
    assert r.status_code == 422

    r = c.post(
        "/api/cash-vouchers", json={"amount": "10.001", "issuing_store_id": 1}
    )
    assert r.status_code == 422

    r = c.post(
        "/api/cash-vouchers",
        json={"amount": "10.00", "issuing_store_id": 1, "issuing_sale_id": "x" * 129},
    )
    assert r.status_code == 422


def test_get_by_code_only_active_flag():
    c = _client()
    now = datetime.now(UTC)
    _seed(c, "1111111111111")
    _seed(
        c,
        "1111111111111",
        creation_date=now - timedelta(days=1),
        redemption_date=now - timedelta(hours=1),
    )

    r = c.get("/api/cash-vouchers/by-code/1111111111111")
    assert r.status_code == 200
    assert [v["status"] for v in r.json()] == ["Active"]

    r = c.get("/api/cash-vouchers/by-code/1111111111111?only_active=false")
    assert r.status_code == 200
    assert sorted(v["status"] for v in r.json()) == ["Active", "Redeemed"]

    r = c.get("/api/cash-vouchers/by-code/0000000000000")
    assert r.status_code == 200
    assert r.json() == []


def test_filtered_listing():
    c = _client()
    now = datetime.now(UTC)
    _seed(c, "1111111111111", expiration_date=now + timedelta(days=30))
    _seed(c, "2222222222222", redemption_date=now - timedelta(days=1))
    _seed(c, "3333333333333", expiration_date=now - timedelta(days=1))

    r = c.get("/api/cash-vouchers", params={"status": "Expired"})
    assert r.status_code == 200
    assert [v["code"] for v in r.json()] == ["3333333333333"]

    r = c.get(
        "/api/cash-vouchers",
        params={
            "date_type": "Redemption",
            "date_from": (now - timedelta(days=2)).isoformat(),
        },
    )
    assert r.status_code == 200
    assert [v["code"] for v in r.json()] == ["2222222222222"]

    r = c.get("/api/cash-vouchers", params={"issuing_store_id": 1111})
    assert [v["code"] for v in r.json()] == ["1111111111111"]

    r = c.get("/api/cash-vouchers", params={"status": "Bogus"})
    assert r.status_code == 422


def test_redeem_flow():
    c = _client()
    r = c.post(
        "/api/cash-vouchers", json={"amount": "25.00", "issuing_store_id": 5678}
    )
    code = r.json()["code"]

    r = c.put(
        f"/api/cash-vouchers/{code}/redeem",
        json={"redemption_sale_id": "RED-9"},
    )
    assert r.status_code == 200
    items = r.json()
    assert len(items) == 1
    assert items[0]["status"] == "Redeemed"
    assert items[0]["in_use"] is False
    assert items[0]["redemption_sale_id"] == "RED-9"
    assert items[0]["redemption_date"] is not None

    # Second redemption finds nothing active.
    r = c.put(f"/api/cash-vouchers/{code}/redeem", json={})
    assert r.status_code == 404
    assert "no active vouchers" in r.json()["detail"].lower()


def test_redeem_with_explicit_date():
    c = _client()
    _seed(c, "1111111111111")
    when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    r = c.put(
        "/api/cash-vouchers/1111111111111/redeem",
        json={"redemption_date": when.isoformat()},
    )
    assert r.status_code == 200
    got = datetime.fromisoformat(
        r.json()[0]["redemption_date"].replace("Z", "+00:00")
    )
    assert got == when


def test_set_in_use_flow():
    c = _client()
    _seed(c, "1111111111111")

    r = c.put("/api/cash-vouchers/1111111111111/in-use", json={"in_use": True})
    assert r.status_code == 200
    assert [v["status"] for v in r.json()] == ["InUse"]

    r = c.put("/api/cash-vouchers/1111111111111/in-use", json={"in_use": False})
    assert r.status_code == 200
    assert [v["status"] for v in r.json()] == ["Active"]

    r = c.put("/api/cash-vouchers/0000000000000/in-use", json={"in_use": True})
    assert r.status_code == 404


def test_lifespan_starts_and_stops_cleanup():
    db = create_db(
        database_url="sqlite+pysqlite:///:memory:", db_path=":memory:"
    )
    Base.metadata.create_all(db.engine)
    app = create_app(
        db=db, config=_config(cleanup_enabled=True, cleanup_interval_s=3600)
    )

    with TestClient(app) as c:
        c.headers.update({"Authorization": _basic("store", "s3cret")})
        r = c.get("/api/cash-vouchers")
        assert r.status_code == 200
        assert r.json() == []
