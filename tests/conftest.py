from datetime import UTC, datetime
from decimal import Decimal

import pytest
from cash_vouchers.db_sa import Base, VoucherRepo, create_db
from cash_vouchers.domain import Voucher

NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def db():
    # In-memory DB for fast, isolated tests.
    db = create_db(
        database_url="sqlite+pysqlite:///:memory:", db_path=":memory:"
    )
    Base.metadata.create_all(db.engine)
    return db


@pytest.fixture()
def repo(db):
    return VoucherRepo(db)


@pytest.fixture()
def seed(repo):
    def _seed(code: str, **fields) -> Voucher:
        values = {
            "amount": Decimal("50.00"),
            "creation_date": NOW,
            "issuing_store_id": int(code[:4]),
        }
        values.update(fields)
        v = Voucher(code=code, **values)
        repo.add(v)
        return v

    return _seed
