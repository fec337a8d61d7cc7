"""Database layer (SQLAlchemy + Alembic) for the vouchers service."""

from cash_vouchers.db_migrations import upgrade_head
from cash_vouchers.db_sa import Db, VoucherRepo, create_db

__all__ = [
    "Db",
    "create_db",
    "init_db",
    "VoucherRepo",
]


def init_db(*, database_url: str, db_path: str) -> Db:
    db = create_db(database_url=database_url, db_path=db_path)
    upgrade_head(database_url=database_url, db_path=db_path)
    return db
