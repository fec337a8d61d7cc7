import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    and_,
    create_engine,
    delete,
    false,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cash_vouchers.domain import (
    DateType,
    Voucher,
    VoucherStatus,
    as_utc,
    utcnow,
    years_before,
)

logger = logging.getLogger("db")

# A code stays reserved this long after its voucher was redeemed or expired.
CODE_REUSE_GRACE = timedelta(days=30)
RETENTION_YEARS = 1


class Base(DeclarativeBase):
    pass


# No primary key: several rows may share a code.
cash_vouchers = Table(
    "cash_vouchers",
    Base.metadata,
    Column("code", String(13), nullable=False),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("creation_date", DateTime, nullable=False),
    Column("issuing_store_id", Integer, nullable=False),
    Column("redemption_date", DateTime, nullable=True),
    Column("expiration_date", DateTime, nullable=True),
    Column("issuing_sale_id", String(128), nullable=True),
    Column("redemption_sale_id", String(128), nullable=True),
    Column("in_use", Boolean, nullable=False, server_default=false()),
    Index("ix_cash_vouchers_code", "code"),
)


def build_database_url(database_url: str, db_path: str) -> str:
    if database_url:
        return database_url
    return f"sqlite:///{db_path}"


@dataclass(frozen=True)
class Db:
    engine: Engine
    session_factory: sessionmaker[Session]

    def session(self) -> Session:
        return self.session_factory()


def _redact_db_url(raw: str) -> str:
    try:
        u = urlsplit(raw)
    except ValueError:
        return "<invalid-db-url>"
    if not u.scheme:
        return raw
    netloc = u.netloc
    if "@" in netloc:
        creds, host = netloc.rsplit("@", 1)
        if ":" in creds:
            user = creds.split(":", 1)[0]
            netloc = f"{user}:***@{host}"
    return urlunsplit((u.scheme, netloc, u.path, u.query, u.fragment))


def create_db(database_url: str, db_path: str) -> Db:
    url = build_database_url(database_url, db_path)
    engine_kwargs = {"future": True}
    if url.startswith("sqlite") and (
        ":memory:" in url or "mode=memory" in url
    ):
        engine_kwargs.update(
            {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        )
    engine = create_engine(url, **engine_kwargs)
    SessionFactory = sessionmaker(
        bind=engine, expire_on_commit=False, future=True
    )
    logger.info("SQLAlchemy engine created: %s", _redact_db_url(url))
    return Db(engine=engine, session_factory=SessionFactory)


# --- Storage helpers ---


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    # Columns hold naive UTC.
    value = as_utc(value)
    return value.replace(tzinfo=None) if value is not None else None


def _row_to_voucher(row: Row) -> Voucher:
    return Voucher(
        code=row.code,
        amount=row.amount,
        creation_date=as_utc(row.creation_date),
        issuing_store_id=int(row.issuing_store_id),
        expiration_date=as_utc(row.expiration_date),
        issuing_sale_id=row.issuing_sale_id,
        redemption_date=as_utc(row.redemption_date),
        redemption_sale_id=row.redemption_sale_id,
        in_use=bool(row.in_use),
    )


def _voucher_values(v: Voucher) -> dict:
    return {
        "code": v.code,
        "amount": v.amount,
        "creation_date": _to_db(v.creation_date),
        "issuing_store_id": int(v.issuing_store_id),
        "redemption_date": _to_db(v.redemption_date),
        "expiration_date": _to_db(v.expiration_date),
        "issuing_sale_id": v.issuing_sale_id,
        "redemption_sale_id": v.redemption_sale_id,
        "in_use": bool(v.in_use),
    }


def active_clause(now: datetime):
    """Not redeemed and not expired; the in-use flag is ignored."""
    t = cash_vouchers.c
    now = _to_db(now)
    return and_(
        t.redemption_date.is_(None),
        or_(t.expiration_date.is_(None), t.expiration_date >= now),
    )


def expired_clause(now: datetime):
    t = cash_vouchers.c
    return and_(
        t.redemption_date.is_(None),
        t.expiration_date.is_not(None),
        t.expiration_date < _to_db(now),
    )


def status_clause(status: VoucherStatus, now: datetime):
    t = cash_vouchers.c
    if status is VoucherStatus.REDEEMED:
        return t.redemption_date.is_not(None)
    if status is VoucherStatus.EXPIRED:
        return expired_clause(now)
    if status is VoucherStatus.IN_USE:
        return and_(active_clause(now), t.in_use.is_(True))
    # Active deliberately keeps in-use rows, unlike the derived status.
    return active_clause(now)


def date_range_clauses(
    date_type: DateType,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> list:
    t = cash_vouchers.c
    date_type = DateType(date_type)
    column = {
        DateType.CREATION: t.creation_date,
        DateType.REDEMPTION: t.redemption_date,
        DateType.EXPIRATION: t.expiration_date,
    }[date_type]
    clauses = []
    if date_from is not None:
        clauses.append(column >= _to_db(date_from))
    if date_to is not None:
        clauses.append(column <= _to_db(date_to))
    if clauses and date_type is not DateType.CREATION:
        clauses.insert(0, column.is_not(None))
    return clauses


# --- Repository layer ---


class VoucherRepo:
    def __init__(self, db: Db):
        self.db = db
        self._log = logging.getLogger(self.__class__.__name__)

    def _select(self, *where) -> list[Voucher]:
        stmt = select(cash_vouchers).order_by(
            cash_vouchers.c.creation_date.asc()
        )
        if where:
            stmt = stmt.where(*where)
        with self.db.session() as s:
            return [_row_to_voucher(r) for r in s.execute(stmt).all()]

    def get_by_code(
        self,
        code: str,
        only_active: bool = True,
        *,
        now: Optional[datetime] = None,
    ) -> list[Voucher]:
        where = [cash_vouchers.c.code == code]
        if only_active:
            where.append(active_clause(now or utcnow()))
        return self._select(*where)

    def get_all_by_code(self, code: str) -> list[Voucher]:
        return self._select(cash_vouchers.c.code == code)

    def get_filtered(
        self,
        status: Optional[VoucherStatus] = None,
        issuing_store_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        date_type: DateType = DateType.CREATION,
        *,
        now: Optional[datetime] = None,
    ) -> list[Voucher]:
        now = now or utcnow()
        where = []
        if status is not None:
            where.append(status_clause(VoucherStatus(status), now))
        if issuing_store_id is not None:
            where.append(
                cash_vouchers.c.issuing_store_id == int(issuing_store_id)
            )
        where.extend(date_range_clauses(date_type, date_from, date_to))
        return self._select(*where)

    def code_exists_in_active(
        self, code: str, *, now: Optional[datetime] = None
    ) -> bool:
        """True while the code is live or was retired less than 30 days ago."""
        t = cash_vouchers.c
        cutoff = _to_db((now or utcnow()) - CODE_REUSE_GRACE)
        stmt = (
            select(t.code)
            .where(
                t.code == code,
                or_(t.redemption_date.is_(None), t.redemption_date >= cutoff),
                or_(t.expiration_date.is_(None), t.expiration_date >= cutoff),
            )
            .limit(1)
        )
        with self.db.session() as s:
            return s.execute(stmt).first() is not None

    def add(self, voucher: Voucher) -> None:
        with self.db.session() as s:
            s.execute(cash_vouchers.insert().values(**_voucher_values(voucher)))
            s.commit()
        self._log.info(
            "Voucher added code=%s store=%s amount=%s",
            voucher.code,
            voucher.issuing_store_id,
            voucher.amount,
        )

    def redeem(
        self,
        code: str,
        *,
        redemption_date: datetime,
        redemption_sale_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[Voucher]:
        """Redeem every row with ``code`` that is still active at ``now``.

        One UPDATE sets only the redemption fields, so every matched row gets
        the same instant and the other columns stay as stored. Returns the rows
        as written.
        """
        t = cash_vouchers.c
        when = _to_db(redemption_date)
        stmt = (
            update(cash_vouchers)
            .where(t.code == code, active_clause(now or utcnow()))
            .values(
                redemption_date=when,
                redemption_sale_id=redemption_sale_id,
                in_use=False,
            )
        )
        with self.db.session() as s:
            if s.get_bind().dialect.update_returning:
                rows = s.execute(stmt.returning(*cash_vouchers.c)).all()
            else:
                res = s.execute(stmt)
                rows = []
                if int(getattr(res, "rowcount", 0) or 0):
                    # Rows redeemed earlier with the same instant and sale id
                    # are indistinguishable here.
                    sale = (
                        t.redemption_sale_id.is_(None)
                        if redemption_sale_id is None
                        else t.redemption_sale_id == redemption_sale_id
                    )
                    rows = s.execute(
                        select(cash_vouchers).where(
                            t.code == code, t.redemption_date == when, sale
                        )
                    ).all()
            s.commit()
        vouchers = sorted(
            (_row_to_voucher(r) for r in rows), key=lambda v: v.creation_date
        )
        self._log.debug("Redeem code=%s touched %s rows", code, len(vouchers))
        return vouchers

    def set_in_use(
        self,
        code: str,
        in_use: bool,
        *,
        now: Optional[datetime] = None,
    ) -> list[Voucher]:
        stmt = (
            update(cash_vouchers)
            .where(cash_vouchers.c.code == code)
            .values(in_use=bool(in_use))
        )
        if in_use:
            stmt = stmt.where(active_clause(now or utcnow()))
        with self.db.session() as s:
            res = s.execute(stmt)
            s.commit()
        self._log.info(
            "In-use code=%s value=%s rows=%s",
            code,
            in_use,
            int(getattr(res, "rowcount", 0) or 0),
        )
        return self.get_all_by_code(code)

    def delete_old(self, *, now: Optional[datetime] = None) -> int:
        t = cash_vouchers.c
        cutoff = _to_db(years_before(now or utcnow(), RETENTION_YEARS))
        stmt = delete(cash_vouchers).where(
            or_(
                and_(
                    t.redemption_date.is_not(None),
                    t.redemption_date < cutoff,
                ),
                and_(
                    t.redemption_date.is_(None),
                    t.expiration_date.is_not(None),
                    t.expiration_date < cutoff,
                ),
            )
        )
        with self.db.session() as s:
            res = s.execute(stmt)
            s.commit()
        deleted = int(getattr(res, "rowcount", 0) or 0)
        if deleted:
            self._log.info("Deleted %s old vouchers", deleted)
        return deleted
