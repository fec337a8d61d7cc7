from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional


class VoucherStatus(str, enum.Enum):
    ACTIVE = "Active"
    IN_USE = "InUse"
    REDEEMED = "Redeemed"
    EXPIRED = "Expired"


class DateType(str, enum.Enum):
    CREATION = "Creation"
    REDEMPTION = "Redemption"
    EXPIRATION = "Expiration"


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def years_before(moment: datetime, years: int) -> datetime:
    """Calendar-year subtraction; 29 February falls back to 28 February."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


def derive_status(
    *,
    redemption_date: Optional[datetime],
    expiration_date: Optional[datetime],
    in_use: bool,
    now: datetime,
) -> VoucherStatus:
    """Status precedence: Redeemed > Expired > InUse > Active."""
    if redemption_date is not None:
        return VoucherStatus.REDEEMED
    if expiration_date is not None and as_utc(expiration_date) < as_utc(now):
        return VoucherStatus.EXPIRED
    if in_use:
        return VoucherStatus.IN_USE
    return VoucherStatus.ACTIVE


@dataclass(frozen=True)
class Voucher:
    code: str
    amount: Decimal
    creation_date: datetime
    issuing_store_id: int
    expiration_date: Optional[datetime] = None
    issuing_sale_id: Optional[str] = None
    redemption_date: Optional[datetime] = None
    redemption_sale_id: Optional[str] = None
    in_use: bool = False

    def status_at(self, now: datetime) -> VoucherStatus:
        return derive_status(
            redemption_date=self.redemption_date,
            expiration_date=self.expiration_date,
            in_use=self.in_use,
            now=now,
        )

    @property
    def status(self) -> VoucherStatus:
        return self.status_at(utcnow())
