from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cash_vouchers.domain import VoucherStatus


class _ORM(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---- Cash vouchers ----


class VoucherOut(_ORM):
    code: str
    amount: Decimal
    creation_date: datetime
    issuing_store_id: int
    redemption_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    issuing_sale_id: Optional[str] = None
    redemption_sale_id: Optional[str] = None
    in_use: bool
    status: VoucherStatus


class VoucherGenerate(BaseModel):
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    issuing_store_id: int = Field(ge=0, le=9999)
    expiration_date: Optional[datetime] = None
    issuing_sale_id: Optional[str] = Field(default=None, max_length=128)


class VoucherRedeem(BaseModel):
    # Current UTC time is used when omitted.
    redemption_date: Optional[datetime] = None
    redemption_sale_id: Optional[str] = Field(default=None, max_length=128)


class VoucherSetInUse(BaseModel):
    in_use: bool
