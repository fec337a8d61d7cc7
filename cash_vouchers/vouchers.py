from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Request, status

from cash_vouchers.domain import DateType, VoucherStatus
from cash_vouchers.schemas import (
    VoucherGenerate,
    VoucherOut,
    VoucherRedeem,
    VoucherSetInUse,
)
from cash_vouchers.service import CashVoucherService, CodeGenerationExhausted

router = APIRouter(prefix="/api/cash-vouchers", tags=["cash-vouchers"])


def _service(request: Request) -> CashVoucherService:
    return request.app.state.vouchers


@router.post(
    "", response_model=VoucherOut, status_code=status.HTTP_201_CREATED
)
def generate_voucher(payload: VoucherGenerate, request: Request) -> VoucherOut:
    try:
        v = _service(request).generate_voucher(
            amount=payload.amount,
            issuing_store_id=int(payload.issuing_store_id),
            expiration_date=payload.expiration_date,
            issuing_sale_id=payload.issuing_sale_id,
        )
    except CodeGenerationExhausted as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return VoucherOut.model_validate(v)


@router.get("/by-code/{code}", response_model=list[VoucherOut])
def get_vouchers_by_code(
    code: str,
    request: Request,
    only_active: bool = True,
) -> list[VoucherOut]:
    vouchers = _service(request).get_by_code(code.strip(), only_active)
    return [VoucherOut.model_validate(v) for v in vouchers]


@router.get("", response_model=list[VoucherOut])
def list_vouchers(
    request: Request,
    status: VoucherStatus | None = None,
    issuing_store_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    date_type: DateType = DateType.CREATION,
) -> list[VoucherOut]:
    """
    List vouchers matching every given filter.
    status=Active also returns in-use vouchers; status=InUse narrows that set
    to vouchers whose in-use flag is set.
    """
    vouchers = _service(request).get_filtered(
        status=status,
        issuing_store_id=issuing_store_id,
        date_from=date_from,
        date_to=date_to,
        date_type=date_type,
    )
    return [VoucherOut.model_validate(v) for v in vouchers]


@router.put("/{code}/redeem", response_model=list[VoucherOut])
def redeem_voucher(
    code: str, payload: VoucherRedeem, request: Request
) -> list[VoucherOut]:
    """
    Redeem every active voucher with this code.
    Returns 404 when no active voucher has the code.
    """
    vouchers = _service(request).redeem(
        code.strip(),
        redemption_sale_id=payload.redemption_sale_id,
        redemption_date=payload.redemption_date,
    )
    if not vouchers:
        raise HTTPException(
            status_code=404,
            detail="No active vouchers found with the specified code",
        )
    return [VoucherOut.model_validate(v) for v in vouchers]


@router.put("/{code}/in-use", response_model=list[VoucherOut])
def set_vouchers_in_use(
    code: str, payload: VoucherSetInUse, request: Request
) -> list[VoucherOut]:
    """
    Set the in-use flag for vouchers with this code.
    - in_use=true: only vouchers that are neither redeemed nor expired change
    - in_use=false: every voucher with the code changes
    Returns all vouchers with the code, or 404 when there are none.
    """
    vouchers = _service(request).set_in_use(code.strip(), bool(payload.in_use))
    if not vouchers:
        raise HTTPException(
            status_code=404, detail="No vouchers found with the specified code"
        )
    return [VoucherOut.model_validate(v) for v in vouchers]
