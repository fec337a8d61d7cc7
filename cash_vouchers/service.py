from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from cash_vouchers.codes import VoucherCodeGenerator
from cash_vouchers.db_sa import VoucherRepo
from cash_vouchers.domain import DateType, Voucher, VoucherStatus, as_utc, utcnow


class CodeGenerationExhausted(RuntimeError):
    """No free code was found within the configured number of attempts."""


class CashVoucherService:
    """Voucher lifecycle: generate, look up, redeem, toggle in-use, clean up.

    Operations on a code act on every stored row with that code. Nothing here
    serializes concurrent callers: two redemptions of the same code may both
    see it active before either writes.
    """

    def __init__(
        self,
        repo: VoucherRepo,
        code_generator: VoucherCodeGenerator | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_code_attempts: int | None = None,
    ):
        self.repo = repo
        self.code_generator = code_generator or VoucherCodeGenerator()
        self.clock = clock
        # None keeps retrying until a free code turns up.
        self.max_code_attempts = max_code_attempts or None
        self._log = logging.getLogger(self.__class__.__name__)

    def _new_code(self, issuing_store_id: int) -> str:
        attempts = 0
        while True:
            attempts += 1
            code = self.code_generator.generate(issuing_store_id)
            if not self.repo.code_exists_in_active(code, now=self.clock()):
                return code
            self._log.debug(
                "Code collision store=%s attempt=%s", issuing_store_id, attempts
            )
            if (
                self.max_code_attempts is not None
                and attempts >= self.max_code_attempts
            ):
                raise CodeGenerationExhausted(
                    f"No free voucher code for store {issuing_store_id} "
                    f"after {attempts} attempts"
                )

    def generate_voucher(
        self,
        amount: Decimal,
        issuing_store_id: int,
        expiration_date: Optional[datetime] = None,
        issuing_sale_id: Optional[str] = None,
    ) -> Voucher:
        code = self._new_code(issuing_store_id)
        voucher = Voucher(
            code=code,
            amount=Decimal(amount),
            creation_date=self.clock(),
            issuing_store_id=int(issuing_store_id),
            expiration_date=as_utc(expiration_date),
            issuing_sale_id=issuing_sale_id,
        )
        self.repo.add(voucher)
        return voucher

    def get_by_code(self, code: str, only_active: bool = True) -> list[Voucher]:
        return self.repo.get_by_code(code, only_active, now=self.clock())

    def get_filtered(
        self,
        status: Optional[VoucherStatus] = None,
        issuing_store_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        date_type: DateType = DateType.CREATION,
    ) -> list[Voucher]:
        return self.repo.get_filtered(
            status,
            issuing_store_id,
            date_from,
            date_to,
            date_type,
            now=self.clock(),
        )

    def redeem(
        self,
        code: str,
        redemption_sale_id: Optional[str] = None,
        redemption_date: Optional[datetime] = None,
    ) -> list[Voucher]:
        """Redeem every active voucher with ``code``; empty list if none.

        The result is what storage holds after the write, so rows another
        caller redeemed first are not reported.
        """
        now = self.clock()
        # One instant for the whole set.
        when = as_utc(redemption_date) or now
        redeemed = self.repo.redeem(
            code,
            redemption_date=when,
            redemption_sale_id=redemption_sale_id,
            now=now,
        )
        if redeemed:
            self._log.info(
                "Redeemed code=%s rows=%s sale=%s",
                code,
                len(redeemed),
                redemption_sale_id,
            )
        return redeemed

    def set_in_use(self, code: str, in_use: bool) -> list[Voucher]:
        """Returns every voucher with ``code``, touched or not."""
        return self.repo.set_in_use(code, in_use, now=self.clock())

    def cleanup(self) -> int:
        return self.repo.delete_old(now=self.clock())
