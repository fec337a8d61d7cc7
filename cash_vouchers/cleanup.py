import asyncio
import logging
from datetime import datetime, timezone

from cash_vouchers.service import CashVoucherService


_LOG = logging.getLogger("cash_vouchers.cleanup")

DEFAULT_INTERVAL_S = 24 * 60 * 60.0


async def run_voucher_cleanup(
    service: CashVoucherService,
    *,
    interval_s: float = DEFAULT_INTERVAL_S,
) -> None:
    """Purge old redeemed/expired vouchers once per interval until cancelled.

    A failed pass is logged and the loop carries on with the next interval.
    """
    _LOG.info("Voucher cleanup started (interval_s=%.2f)", interval_s)
    try:
        while True:
            try:
                _LOG.info(
                    "Starting voucher cleanup at %s",
                    datetime.now(timezone.utc).isoformat(),
                )
                deleted = await asyncio.to_thread(service.cleanup)
                _LOG.info("Deleted %s old vouchers", deleted)
            except asyncio.CancelledError:
                raise
            except Exception:
                _LOG.exception("An error occurred during voucher cleanup")

            await asyncio.sleep(interval_s)
    finally:
        _LOG.info("Voucher cleanup stopping")
