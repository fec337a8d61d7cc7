from __future__ import annotations

import random

CODE_LENGTH = 13
STORE_PREFIX_LENGTH = 4
_RANDOM_DIGITS = CODE_LENGTH - STORE_PREFIX_LENGTH - 1


def ean13_check_digit(payload: str) -> int:
    """Weighted checksum of a 12-digit payload (x1 on even, x3 on odd positions)."""
    total = 0
    for i, ch in enumerate(payload):
        digit = int(ch)
        total += digit if i % 2 == 0 else digit * 3
    return (10 - total % 10) % 10


class VoucherCodeGenerator:
    """Builds EAN-13 style voucher codes prefixed with the issuing store id.

    The random source is injected so tests can pass a seeded ``random.Random``.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng if rng is not None else random.Random()

    def generate(self, issuing_store_id: int) -> str:
        # Store ids above 9999 are not rejected here; the HTTP layer validates them.
        store_code = f"{int(issuing_store_id):0{STORE_PREFIX_LENGTH}d}"
        sequence = "".join(
            str(self._rng.randint(0, 9)) for _ in range(_RANDOM_DIGITS)
        )
        payload = store_code + sequence
        return f"{payload}{ean13_check_digit(payload)}"
