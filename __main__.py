"""Common entrypoint to run the cash vouchers API.

Usage:
  python __main__.py

"""

from __future__ import annotations


def main() -> None:
    from cash_vouchers.main import main as api_main

    api_main()


if __name__ == "__main__":
    main()
