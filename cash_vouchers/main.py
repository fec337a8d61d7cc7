import logging

import uvicorn

from cash_vouchers.app import create_app
from cash_vouchers.config import load_config


def main() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

    config = load_config()
    app = create_app(config=config)
    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        reload=False,
        access_log=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()
