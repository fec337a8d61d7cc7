from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import random
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.responses import Response

from cash_vouchers.cleanup import run_voucher_cleanup
from cash_vouchers.codes import VoucherCodeGenerator
from cash_vouchers.config import Config, load_config
from cash_vouchers.db import Db, init_db
from cash_vouchers.db_sa import VoucherRepo
from cash_vouchers.service import CashVoucherService
from cash_vouchers.vouchers import router as vouchers_router

AUTH_REALM = "CashVouchersManager API"

# Reachable without credentials.
_PUBLIC_PATHS = {"/health", "/docs", "/docs/oauth2-redirect", "/redoc", "/openapi.json"}


def _extract_basic_credentials(request: Request) -> tuple[str, str] | None:
    # fastapi.security.HTTPBasic raises HTTPException, which a middleware
    # cannot turn into a response, so the header is decoded here.
    auth = (request.headers.get("authorization") or "").strip()
    scheme, _, param = auth.partition(" ")
    if scheme.lower() != "basic" or not param.strip():
        return None
    try:
        decoded = base64.b64decode(param.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return (username, password)


def _build_service(db: Db, config: Config) -> CashVoucherService:
    return CashVoucherService(
        VoucherRepo(db),
        VoucherCodeGenerator(random.Random()),
        max_code_attempts=config.code_max_attempts,
    )


def create_app(
    *, db: Db | None = None, config: Config | None = None
) -> FastAPI:
    cfg = config if config is not None else load_config()

    def _ensure_logging_configured() -> None:
        root = logging.getLogger()
        if root.handlers:
            return
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

    _ensure_logging_configured()
    logger = logging.getLogger("api")

    if not cfg.auth_username or not cfg.auth_password:
        logger.warning("AUTH_USERNAME/AUTH_PASSWORD not set; API will reject requests")

    def _check_credentials(request: Request) -> bool:
        creds = _extract_basic_credentials(request)
        if creds is None:
            return False
        username, password = creds
        if not cfg.auth_username or not cfg.auth_password:
            return False
        user_ok = secrets.compare_digest(
            username.encode("utf-8"), cfg.auth_username.encode("utf-8")
        )
        pass_ok = secrets.compare_digest(
            password.encode("utf-8"), cfg.auth_password.encode("utf-8")
        )
        return user_ok and pass_ok

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API starting")
        if db is None:
            app.state.db = init_db(
                database_url=cfg.database_url, db_path=cfg.db_path
            )
            logger.info("DB initialized for API (db_path=%s)", cfg.db_path)
        else:
            app.state.db = db
            logger.info("DB injected for API")
        app.state.vouchers = _build_service(app.state.db, cfg)

        cleanup_task: asyncio.Task | None = None
        if cfg.cleanup_enabled:
            cleanup_task = asyncio.create_task(
                run_voucher_cleanup(
                    app.state.vouchers, interval_s=cfg.cleanup_interval_s
                )
            )
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                try:
                    await cleanup_task
                except asyncio.CancelledError:
                    pass
            logger.info("API stopping")

    app = FastAPI(title="Cash Vouchers Manager API", lifespan=lifespan)
    app.include_router(vouchers_router)

    if db is not None:
        app.state.db = db
        app.state.vouchers = _build_service(db, cfg)

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next) -> Response:
        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        if not _check_credentials(request):
            logger.warning(
                "Authentication failed for request to %s", request.url.path
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Unauthorized"},
                headers={"WWW-Authenticate": f'Basic realm="{AUTH_REALM}"'},
            )
        return await call_next(request)

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            logger.exception(
                "%s %s -> 500 (%.1fms)",
                request.method,
                request.url.path,
                elapsed_ms,
            )
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    return app
