from dataclasses import dataclass
import logging
import os
from dotenv import load_dotenv


_LOG = logging.getLogger("config")


@dataclass
class Config:
    database_url: str = ""
    db_path: str = "CashVouchers.db"
    api_host: str = "127.0.0.1"
    api_port: int = 5000
    auth_username: str = ""
    auth_password: str = ""
    cleanup_enabled: bool = True
    cleanup_interval_s: float = 86400.0
    # 0 means retry forever when generating codes.
    code_max_attempts: int = 0


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    return v if v else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        _LOG.error("Invalid %s value: %r", name, raw)
        return default
    if value < 0:
        _LOG.error("Negative %s value: %r", name, raw)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        _LOG.error("Invalid %s value: %r", name, raw)
        return default
    if value <= 0:
        _LOG.error("Non-positive %s value: %r", name, raw)
        return default
    return value


def load_config() -> Config:
    # A local .env is optional; real environment variables win.
    load_dotenv(override=False)

    return Config(
        database_url=_env("DATABASE_URL"),
        db_path=_env("DB_PATH", "CashVouchers.db"),
        api_host=_env("API_HOST", "127.0.0.1"),
        api_port=_env_int("API_PORT", 5000),
        auth_username=os.getenv("AUTH_USERNAME", ""),
        auth_password=os.getenv("AUTH_PASSWORD", ""),
        cleanup_enabled=_env("CLEANUP_ENABLED", "1").lower()
        not in {"0", "false", "no", "off"},
        cleanup_interval_s=_env_float("CLEANUP_INTERVAL_S", 86400.0),
        code_max_attempts=_env_int("CODE_MAX_ATTEMPTS", 0),
    )
