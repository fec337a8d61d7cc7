import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

from cash_vouchers.db_sa import build_database_url

logger = logging.getLogger("migrations")


def upgrade_head(*, database_url: str = "", db_path: str = "CashVouchers.db") -> None:
    """Run `alembic upgrade head` using cash_vouchers/alembic.ini."""
    pkg_dir = Path(__file__).resolve().parent
    root = pkg_dir.parent
    ini_path = pkg_dir / "alembic.ini"
    if not ini_path.exists():
        raise RuntimeError(f"alembic.ini not found at {ini_path}")

    alembic_cfg = AlembicConfig(str(ini_path))
    # Ensure `import cash_vouchers.*` works regardless of CWD.
    alembic_cfg.set_main_option("prepend_sys_path", str(root))
    alembic_cfg.set_main_option("script_location", str(pkg_dir / "alembic"))
    alembic_cfg.attributes["database_url"] = build_database_url(
        database_url, db_path
    )

    logger.info("Running alembic upgrade head")
    command.upgrade(alembic_cfg, "head")
    logger.info("Alembic upgrade complete")
