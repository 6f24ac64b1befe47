from __future__ import annotations

import os
import time
import logging
import subprocess
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

from ghgi.core.config import settings
from ghgi.core.log import configure_logging

logger = logging.getLogger("ghgi.migrate")


def wait_for_db(engine, timeout_s: int = 60) -> None:
    """Wait until the database is accepting connections."""
    start = time.time()
    delay = 1.0

    while True:
        try:
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if time.time() - start > timeout_s:
                raise
            logger.info("database not ready, retrying in %.1fs", delay)
            time.sleep(delay)
            delay = min(delay * 1.5, 5.0)


def run(cmd: list[str]) -> int:
    p = subprocess.run(cmd, check=False)
    return p.returncode


def seed_admin() -> None:
    """Create the default admin once (idempotent)."""
    from sqlalchemy.orm import Session
    from ghgi.db.session import SessionLocal
    from ghgi.db.models.user import User, Role
    from ghgi.core.security import hash_password

    db: Session = SessionLocal()
    try:
        exists = db.query(User).filter(User.username == settings.DEFAULT_ADMIN_USERNAME).first()
        if not exists:
            db.add(
                User(
                    full_name=settings.DEFAULT_ADMIN_FULL_NAME,
                    username=settings.DEFAULT_ADMIN_USERNAME,
                    password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
                    role=Role.ADMIN,
                    is_active=True,
                )
            )
            db.commit()
            logger.info("default admin %r created", settings.DEFAULT_ADMIN_USERNAME)
    finally:
        db.close()


def main() -> int:
    configure_logging()
    dsn = os.getenv("DATABASE_DSN") or settings.DATABASE_DSN
    engine = create_engine(dsn, future=True, pool_pre_ping=True)

    # Wait for DB readiness (important in docker-compose)
    wait_for_db(engine, timeout_s=int(os.getenv("DB_WAIT_TIMEOUT", "90")))

    tables = set(inspect(engine).get_table_names())

    # Run alembic
    if "alembic_version" not in tables and "form_types" in tables:
        # Existing schema without alembic tracking: stamp head
        rc = run(["alembic", "stamp", "head"])
    else:
        rc = run(["alembic", "upgrade", "head"])
    if rc != 0:
        # Fail fast so the schema doesn't drift from alembic_version.
        logger.error("alembic exited with %s", rc)
        return rc

    if settings.AUTO_CREATE_ADMIN:
        seed_admin()

    # Seed sample forms (idempotent)
    if settings.AUTO_SEED_SAMPLE:
        from sqlalchemy.orm import Session
        from ghgi.db.session import SessionLocal
        from ghgi.scripts.seed_sample import seed_sample

        db2: Session = SessionLocal()
        try:
            seed_sample(db2)
        finally:
            db2.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
