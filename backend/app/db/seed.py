from __future__ import annotations

import os

import structlog
from sqlalchemy import select

from backend.app.core.logging import configure_logging
from backend.app.core.security import hash_password
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import User
from backend.app.db.models.core_types import Role

logger = structlog.get_logger(__name__)


def run_seed():
    username = os.environ.get("ADMIN_USERNAME", "admin")
    email = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("ADMIN_PASSWORD")
    if not password:
        raise SystemExit("ADMIN_PASSWORD must be set to seed the first admin user")

    db = SessionLocal()
    try:
        user = db.scalar(select(User).where(User.email == email))
        if user:
            logger.info("seed.admin_exists", user_id=user.id, email=email)
            return

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=Role.admin,
        )
        db.add(user)
        db.commit()
        logger.info("seed.admin_created", user_id=user.id, email=email)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
