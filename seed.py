"""
Create (or reset) the store admin from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME.

Catalog data is left alone; categories and products are added through the
admin panel.

    python seed.py
"""

import logging

import auth
import config
import database

logger = logging.getLogger(__name__)


def seed_admin(email: str = config.ADMIN_EMAIL, password: str = config.ADMIN_PASSWORD, name: str = config.ADMIN_NAME) -> str:
    existing = auth.find_admin_by_email(email)
    if existing:
        auth.set_password(existing["_id"], password)
        logger.info("Admin %s already existed, password reset", existing["email"])
        return str(existing["_id"])
    admin_id = auth.create_admin(email, password, name)
    logger.info("Admin %s created", email.lower())
    return admin_id


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if database.db is None:
        raise SystemExit("Database not configured. Set DATABASE_URL and DATABASE_NAME.")
    database.ping(database.db)
    database.ensure_indexes(database.db)
    seed_admin()
    logger.info("Seeding completed. Login with %s", config.ADMIN_EMAIL)
