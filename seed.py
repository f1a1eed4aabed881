from loguru import logger
from sqlmodel import Session

from app.core.config import settings
from app.services.account import AccountService
from app.services.ledger import Ledger


def seed_admin(session: Session, email: str, password: str):
    """Creates the admin account if it doesn't exist."""
    logger.info("--- Seeding Admin Account ---")

    if not email or not password:
        raise RuntimeError(
            "ADMIN_EMAIL and ADMIN_PASSWORD must be set to seed the admin account.")

    admin = AccountService(session).ensure_admin(email, password)
    logger.info(f"Admin account id: {admin.id}")
    return admin


def main():
    ledger = Ledger.from_url(settings.database_url)
    try:
        ledger.create_schema()

        with Session(ledger.engine) as session:
            try:
                seed_admin(session, settings.admin_email,
                           settings.admin_password)
                logger.info("Database seeding completed successfully.")
            except Exception as e:
                session.rollback()
                logger.error(f"Seeding failed: {e}")
                raise e
    finally:
        ledger.close()


if __name__ == "__main__":
    main()
