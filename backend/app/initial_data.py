import logging
import os

from app.core.logging import setup_logging
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app import crud, schemas

setup_logging(logging.INFO)
logger = logging.getLogger(__name__)

def init() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = os.getenv("FIRST_USER_EMAIL", "admin@example.com")
        user = crud.user.get_by_email(db, email=email)
        if not user:
            user_in = schemas.UserCreate(
                username="admin",
                email=email,
                password=os.getenv("FIRST_USER_PASSWORD", "adminpassword"), # Change this in production!
            )
            crud.user.create(db, obj_in=user_in)
            logger.info("Initial user %s created", email)
        else:
            logger.info("Initial user already exists")
    finally:
        db.close()

if __name__ == "__main__":
    logger.info("Creating initial data")
    init()
    logger.info("Initial data created")
