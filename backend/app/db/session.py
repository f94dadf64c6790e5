from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def create_db_engine(uri: str) -> Engine:
    connect_args = {}
    if uri.startswith("sqlite"):
        # Shared by threadpool workers; concurrent download counters wait on the write lock
        connect_args = {"check_same_thread": False, "timeout": 15}
    return create_engine(uri, pool_pre_ping=True, connect_args=connect_args)


engine = create_db_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
