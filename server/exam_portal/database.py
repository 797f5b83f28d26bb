"""
Database setup for the persisted key/value storage.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from exam_portal.config import settings


Base = declarative_base()


def create_db_engine(database_url: str):
    """Create an engine; SQLite connections are shared across threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create tables if they do not exist yet"""
    # Register models on the metadata before create_all
    from exam_portal.models import storage_entry  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
