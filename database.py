# database.py
import logging

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import config
import models  # noqa: F401

logger = logging.getLogger("database")


def make_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False, pool_pre_ping=True)


engine = make_engine(config.DATABASE_URL)


def init_db(bind=None):
    SQLModel.metadata.create_all(bind or engine)
    logger.info("📦 Database tables created.")


def get_session():
    with Session(engine) as session:
        yield session
