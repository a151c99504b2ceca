# apksure/db.py

import logging
from typing import Optional

from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, validates
from sqlalchemy.pool import StaticPool

from . import config

Base = declarative_base()

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)

    @validates("email")
    def _normalize(self, key, value):
        return normalize_email(value)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


def init_engine(url: Optional[str] = None) -> Engine:
    """
    Bind the session factory to the user store and create tables.
    In-memory SQLite gets a single shared connection so every session
    sees the same database.
    """
    global _engine
    url = url or config.DATABASE_URL

    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    _engine = create_engine(url, **kwargs)
    SessionLocal.configure(bind=_engine)
    Base.metadata.create_all(_engine)
    logging.info(f"User store ready at {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine


def get_db():
    # FastAPI dependency: one session per request
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
