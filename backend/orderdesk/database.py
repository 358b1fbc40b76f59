"""Database engine, session factory and integrity-error classification."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings, get_settings

Base = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False)


class ConstraintViolation(Exception):
    """A write was rejected by a named database constraint."""

    def __init__(self, constraint: str):
        super().__init__(f"constraint violated: {constraint}")
        self.constraint = constraint


def init_engine(settings: Settings):
    """Create the engine for the configured database and bind the session factory."""
    engine_kwargs: dict = {"pool_pre_ping": True}
    if not settings.DATABASE_URL.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
    engine = create_engine(settings.DATABASE_URL, **engine_kwargs)
    SessionLocal.configure(bind=engine)
    return engine


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session."""
    if SessionLocal.kw.get("bind") is None:
        init_engine(get_settings())
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def constraint_name(exc: IntegrityError) -> str | None:
    """Return the violated constraint reported by the driver, if any."""
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


@contextmanager
def translate_integrity_errors() -> Iterator[None]:
    """Re-raise named constraint failures as ConstraintViolation.

    Integrity errors the driver cannot attribute to a constraint propagate as-is.
    """
    try:
        yield
    except IntegrityError as exc:
        name = constraint_name(exc)
        if not name:
            raise
        raise ConstraintViolation(name) from exc
