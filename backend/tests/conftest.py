from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import jobcrawler.models  # noqa: F401
from jobcrawler.database import Base


def make_engine(create: bool = True):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    if create:
        Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session():
    engine = make_engine()
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def empty_db_session():
    """Session on a database without tables, for fatal-path tests."""
    engine = make_engine(create=False)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
