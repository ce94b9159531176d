from __future__ import annotations

import os

from sqlalchemy import MetaData, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

_DEFAULT_URL = "sqlite:///./quiz.db"


def normalize_database_url(url: str) -> str:
    """Accept the legacy postgres:// scheme and pin Postgres URLs to psycopg 3."""
    url = url.strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # request handlers run in the threadpool; the pool hands connections across threads
        return {"connect_args": {"check_same_thread": False}}
    # a draw holds one session for the catalog and one for the rotation record
    return {"pool_size": 5, "max_overflow": 5}


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL") or _DEFAULT_URL)

# constraint/index names must match between SQLite (tests) and Postgres (Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


engine = create_engine(DATABASE_URL, pool_pre_ping=True, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
