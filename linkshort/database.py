import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Explicitly load .env from project root (parent of linkshort/)
ENV_PATH = Path(__file__).parent.parent / ".env"
load_dotenv(ENV_PATH)
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

DEV_DB_PATH = Path(__file__).parent.parent / "linkshort_dev.db"

Base = declarative_base()


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if ENVIRONMENT == "prod":
        raise RuntimeError("DATABASE_URL must be set in production")
    # SQLite for local dev, stored next to the package folder
    return f"sqlite:///{DEV_DB_PATH}"


def normalize_url(raw_url: str) -> URL:
    # Hosted providers hand out postgres://, which SQLAlchemy no longer accepts
    if raw_url.startswith("postgres://"):
        raw_url = "postgresql://" + raw_url[len("postgres://"):]
    url = make_url(raw_url)
    # Bare postgresql:// picks whatever driver the SQLAlchemy release defaults to
    if url.drivername == "postgresql":
        url = url.set(drivername="postgresql+psycopg2")
    return url


def engine_options(url: URL) -> dict:
    if url.get_backend_name() == "sqlite":
        options = {"connect_args": {"check_same_thread": False}}  # needed for SQLite + FastAPI
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every session sees an empty db
            options["poolclass"] = StaticPool
        return options

    connect_args = {}
    if url.get_backend_name() == "postgresql" and "sslmode" not in url.query:
        connect_args["sslmode"] = os.getenv("DATABASE_SSLMODE", "verify-full")
    return {
        "connect_args": connect_args,
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


def make_engine(database_url: str | None = None) -> Engine:
    url = normalize_url(database_url or get_database_url())
    return create_engine(url, **engine_options(url))


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create the links table if it does not exist yet. Safe to call repeatedly."""
    from . import models  # noqa: F401  registers the table on Base.metadata

    Base.metadata.create_all(bind=engine)
