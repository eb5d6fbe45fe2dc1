# storefront/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.utils.settings import DATABASE_URL, DB_POOL_TIMEOUT, DB_STATEMENT_TIMEOUT_MS


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # one shared connection, used by tests and local runs
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_timeout": DB_POOL_TIMEOUT,
        "connect_args": {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"},
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=True, expire_on_commit=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
