from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import settings


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if "sqlite" in url else {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def create_tables(bind=None):
    """Create all tables"""
    from ..models.credentials import CredentialNamespace  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def create_session_factory(url: str = "sqlite://") -> sessionmaker:
    """
    Build an isolated engine and session factory with the tables created

    The default URL is a private in-memory SQLite database shared across
    connections, used by tests and throwaway runs.
    """
    kwargs = {"connect_args": _connect_args(url)}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    isolated_engine = create_engine(url, **kwargs)
    create_tables(bind=isolated_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=isolated_engine)
