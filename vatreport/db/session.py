"""SQLAlchemy engine and session factory."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from vatreport.core.config import get_settings
from vatreport.models import Base
from vatreport.obs import instrument_sqlalchemy_engine

settings = get_settings()
engine = create_engine(settings.database_url, pool_pre_ping=True)
if settings.enable_tracing:
    instrument_sqlalchemy_engine(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_schema(bind: Engine | None = None) -> None:
    """Create every table known to the ORM metadata."""
    Base.metadata.create_all(bind=bind or engine)


__all__ = ["SessionLocal", "create_schema", "engine"]
