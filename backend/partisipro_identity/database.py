"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from partisipro_identity.config import get_settings

settings = get_settings()

engine_options = {"echo": settings.DEBUG}

if settings.DATABASE_URL.startswith("sqlite"):
    engine_options["connect_args"] = {"check_same_thread": False}  # Required for SQLite

    if ":memory:" in settings.DATABASE_URL:
        # One shared connection, otherwise every thread sees an empty database
        engine_options["poolclass"] = StaticPool
    else:
        # Ensure data directory exists
        db_dir = os.path.dirname(settings.DATABASE_URL.replace("sqlite:///", ""))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

engine = create_engine(settings.DATABASE_URL, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables. Called once at application startup."""
    from partisipro_identity.models import topic as _topic_model        # noqa: F401
    from partisipro_identity.models import issuer as _issuer_model      # noqa: F401
    from partisipro_identity.models import identity as _identity_model  # noqa: F401
    from partisipro_identity.models import claim as _claim_model        # noqa: F401
    from partisipro_identity.models import audit as _audit_model        # noqa: F401

    Base.metadata.create_all(bind=engine)
