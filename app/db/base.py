"""
Database session and base configuration.
"""
from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.core.config import settings

if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite: share one connection for in-memory databases
    sqlite_options = {"connect_args": {"check_same_thread": False}}
    if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        sqlite_options["poolclass"] = StaticPool
    engine = create_engine(settings.DATABASE_URL, **sqlite_options)
elif settings.ENV == "production":
    # Production: no connection pooling, strict statement timeout
    engine = create_engine(
        settings.DATABASE_URL,
        poolclass=NullPool,
        pool_pre_ping=True,
        connect_args={
            "options": "-c statement_timeout=30000"  # 30s timeout
        }
    )
else:
    # Development: Use small pool
    engine = create_engine(
        settings.DATABASE_URL,
        pool_size=5,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=3600
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
