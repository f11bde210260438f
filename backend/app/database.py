import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# purpose: engine and session factory for the mentorship store
# status: active
# depends_on: DATABASE_URL (postgres in production, sqlite for local runs and tests)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mentorship.db")
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# sqlite serializes writers; the timeout lets concurrent bookings queue instead of failing
connect_args = {"check_same_thread": False, "timeout": 30} if IS_SQLITE else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session; routes commit or roll back explicitly."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
