import os
import time
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import OperationalError, DisconnectionError, TimeoutError as SQLTimeoutError
from dotenv import load_dotenv
from pathlib import Path

# Load .env file from project root
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")

IS_POSTGRES = DATABASE_URL.startswith("postgresql://") or DATABASE_URL.startswith("postgres://")

# Add connect_timeout to PostgreSQL URLs if not already present
# This prevents hanging when database is unreachable
if IS_POSTGRES and "connect_timeout" not in DATABASE_URL:
    separator = "&" if "?" in DATABASE_URL else "?"
    DATABASE_URL = f"{DATABASE_URL}{separator}connect_timeout=3"

if IS_POSTGRES:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=False,  # Disable pre-ping to avoid blocking on import
        pool_size=5,  # Matches the largest batch the orchestrator runs concurrently
        max_overflow=10,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_timeout=3,
        connect_args={
            "connect_timeout": 3,
        },
        echo=False,
    )
else:
    # SQLite (local development and tests); locations are processed from worker threads
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def check_database_connection(max_retries: int = 2, retry_delay: float = 0.5) -> bool:
    """
    Check if database connection is available.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Delay between retries in seconds

    Returns:
        True if connection is available, False otherwise
    """
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DisconnectionError, SQLTimeoutError) as e:
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
                continue
            logger.warning(f"[DB] Database connection check failed: {str(e)}")
            return False
    return False
