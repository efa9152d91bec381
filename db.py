from dataclasses import dataclass
from pathlib import Path
import os
import sys

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase


def app_root_dir() -> Path:
    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        return exe_dir.parent
    return Path(__file__).resolve().parent


def resolve_db_path(root_dir: Path) -> Path:
    custom_path = os.getenv("APP_DB_PATH")
    if not custom_path:
        data_dir = root_dir / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / "tools.db"

    db_path = Path(custom_path).expanduser()
    if not db_path.is_absolute():
        db_path = (root_dir / db_path).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def resolve_upload_dir(root_dir: Path) -> Path:
    custom_dir = os.getenv("APP_UPLOAD_DIR")
    if not custom_dir:
        return root_dir / "uploads"

    upload_dir = Path(custom_dir).expanduser()
    if not upload_dir.is_absolute():
        upload_dir = (root_dir / upload_dir).resolve()
    return upload_dir


@dataclass(frozen=True)
class Settings:
    database_url: str
    upload_dir: Path
    log_level: str = "INFO"
    search_config: str = "simple"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith(("postgresql", "postgres"))


def load_settings() -> Settings:
    root_dir = app_root_dir()
    database_url = os.getenv("APP_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{resolve_db_path(root_dir).as_posix()}"

    return Settings(
        database_url=database_url,
        upload_dir=resolve_upload_dir(root_dir),
        log_level=os.getenv("APP_LOG_LEVEL", "INFO").upper(),
        search_config=os.getenv("APP_SEARCH_CONFIG", "simple"),
        pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
        pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE_SEC", "1800")),
    )


def create_sqlite_engine(database_url: str) -> Engine:
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # WAL for concurrent readers; foreign keys for ON DELETE SET NULL
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_postgres_engine(settings: Settings) -> Engine:
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )


class Base(DeclarativeBase):
    pass
