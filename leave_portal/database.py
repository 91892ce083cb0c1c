"""
Database engine and session factory for the local key-value store.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from leave_portal.config import settings

Base = declarative_base()


def build_engine(database_url: str = None, echo: bool = None) -> Engine:
    """
    建立資料庫引擎。

    Args:
        database_url: 資料庫 URL（預設使用設定值）
        echo: 是否輸出 SQL

    Returns:
        SQLAlchemy 引擎
    """
    url = database_url or settings.database_url
    if echo is None:
        echo = settings.DATABASE_ECHO

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # 記憶體資料庫必須共用同一連線
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = None) -> None:
    """建立所有資料表"""
    # 匯入模型以註冊資料表
    from leave_portal.models import storage  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
