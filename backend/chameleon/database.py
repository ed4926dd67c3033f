from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from chameleon.config import settings


def build_engine(database_url: str):
    # Disable the thread check for SQLite; in-memory databases must share a single connection
    # SQLiteではスレッドチェックを無効化し、インメモリDBは単一の接続を共有させる
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# Engine and session factory for the configured store
# 設定されたストア用のエンジンとセッションファクトリ
engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)

# Declarative base shared by models
# モデルで共有するベースクラス
Base = declarative_base()
