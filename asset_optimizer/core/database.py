from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from asset_optimizer.core.config import settings

# 连接池配置（仅非 sqlite 场景启用）
_engine_kwargs = {
    "echo": settings.DEBUG,
    "pool_pre_ping": True,
}
if not settings.DATABASE_URL.startswith("sqlite"):
    _engine_kwargs.update(pool_size=10, max_overflow=20)


def enable_sqlite_savepoints(target_engine: Engine) -> Engine:
    """
    让 pysqlite 由 SQLAlchemy 自己发出 BEGIN，SAVEPOINT 才能按嵌套事务工作

    优化映射的写入依赖 SAVEPOINT 隔离主键冲突；非 sqlite 引擎原样返回。
    """
    if target_engine.dialect.name != "sqlite":
        return target_engine

    @event.listens_for(target_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, "begin")
    def _emit_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    return target_engine


# 发布流程是同步的：一次只处理一个资源，外部优化器调用会阻塞当前工作单元
engine = enable_sqlite_savepoints(create_engine(settings.DATABASE_URL, **_engine_kwargs))

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    以上下文管理器形式获取 Session，异常时回滚
    """
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
