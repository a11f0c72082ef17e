import logging
import sys

from loguru import logger

from asset_optimizer.core.config import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[component]} {name}:{line} - {message}"

logger.configure(extra={"component": "asset_optimizer"})


class InterceptHandler(logging.Handler):
    """把 SQLAlchemy / alembic 的标准库日志转交给 loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(component=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _stdlib_levels() -> dict[str, int]:
    # SQL 语句只在 DEBUG 下输出；迁移进度始终保留
    return {
        "sqlalchemy.engine": logging.INFO if settings.DEBUG else logging.WARNING,
        "sqlalchemy.pool": logging.WARNING,
        "alembic": logging.INFO,
    }


def setup_logging(level: str | None = None):
    """
    初始化日志：控制台 sink、可选的文件 sink，并接管标准库 logging

    在宿主进程启动时调用一次；level 为空时使用 settings.LOG_LEVEL。
    """
    level = level or settings.LOG_LEVEL
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=_CONSOLE_FORMAT,
        serialize=settings.LOG_JSON_FORMAT,
        enqueue=settings.LOG_ASYNC,
        backtrace=True,
        diagnose=settings.DEBUG,
    )

    if settings.LOG_FILE_PATH:
        logger.add(
            settings.LOG_FILE_PATH,
            level=level,
            format=_FILE_FORMAT,
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            compression="zip",
            encoding="utf-8",
            enqueue=settings.LOG_ASYNC,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, stdlib_level in _stdlib_levels().items():
        logging.getLogger(name).setLevel(stdlib_level)

    return logger
