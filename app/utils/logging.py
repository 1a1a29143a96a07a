import inspect
import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Forward standard logging records (uvicorn, sqlalchemy) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller from where the logged message originated
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_file: str, *, level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        f"logs/{log_file}", level=level, rotation="1 week", retention="1 month", encoding="utf-8"
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
