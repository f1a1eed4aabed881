import logging
import sys

from loguru import logger

from app.core.config import settings


# Libraries that attach their own handlers; their records are sent to the root
# logger instead so they reach loguru exactly once.
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine")

_configured = False


class InterceptHandler(logging.Handler):
    """Routes stdlib log records (uvicorn, SQLAlchemy) into loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame.f_back and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging():
    """
    Installs the loguru sinks once per process: stderr plus a rotating file.
    SQL statements are only logged in debug mode.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(handlers=[InterceptHandler()],
                        level=settings.log_level, force=True)
    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = []
        routed.propagate = True
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING)

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="500 MB",
        compression="zip",
        level=settings.log_level,
        backtrace=True,
        diagnose=settings.debug,
        enqueue=True,
    )
    _configured = True
