"""
Logging setup and runtime verbosity control.

Records carry the trace id of the request that produced them, taken from a
context variable set by the request middleware.
"""

from contextvars import ContextVar
import logging
import sys

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [trace_id=%(trace_id)s] %(message)s"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

PACKAGE_LOGGER = "bmc_exporter"


class TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = trace_id_var.get()
        return True


def configure_logging(level: str = "INFO"):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TraceIdFilter())

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_verbosity() -> str:
    level = logging.getLogger(PACKAGE_LOGGER).getEffectiveLevel()
    for name, value in LEVELS.items():
        if value == level:
            return name
    return logging.getLevelName(level).lower()


def set_verbosity(name: str):
    if name not in LEVELS:
        raise ValueError(f"invalid verbosity {name!r}, expected one of {', '.join(LEVELS)}")
    logging.getLogger(PACKAGE_LOGGER).setLevel(LEVELS[name])
