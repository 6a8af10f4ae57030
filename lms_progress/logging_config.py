import contextvars
import logging
import logging.config

from lms_progress.config import LOG_LEVEL

# ==== Correlation / Request ID ====
request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIDFilter(logging.Filter):
    """Attach the current request id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get("-")
        return True


VERBOSE_FMT = (
    "[%(asctime)s] [%(levelname)s] [%(name)s] "
    "[req=%(request_id)s] %(message)s"
)
DATE_FMT = "%Y-%m-%d %H:%M:%S"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": RequestIDFilter},
    },
    "formatters": {
        "verbose": {"format": VERBOSE_FMT, "datefmt": DATE_FMT},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "verbose",
            "filters": ["request_id"],
        },
    },
    "loggers": {
        "lms_progress": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}


def configure_logging():
    logging.config.dictConfig(LOGGING)
