"""Logging of the search API and the index runner.

Console and file handlers share one format with timestamps in TIMEZONE. The
console output can be colored per message through ColorLogger, e.g.
``logger.info("Indexing finished", color="green")``.
"""

import logging
import logging.config
import os
from datetime import datetime

from pytz import timezone

LOGGER_NAME = "globalsearch"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ANSI_RESET = "\033[0m"
ANSI_COLORS: dict[str, str] = {
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "magenta": "\033[35m",
    "blue": "\033[34m",
    "white": "\033[37m",
}

LEVEL_PREFIXES: dict[int, str] = {
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
    logging.WARNING: "⚠️ ",
}


def get_log_level() -> int:
    return logging.DEBUG if os.getenv("LOG_LEVEL", "info").lower() == "debug" else logging.INFO


class HealthcheckFilter(logging.Filter):
    """Drops the uvicorn access lines of the /healthz check."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("uvicorn.access"):
            return True
        return "/healthz" not in record.getMessage()


class TimezoneFormatter(logging.Formatter):
    """Formats times in the configured timezone and prefixes warnings and errors."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        created = datetime.fromtimestamp(record.created, self.tz)
        return created.strftime(datefmt) if datefmt else created.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # mismatching format args, keep the raw message
            message = str(record.msg)
        record.msg = LEVEL_PREFIXES.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(TimezoneFormatter):
    """Console formatter applying the ``color`` attribute set by ColorLogger."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = ANSI_COLORS.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{ANSI_RESET}" if ansi and line else line


class ColorLogger:
    """Logger wrapper accepting ``color=<name>`` on every log call.

    Colors only reach the console handler, the log file stays plain. Every
    other attribute is delegated to the wrapped logger.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        # stacklevel points the record at the caller instead of this wrapper
        kwargs.setdefault("stacklevel", 2)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.DEBUG, msg, *args, color=color, stacklevel=3, **kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.INFO, msg, *args, color=color, stacklevel=3, **kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.WARNING, msg, *args, color=color, stacklevel=3, **kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.ERROR, msg, *args, color=color, stacklevel=3, **kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.CRITICAL, msg, *args, color=color, stacklevel=3, **kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self.log(logging.ERROR, msg, *args, color=color, stacklevel=3, exc_info=True, **kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def _build_config(log_file: str, tz_name: str, level: int) -> dict:
    formatter = {"format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": TimezoneFormatter, **formatter},
            "colored": {"()": ColoredFormatter, **formatter},
        },
        "filters": {
            "healthcheck": {"()": HealthcheckFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "filters": ["healthcheck"],
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filters": ["healthcheck"],
                "level": level,
                "filename": log_file,
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    }


def setup_logging(log_name: str = "search.log") -> ColorLogger:
    """Configures the root logger and returns the application logger.

    The log file is written to <ROOT_DIR>/logs, ROOT_DIR defaults to the working directory.
    """
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)

    level = get_log_level()
    logging.config.dictConfig(_build_config(os.path.join(log_dir, log_name), os.getenv("TIMEZONE", "Europe/Berlin"), level))

    # one request per update batch, too chatty below debug
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
