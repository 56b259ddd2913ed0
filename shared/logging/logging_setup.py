"""Process-wide logging for the upload-and-ask service.

setup_logging() installs a console handler (optionally colored per message)
and a plain UTF-8 file handler, then returns the application logger wrapped
in a ColorLogger. Services never configure logging themselves; they receive
the logger through HelperConfig.get_logger().
"""

from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

LOG_FORMAT_FILE = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_FORMAT_CONSOLE = "%(asctime)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# loggers that only speak up in debug mode
NOISY_LOGGERS = ("httpx", "httpcore")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_ANSI_RESET = "\033[0m"
_ANSI_COLORS: dict[str, str] = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}

_LEVEL_PREFIX = {
    logging.CRITICAL: "⛔ ",
    logging.ERROR: "⛔ ",
    logging.WARNING: "⚠️ ",
}


def level_from_env() -> int:
    """Resolve LOG_LEVEL (debug, info, warning, error). Unknown values fall back to info."""
    return _LEVELS.get(os.getenv("LOG_LEVEL", "info").strip().lower(), logging.INFO)


class TimezoneFormatter(logging.Formatter):
    """Renders timestamps in the configured timezone and marks warnings and errors."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # third party loggers occasionally pass mismatched args
            message = str(record.msg)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ConsoleFormatter(TimezoneFormatter):
    """Wraps a line in ANSI color when the record was logged with color=<name>."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _ANSI_COLORS.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi and line else line


class ColorLogger:
    """
    Logger facade whose methods accept an optional color= keyword.

    Example:
        logger.info("Document %s processed", doc_id, color="green")

    Only the console handler renders the color; the log file stays plain.
    Any other attribute is looked up on the wrapped logging.Logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _log(self, level: int, msg, args, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.DEBUG, msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.INFO, msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.WARNING, msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.CRITICAL, msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, color, kwargs)

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        self._log(level, msg, args, color, kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def build_logging_config(log_file: str, tz_name: str, level: int) -> dict:
    """
    Build the dictConfig for the console and file handlers.

    Args:
        log_file (str): Path of the plain-text log file.
        tz_name (str): pytz timezone name used for timestamps.
        level (int): Level applied to the root logger and both handlers.

    Returns:
        dict: A logging.config.dictConfig compatible dictionary.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "file": {
                "()": TimezoneFormatter,
                "format": LOG_FORMAT_FILE,
                "datefmt": LOG_DATE_FORMAT,
                "tz_name": tz_name,
            },
            "console": {
                "()": ConsoleFormatter,
                "format": LOG_FORMAT_CONSOLE,
                "datefmt": LOG_DATE_FORMAT,
                "tz_name": tz_name,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "file",
                "level": level,
                "filename": log_file,
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    }


def setup_logging(logger_name: str = "uploadask") -> ColorLogger:
    """Install the handlers and return the application logger.

    Logs go to stdout and to $ROOT_DIR/logs/app.log (working directory if
    ROOT_DIR is unset), timestamped in $TIMEZONE.
    """
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)
    level = level_from_env()

    logging.config.dictConfig(
        build_logging_config(
            log_file=os.path.join(log_dir, "app.log"),
            tz_name=os.getenv("TIMEZONE", "Europe/Berlin"),
            level=level,
        )
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(logger_name))
