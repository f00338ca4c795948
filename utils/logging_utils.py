"""
Logging setup shared by the routewind server and its background fetch threads.

Entrypoints call setup_logging() once; modules ask for a tagged logger:

    from utils.logging_utils import get_tagged_logger

    logger = get_tagged_logger(__name__, tag="wind_service")
    logger.debug("Fetching wind forecast", extra={"key": "43.6500,-79.4000"})

Records carry `job_name`, `tag` and the thread name, so lines produced by the
fetch pool workers can be told apart from request handlers.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Mapping, MutableMapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

BOOTSTRAP_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Used until setup_logging() replaces it.
logging.basicConfig(level=logging.INFO, format=BOOTSTRAP_FORMAT, datefmt=DATE_FORMAT)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(job_name)s | %(tag)s | %(threadName)s | %(message)s"

# Every pooled Open-Meteo request would otherwise log a connection line.
QUIET_LOGGERS: Mapping[str, str] = {
    "urllib3": "WARNING",
    "uvicorn.access": "WARNING",
}

SECRET_QUERY_TOKENS = ("apikey", "api_key", "token", "secret", "key")

_CONFIGURED = False


class MaxLevelFilter(logging.Filter):
    """Pass only records at or below `max_level`."""

    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.levelno <= self.max_level


class RecordFieldsFilter(logging.Filter):
    """
    Fill in the `job_name` and `tag` fields the formatter expects.

    Third-party loggers (uvicorn, urllib3) never set a tag, so they get the
    last segment of their logger name instead.
    """

    def __init__(self, job_name: Optional[str] = None) -> None:
        super().__init__()
        self.job_name = job_name or "-"

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "job_name"):
            record.job_name = self.job_name
        if not hasattr(record, "tag"):
            record.tag = record.name.rsplit(".", 1)[-1] if record.name else "-"
        return True


class TaggedLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps call-site `extra` fields next to its tag."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        kwargs["extra"] = {**(kwargs.get("extra") or {}), **self.extra}
        return msg, kwargs


def build_logging_config(
    *,
    level: str | int = "INFO",
    job_name: Optional[str] = None,
    quiet_loggers: Mapping[str, str] = QUIET_LOGGERS,
) -> Mapping[str, Any]:
    """
    Return a dictConfig mapping: DEBUG/INFO to stdout, WARNING and above to stderr.

    `quiet_loggers` maps logger names to the minimum level they may emit.
    """
    handler_filters = ["record_fields"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "record_fields": {"()": RecordFieldsFilter, "job_name": job_name},
            "below_warning": {"()": MaxLevelFilter, "max_level": logging.INFO},
        },
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": handler_filters + ["below_warning"],
                "level": "DEBUG",
                "stream": "ext://sys.stdout",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": handler_filters,
                "level": "WARNING",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {name: {"level": lvl} for name, lvl in quiet_loggers.items()},
        "root": {"level": level, "handlers": ["stdout", "stderr"]},
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    job_name: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """Apply build_logging_config() once per process (again with override_existing)."""
    global _CONFIGURED

    if _CONFIGURED and not override_existing:
        return

    logging.config.dictConfig(build_logging_config(level=level, job_name=job_name))
    _CONFIGURED = True


def get_tagged_logger(name: str, *, tag: Optional[str] = None) -> TaggedLoggerAdapter:
    """
    Logger for `name` whose records carry `tag`.

    `tag` defaults to the last dotted segment of `name`, e.g.
    "routewind.wind_service" -> "wind_service".
    """
    if tag is None:
        tag = name.rsplit(".", 1)[-1]
    return TaggedLoggerAdapter(logging.getLogger(name), {"tag": tag})


def mask_url_secrets(url: str) -> str:
    """Return `url` with credential-like query parameters replaced by ***.

    Examples
    --------
    - https://customer-api.open-meteo.com/v1/forecast?latitude=1&apikey=abc
      -> https://customer-api.open-meteo.com/v1/forecast?latitude=1&apikey=***
    - https://api.open-meteo.com/v1/elevation?latitude=1 -> unchanged
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if not parsed.query:
        return url

    pairs = [
        (key, "***" if any(token in key.lower() for token in SECRET_QUERY_TOKENS) else value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    return urlunparse(parsed._replace(query=urlencode(pairs, safe="*,")))
