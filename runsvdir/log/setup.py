import sys
import logging
from typing import Optional, Union

from runsvdir.local.config import effective_settings as config
from runsvdir.log.handler import LokiHandler

DEFAULT_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """The console formatter used for every supervisor log record."""

    def __init__(self) -> None:
        super().__init__(fmt=DEFAULT_FORMAT)


def resolve_level(level: Union[int, str, None]) -> int:
    """
    Turns a level name such as 'debug' or a number into a logging level.
    Unknown names fall back to INFO.
    """
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(console_level: Optional[Union[int, str]] = None) -> None:
    """
    Routes every supervisor log record to stderr and, when enabled, to Loki.
    Calling it again replaces the handlers instead of stacking new ones.

    :param console_level: Level or level name for stderr output. Defaults to
        DEBUG with VERBOSE_LOGGING, otherwise LOG_LEVEL.
    """
    if console_level is None:
        console_level = logging.DEBUG if config.VERBOSE_LOGGING else config.LOG_LEVEL

    root_logger = logging.getLogger()
    # Handlers do the filtering
    root_logger.setLevel(logging.DEBUG)

    # A replaced Loki handler still owns a sender thread and an HTTP session
    for handler in root_logger.handlers:
        if isinstance(handler, LokiHandler):
            handler.close()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(resolve_level(console_level))
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    if config.LOKI_ENABLED:
        try:
            loki_handler = LokiHandler(url=config.LOKI_URL, org_id=config.LOKI_ORG_ID)
            loki_handler.setLevel(logging.INFO)
            loki_handler.setFormatter(MainFormatter())
            root_logger.addHandler(loki_handler)
            root_logger.info(f"Shipping logs to Loki at {config.LOKI_URL}")
        except Exception as e:
            root_logger.error(f"Loki handler could not be created, continuing without it: {e}")
