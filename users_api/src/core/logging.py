from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union
from uuid import UUID

# Request-scoped values stamped onto every log record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | user=%(user_id)s | "
    "%(message)s"
)

# Driver loggers that emit one line per statement at DEBUG
_CHATTY_LOGGERS = ("aiosqlite", "asyncio")


class LoggingContextFilter(logging.Filter):
    """
    Copies the request correlation id and the user id being operated on into
    each record. Records outside a request get "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


# PUBLIC_INTERFACE
@contextmanager
def request_context(correlation_id: str) -> Iterator[str]:
    """Scope the correlation id to one request and start with no user bound."""
    token_corr = correlation_id_var.set(correlation_id)
    token_user = user_id_var.set(None)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token_corr)
        user_id_var.reset(token_user)


# PUBLIC_INTERFACE
def bind_user(user_id: Union[UUID, str]) -> None:
    """Tag the rest of the current request's log lines with this user id."""
    user_id_var.set(str(user_id))


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Install a single stdout handler on the root logger with the context filter."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    if root.getEffectiveLevel() <= logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)
