"""Wizard session id on every log record.

One booking attempt spans the wizard and several gateways, often with
overlapping availability fetches. The session id lives in a ContextVar so
each record can be tied back to the client journey that produced it.

Usage:
    from blyss_booking.logging_context import get_session_logger, set_session_id

    set_session_id("WIZ-abc123")
    logger = get_session_logger(__name__)
    logger.info("Reservation created")  # record.session_id == "WIZ-abc123"
"""

import logging
from contextvars import ContextVar
from typing import Optional

NO_SESSION = "-"

SESSION_LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def set_session_id(session_id: str) -> None:
    """Bind the wizard session id to the current async context."""
    _session_id.set(session_id)


def get_session_id() -> str:
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Stamps ``session_id`` on records that do not carry one yet."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def _has_session_filter(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, SessionIdFilter) for f in filterer.filters)


def install_session_filter(handler: Optional[logging.Handler] = None) -> None:
    """Attach a SessionIdFilter to ``handler``, or to every root handler.

    Handler-level filters see records from every logger, so
    ``SESSION_LOG_FORMAT`` is safe to use even for third-party loggers
    such as ``httpx``.
    """
    handlers = [handler] if handler is not None else logging.getLogger().handlers
    for h in handlers:
        if not _has_session_filter(h):
            h.addFilter(SessionIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    """Return the module logger with a SessionIdFilter attached."""
    logger = logging.getLogger(name)
    if not _has_session_filter(logger):
        logger.addFilter(SessionIdFilter())
    return logger
