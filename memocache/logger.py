"""structlog setup for memocache.

Lines look like::

    INFO:     [host:1234] cache provider=fs cache_event=hit duration_ms=0.41

With ``DEBUG=true`` the emitting call site is added as ``[module.func:line]``.
"""

import logging
import os
import socket
import sys
from typing import Any

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder

from memocache.config import settings

_ORIGIN = f"{socket.gethostname()}:{os.getpid()}"

_CALLSITE = CallsiteParameterAdder(
    parameters=[
        CallsiteParameter.MODULE,
        CallsiteParameter.FUNC_NAME,
        CallsiteParameter.LINENO,
    ],
    # log_cache_event is a helper; report the provider or engine that called it.
    additional_ignores=["memocache.cache.logging"],
)


def _render(logger: Any, method_name: str, event_dict: dict) -> str:
    level = event_dict.pop("level", method_name).upper()
    event = event_dict.pop("event", "")
    module = event_dict.pop("module", None)
    func_name = event_dict.pop("func_name", None)
    lineno = event_dict.pop("lineno", None)

    parts = [f"{level}:     [{_ORIGIN}]"]
    if module:
        parts.append(f"[{module}.{func_name}:{lineno}]")
    parts.append(str(event))
    parts.extend(f"{key}={value}" for key, value in event_dict.items())
    return " ".join(parts)


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Looked up per logger so a replaced sys.stderr is honoured.
    return structlog.PrintLogger(sys.stderr)


def setup_logging(*, to_stderr: bool = False) -> None:
    """
    Configure structlog once per process.

    Args:
        to_stderr: Send log lines to stderr, keeping stdout for command output.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if settings.debug:
        processors.append(_CALLSITE)
    processors.append(_render)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if settings.debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=_stderr_logger if to_stderr else structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
