"""
Structured logging setup.

Log lines go to stderr so they never interleave with command output on
stdout. Events are named in snake_case (``registry_saved``) with context as
keyword arguments.
"""

import logging
import sys

import structlog

from ledger.config import LedgerSettings, get_settings


_configured = False


def configure_logging(settings: LedgerSettings | None = None, force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return
    settings = settings or get_settings()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("ledger")
    root.handlers[:] = [handler]
    root.setLevel(settings.log_level)
    root.propagate = False

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str):
    configure_logging()
    return structlog.get_logger(name)
