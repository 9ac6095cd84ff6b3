"""Logging configuration using structlog."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, clear_contextvars


def setup_logging(debug: bool = False) -> None:
    """Configure structlog for structured logging.

    Args:
        debug: If True, use colored console output. If False, use JSON for production.
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # DDL and row statements are logged by the services with their own context
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("alembic.runtime.migration").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Optional logger name.

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def bind_scope_context(
    tenant_id: str,
    project_id: str,
    entity_name: str | None = None,
) -> None:
    """Bind the data scope of the current operation to all subsequent log calls.

    Args:
        tenant_id: Owning tenant.
        project_id: Owning project.
        entity_name: Template name, when the operation targets a single entity.
    """
    bind_contextvars(tenant_id=tenant_id, project_id=project_id)
    if entity_name:
        bind_contextvars(entity_name=entity_name)


def clear_scope_context() -> None:
    """Clear all scope-bound context."""
    clear_contextvars()


@contextmanager
def scope_context(
    tenant_id: str,
    project_id: str,
    entity_name: str | None = None,
) -> Iterator[None]:
    """Bind the data scope for the duration of one engine operation.

    Previously bound values (e.g. a request id) are restored on exit.
    """
    values = {"tenant_id": tenant_id, "project_id": project_id}
    if entity_name:
        values["entity_name"] = entity_name
    with bound_contextvars(**values):
        yield
