"""Tests for structured logging context."""

import pytest
import structlog

from src.baas.core.logging import (
    bind_scope_context,
    clear_scope_context,
    get_logger,
    scope_context,
    setup_logging,
)

pytestmark = pytest.mark.unit


def test_bind_scope_context(capturing_logger):
    """Test binding tenant and project to log context."""
    bind_scope_context("acme", "main")
    logger = structlog.get_logger()
    logger.info("test message")

    entries = capturing_logger.calls
    assert len(entries) == 1
    assert entries[0].kwargs["tenant_id"] == "acme"
    assert entries[0].kwargs["project_id"] == "main"
    assert "entity_name" not in entries[0].kwargs


def test_bind_scope_context_with_entity(capturing_logger):
    bind_scope_context("acme", "main", "orders")
    get_logger(__name__).info("test message")

    entries = capturing_logger.calls
    assert entries[0].kwargs["entity_name"] == "orders"


def test_clear_scope_context(capturing_logger):
    """Test clearing scope context."""
    bind_scope_context("acme", "main", "orders")
    clear_scope_context()

    structlog.get_logger().info("test message")
    entries = capturing_logger.calls
    assert len(entries) == 1
    assert "tenant_id" not in entries[0].kwargs
    assert "entity_name" not in entries[0].kwargs


def test_scope_context_restores_outer_context(capturing_logger):
    """Values bound before the block survive it; scope values do not leak out."""
    structlog.contextvars.bind_contextvars(request_id="req-1")
    logger = structlog.get_logger()

    with scope_context("acme", "main", "orders"):
        logger.info("inside")
    logger.info("outside")

    inside, outside = capturing_logger.calls
    assert inside.kwargs["request_id"] == "req-1"
    assert inside.kwargs["entity_name"] == "orders"
    assert outside.kwargs["request_id"] == "req-1"
    assert "tenant_id" not in outside.kwargs


def test_scope_context_unwinds_on_error(capturing_logger):
    with pytest.raises(RuntimeError):
        with scope_context("acme", "main"):
            raise RuntimeError("boom")

    structlog.get_logger().info("after")
    assert "tenant_id" not in capturing_logger.calls[0].kwargs


def test_setup_logging_configures_structlog():
    old_config = structlog.get_config()
    try:
        setup_logging(debug=False)
        config = structlog.get_config()
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger
        assert isinstance(config["processors"][-1], structlog.processors.JSONRenderer)
    finally:
        structlog.configure(**old_config)
