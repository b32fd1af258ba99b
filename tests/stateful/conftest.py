"""Shared fixtures for the stateful test suite."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from loguru import logger

from stateful.compiler.config_loader import clear_config_cache
from stateful.compiler.definition_loader import clear_definition_cache
from stateful.kernel.config import set_runtime_config
from stateful.kernel.context import set_current_actor
from stateful.kernel.logging import reset_logging


@pytest.fixture(autouse=True)
def reset_runtime() -> Iterator[None]:
    """Every test starts from default configuration and no ambient actor."""
    set_runtime_config(None)
    set_current_actor(None)
    yield
    set_runtime_config(None, apply_logging=False)
    set_current_actor(None)
    reset_logging()
    clear_config_cache()
    clear_definition_cache()


@pytest.fixture
def log_capture() -> Iterator[list[dict[str, Any]]]:
    """Capture loguru records emitted during the test, library records included."""
    captured: list[dict[str, Any]] = []

    def sink(message: Any) -> None:
        record = message.record
        captured.append(
            {
                "level": record["level"].name,
                "message": record["message"],
                "extra": dict(record["extra"]),
            }
        )

    logger.enable("stateful")
    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield captured
    logger.remove(handler_id)
    logger.disable("stateful")
