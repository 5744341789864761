"""
Pytest configuration for tool calling accuracy tests.

Provides a session logger, temporary result storage and helpers for
building tool calls.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from tool_accuracy.models import ExpectedToolCall, LLMToolCall, ModelResponse, TokensUsage
from tool_accuracy.storage import DiskResultStorage


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session")
def test_logger() -> logging.Logger:
    """Session-scoped logger fixture."""
    logger = logging.getLogger("tool_accuracy_test")
    logger.setLevel(logging.DEBUG)

    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# Tool Call Builders
# =============================================================================


@pytest.fixture
def expected() -> Callable[..., ExpectedToolCall]:
    """Build an ExpectedToolCall: expected("find", {"db": "test"}, optional=True)."""

    def build(tool_name: str, parameters: Any = None, optional: bool = False) -> ExpectedToolCall:
        return ExpectedToolCall(
            tool_name=tool_name,
            parameters={} if parameters is None else parameters,
            optional=optional,
        )

    return build


@pytest.fixture
def actual() -> Callable[..., LLMToolCall]:
    """Build LLMToolCalls with sequential ids."""
    counter = {"next": 1}

    def build(tool_name: str, parameters: Any = None) -> LLMToolCall:
        call = LLMToolCall(
            tool_call_id=str(counter["next"]),
            tool_name=tool_name,
            parameters={} if parameters is None else parameters,
        )
        counter["next"] += 1
        return call

    return build


def make_model_response(
    accuracy: float,
    provider: str = "OpenAI",
    model: str = "gpt-4o",
    tool_calls: list[LLMToolCall] | None = None,
) -> ModelResponse:
    return ModelResponse(
        provider=provider,
        requested_model=model,
        responding_model=model,
        llm_response_time=1234.5,
        tool_calling_accuracy=accuracy,
        llm_tool_calls=tool_calls or [],
        tokens_used=TokensUsage(prompt_tokens=100, completion_tokens=20, total_tokens=120),
        text="Done.",
        messages=[{"role": "user", "content": "hello"}],
    )


@pytest.fixture
def model_response() -> Callable[..., ModelResponse]:
    return make_model_response


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def results_dir(tmp_path: Path) -> Path:
    return tmp_path / "results"


@pytest.fixture
def storage(results_dir: Path) -> DiskResultStorage:
    """Disk storage in a temporary directory with fast lock retries."""
    disk_storage = DiskResultStorage(results_dir, lock_retries=3, lock_retry_delay_s=0.01)
    yield disk_storage
    disk_storage.close()
