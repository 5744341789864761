"""
Data models for tool calling accuracy runs.

This module defines the Pydantic models shared by the scorer, the YAML
loader, result storage and reporting:

- ExpectedToolCall / LLMToolCall: the expectation and observation records
  that the scorer compares
- AccuracyTestCase: a prompt together with its expected tool calls
- ModelResponse / PromptResult / AccuracyResult: what an accuracy run
  persists per prompt and per model

Expected parameters may embed Matcher instances. They are kept as-is in
memory and serialised to a descriptive ``{"$matcher": ...}`` form when a
result is written to disk.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from .matcher import dump_match_spec


# =============================================================================
# Enumerations
# =============================================================================


class AccuracyRunStatus(str, Enum):
    """
    Lifecycle of an accuracy run.

    Attributes:
        IN_PROGRESS: Responses are still being recorded
        DONE: The run finished and can serve as a baseline
        FAILED: The run was aborted or its test suite crashed
    """
    IN_PROGRESS = "in-progress"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# Tool Call Models
# =============================================================================


class ExpectedToolCall(BaseModel):
    """
    A tool call the agent is expected to make for a prompt.

    Attributes:
        tool_name: Name of the expected tool
        parameters: Expectation tree; literals and matchers mix at any depth
        optional: If True, the call not being made does not lower the score

    Example:
        >>> ExpectedToolCall(
        ...     tool_name="find",
        ...     parameters={
        ...         "database": "mflix",
        ...         "collection": "movies",
        ...         "filter": Matcher.empty_object_or_undefined(),
        ...     },
        ... )
    """
    tool_name: str
    parameters: Any = Field(default_factory=dict)
    optional: bool = False

    model_config = {"extra": "forbid", "frozen": True}

    @field_serializer("parameters")
    def _serialize_parameters(self, parameters: Any) -> Any:
        return dump_match_spec(parameters)


class LLMToolCall(BaseModel):
    """
    A tool call the agent actually made, in invocation order.

    Attributes:
        tool_call_id: Identifier assigned by the model or the harness
        tool_name: Name of the invoked tool
        parameters: Plain JSON arguments, never containing matchers
    """
    tool_call_id: str
    tool_name: str
    parameters: Any = Field(default_factory=dict)

    model_config = {"extra": "forbid", "frozen": True}


class ToolCallPair(BaseModel):
    """An established pairing between an expected and an actual tool call."""

    expected_index: int
    actual_index: int
    score: float = Field(ge=0.0, le=1.0)

    model_config = {"frozen": True}


# =============================================================================
# Test Definition
# =============================================================================


class AccuracyTestCase(BaseModel):
    """
    A prompt and the tool calls that should solve it.

    Attributes:
        prompt: A single prompt or a list of prompts sent in sequence
        expected_tool_calls: Bare minimum calls needed to solve the prompt;
            confirmation calls the model may reasonably make can be listed
            with ``optional=True``
        system_prompt: Extra instructions appended to the agent's system prompt
    """
    prompt: str | list[str]
    expected_tool_calls: list[ExpectedToolCall] = Field(default_factory=list)
    system_prompt: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("prompt")
    @classmethod
    def _prompt_not_empty(cls, value: str | list[str]) -> str | list[str]:
        if not value:
            raise ValueError("prompt must not be empty")
        return value

    @property
    def description(self) -> str:
        """The prompt text used to identify this test in stored results."""
        if isinstance(self.prompt, str):
            return self.prompt
        return "\n---\n".join(self.prompt)


# =============================================================================
# Run Results
# =============================================================================


class TokensUsage(BaseModel):
    """Token usage reported by the model for one prompt."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ModelResponse(BaseModel):
    """
    One model's answer to one prompt, with its accuracy score.

    Attributes:
        provider: Model provider, e.g. "OpenAI"
        requested_model: Model name the run asked for
        responding_model: Model name the provider reported back
        llm_response_time: Wall time of the prompt in milliseconds
        tool_calling_accuracy: Score from calculate_tool_calling_accuracy
        llm_tool_calls: Tool calls made while answering
        tokens_used: Token usage, if the provider reports it
        text: Final text answer
        messages: Raw conversation messages
    """
    provider: str
    requested_model: str
    responding_model: str = ""
    llm_response_time: float = 0.0
    tool_calling_accuracy: float = Field(ge=0.0, le=1.0)
    llm_tool_calls: list[LLMToolCall] = Field(default_factory=list)
    tokens_used: TokensUsage = Field(default_factory=TokensUsage)
    text: str = ""
    messages: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def provider_model(self) -> str:
        return f"{self.provider} {self.requested_model}"


class PromptResult(BaseModel):
    """All model responses recorded for a single prompt."""

    prompt: str
    expected_tool_calls: list[ExpectedToolCall] = Field(default_factory=list)
    model_responses: list[ModelResponse] = Field(default_factory=list)


class AccuracyResult(BaseModel):
    """
    Everything recorded for one accuracy run of one commit.

    Attributes:
        run_id: Identifier of the run
        run_status: Current lifecycle status
        created_on: Creation time, milliseconds since the epoch
        commit_sha: Commit the run was executed against
        prompt_results: Per-prompt results
    """
    run_id: str
    run_status: AccuracyRunStatus = AccuracyRunStatus.IN_PROGRESS
    created_on: int
    commit_sha: str
    prompt_results: list[PromptResult] = Field(default_factory=list)

    def get_prompt_result(self, prompt: str) -> PromptResult | None:
        """Get the result for a prompt, if one was recorded."""
        for prompt_result in self.prompt_results:
            if prompt_result.prompt == prompt:
                return prompt_result
        return None
