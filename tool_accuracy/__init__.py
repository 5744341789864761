"""Tool calling accuracy scoring for LLM agents.

This package provides:
- Matchers for describing expected tool call parameters
- The tool calling accuracy scorer
- A YAML loader for accuracy test cases
- Disk storage for accuracy run results
- Run summaries with baseline comparison
"""

from .matcher import MISSING, Matcher, dump_match_spec
from .models import (
    AccuracyResult,
    AccuracyRunStatus,
    AccuracyTestCase,
    ExpectedToolCall,
    LLMToolCall,
    ModelResponse,
    PromptResult,
    TokensUsage,
    ToolCallPair,
)
from .scorer import (
    CustomScorer,
    calculate_tool_calling_accuracy,
    find_best_match,
    pair_tool_calls,
    score_accuracy_test,
)
from .loader import (
    load_accuracy_tests_from_directory,
    load_accuracy_tests_from_yaml,
    parse_accuracy_test,
)
from .storage import AccuracyResultNotFoundError, DiskResultStorage, StorageLockError
from .summary import TestSummary, generate_test_summary

__all__ = [
    # Matchers
    "MISSING",
    "Matcher",
    "dump_match_spec",
    # Models
    "AccuracyResult",
    "AccuracyRunStatus",
    "AccuracyTestCase",
    "ExpectedToolCall",
    "LLMToolCall",
    "ModelResponse",
    "PromptResult",
    "TokensUsage",
    "ToolCallPair",
    # Scoring
    "CustomScorer",
    "calculate_tool_calling_accuracy",
    "find_best_match",
    "pair_tool_calls",
    "score_accuracy_test",
    # Loading
    "load_accuracy_tests_from_directory",
    "load_accuracy_tests_from_yaml",
    "parse_accuracy_test",
    # Storage
    "AccuracyResultNotFoundError",
    "DiskResultStorage",
    "StorageLockError",
    # Reporting
    "TestSummary",
    "generate_test_summary",
]
