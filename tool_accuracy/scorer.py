"""Tool calling accuracy scorer.

Tool calling accuracy is a single number calculated from two dimensions:

1. Did the LLM call the right tools?
2. Did it call them with the correct and required parameters?

The number is one of:

- 0: a required tool was not called, or not called with parameters scoring
  at least 0.75
- 0.75: the right tools were called, but the LLM also made extra calls
- between 0.75 and 1: the right tools were called but some parameters only
  partially matched their expectation
- 1: exactly the expected tools were called with the expected parameters

For each expected tool call we look for the best matching LLM tool call:
same tool name, not already paired, highest parameter similarity score of
at least 0.75. Competing scores go to the call that appears first. The
final score is the least of the hallucination cap and the parameter scores
of the established pairs.
"""

import logging
from collections.abc import Callable, Sequence

from . import config
from .matcher import Matcher
from .models import AccuracyTestCase, ExpectedToolCall, LLMToolCall, ToolCallPair


logger = logging.getLogger(__name__)

CustomScorer = Callable[[float, list[LLMToolCall]], float]


def find_best_match(
    expected_call: ExpectedToolCall,
    actual_tool_calls: Sequence[LLMToolCall],
    claimed_indexes: set[int],
) -> tuple[int, float] | None:
    """Find the best unclaimed actual call for one expected call.

    Args:
        expected_call: The expected tool call.
        actual_tool_calls: All tool calls the LLM made.
        claimed_indexes: Indexes of actual calls already paired.

    Returns:
        (actual index, parameter score) of the best candidate, or None when
        no same-named candidate reaches the match threshold.
    """
    parameters_matcher = Matcher.value(expected_call.parameters)
    candidates = [
        (index, parameters_matcher.match(call.parameters))
        for index, call in enumerate(actual_tool_calls)
        if index not in claimed_indexes and call.tool_name == expected_call.tool_name
    ]
    candidates = [
        (index, score) for index, score in candidates if score >= config.MATCH_THRESHOLD
    ]
    if not candidates:
        return None

    candidates.sort(key=lambda candidate: (-candidate[1], candidate[0]))
    return candidates[0]


def calculate_tool_calling_accuracy(
    expected_tool_calls: Sequence[ExpectedToolCall],
    actual_tool_calls: Sequence[LLMToolCall],
) -> float:
    """Score how accurately the LLM made the expected tool calls.

    Args:
        expected_tool_calls: Calls the test author expects, in order.
        actual_tool_calls: Calls the LLM made, in invocation order.

    Returns:
        Accuracy between 0.0 and 1.0.
    """
    if not expected_tool_calls:
        return config.PERFECT_SCORE if not actual_tool_calls else config.HALLUCINATION_CAP

    # Surplus calls always leave at least one call unpaired
    current_score = (
        config.HALLUCINATION_CAP
        if len(actual_tool_calls) > len(expected_tool_calls)
        else config.PERFECT_SCORE
    )
    claimed_indexes: set[int] = set()

    for expected_call in expected_tool_calls:
        best_match = find_best_match(expected_call, actual_tool_calls, claimed_indexes)
        if best_match is not None:
            index, score = best_match
            claimed_indexes.add(index)
            current_score = min(current_score, score)
            logger.debug(
                f"Expected '{expected_call.tool_name}' paired with call #{index} (score: {score:.2f})"
            )
        elif expected_call.optional:
            logger.debug(f"Optional tool call '{expected_call.tool_name}' was not made")
            continue
        else:
            logger.info(f"Required tool call '{expected_call.tool_name}' was not made")
            return 0.0

    return current_score


def pair_tool_calls(
    expected_tool_calls: Sequence[ExpectedToolCall],
    actual_tool_calls: Sequence[LLMToolCall],
) -> tuple[list[ToolCallPair], list[int]]:
    """Pair every expected call with an actual call, for reporting.

    Unlike the scorer this does not stop at the first missing required call.

    Returns:
        The established pairs and the indexes of expected calls left unpaired.
    """
    claimed_indexes: set[int] = set()
    pairs: list[ToolCallPair] = []
    unpaired: list[int] = []

    for expected_index, expected_call in enumerate(expected_tool_calls):
        best_match = find_best_match(expected_call, actual_tool_calls, claimed_indexes)
        if best_match is None:
            unpaired.append(expected_index)
            continue
        actual_index, score = best_match
        claimed_indexes.add(actual_index)
        pairs.append(
            ToolCallPair(expected_index=expected_index, actual_index=actual_index, score=score)
        )

    return pairs, unpaired


def score_accuracy_test(
    test_case: AccuracyTestCase,
    actual_tool_calls: Sequence[LLMToolCall],
    custom_scorer: CustomScorer | None = None,
) -> float:
    """Score a test case, optionally refined by a custom scorer.

    A custom scorer receives the baseline score and the actual tool calls and
    returns the final score, e.g. to additionally verify side effects.
    """
    score = calculate_tool_calling_accuracy(test_case.expected_tool_calls, actual_tool_calls)
    if custom_scorer is not None:
        baseline_score = score
        score = custom_scorer(baseline_score, list(actual_tool_calls))
        logger.debug(f"Custom scorer changed {baseline_score:.2f} to {score:.2f}")

    if not 0.0 <= score <= 1.0:
        raise ValueError(f"Accuracy score must be between 0 and 1, got {score}")

    logger.info(f"Tool calling accuracy for '{test_case.description[:60]}': {score:.2f}")
    return score
