"""Structural matchers for scoring tool call parameters.

An expectation is a tree of plain values (mappings, lists, scalars) that may
contain Matcher instances at any depth. Every matcher reduces an observed
value to a score between 0.0 and 1.0:

    >>> params = {"database": "mflix", "limit": Matcher.any_of(Matcher.undefined(), Matcher.number())}
    >>> Matcher.value(params).match({"database": "mflix"})
    1.0

Python has a single null value, so a key that is absent from an observed
mapping is represented by the MISSING sentinel while JSON null stays None.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any


logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for a value that is not present at all."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

MATCHER_KEY = "$matcher"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _same_value(expected: Any, actual: Any) -> bool:
    """Identity for containers, equality for scalars of the same kind."""
    if expected is actual:
        return True
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    if _is_number(expected) and _is_number(actual):
        return expected == actual
    if isinstance(expected, str) and isinstance(actual, str):
        return expected == actual
    return False


def _always(_: Any) -> bool:
    return True


class Matcher(ABC):
    """Base class for all comparison strategies.

    Matchers are immutable. Build them through the factory methods on this
    class rather than instantiating the concrete classes directly.
    """

    kind: str = "matcher"

    @abstractmethod
    def match(self, actual: Any) -> float:
        """Score ``actual`` against this expectation, from 0.0 to 1.0."""

    def to_json(self) -> dict[str, Any]:
        """Describe the matcher as plain JSON for persisted results."""
        return {MATCHER_KEY: self.kind}

    def __repr__(self) -> str:
        return f"Matcher.{self.kind}"

    # =========================================================================
    # Factories
    # =========================================================================

    @staticmethod
    def empty_object_or_undefined() -> "Matcher":
        return EmptyObjectOrUndefinedMatcher()

    @staticmethod
    def any_value() -> "Matcher":
        return AnyValueMatcher()

    @staticmethod
    def number(
        additional_filter: Callable[[float], bool] | None = None,
        description: str | None = None,
    ) -> "Matcher":
        return NumberMatcher(additional_filter, description)

    @staticmethod
    def any_of(*matchers: "Matcher") -> "Matcher":
        return CompositeMatcher(matchers)

    @staticmethod
    def undefined() -> "Matcher":
        return UndefinedMatcher()

    @staticmethod
    def null() -> "Matcher":
        return NullMatcher()

    @staticmethod
    def boolean(expected: bool | None = None) -> "Matcher":
        return BooleanMatcher(expected)

    @staticmethod
    def string(
        additional_filter: Callable[[str], bool] | None = None,
        description: str | None = None,
    ) -> "Matcher":
        return StringMatcher(additional_filter, description)

    @staticmethod
    def case_insensitive_string(text: str) -> "Matcher":
        return CaseInsensitiveStringMatcher(text)

    @staticmethod
    def not_(matcher: "Matcher") -> "Matcher":
        return NotMatcher(matcher)

    @staticmethod
    def array_or_single(matcher: "Matcher") -> "Matcher":
        return ArrayOrSingleMatcher(matcher)

    @staticmethod
    def value(expected: Any) -> "Matcher":
        """Wrap an expectation tree in the structural matcher.

        A tree that is already a Matcher is returned unchanged.
        """
        if isinstance(expected, Matcher):
            return expected
        return ValueMatcher(expected)


class EmptyObjectOrUndefinedMatcher(Matcher):
    """Accepts an absent value, None or an empty mapping. An empty list is rejected."""

    kind = "empty_object_or_undefined"

    def match(self, actual: Any) -> float:
        if actual is MISSING or actual is None:
            return 1.0
        if isinstance(actual, Mapping) and len(actual) == 0:
            return 1.0
        return 0.0


class AnyValueMatcher(Matcher):
    kind = "any_value"

    def match(self, actual: Any) -> float:
        return 1.0


class UndefinedMatcher(Matcher):
    kind = "undefined"

    def match(self, actual: Any) -> float:
        return 1.0 if actual is MISSING else 0.0


class NullMatcher(Matcher):
    kind = "null"

    def match(self, actual: Any) -> float:
        return 1.0 if actual is None else 0.0


class NumberMatcher(Matcher):
    kind = "number"

    def __init__(
        self,
        additional_filter: Callable[[float], bool] | None = None,
        description: str | None = None,
    ):
        self._additional_filter = additional_filter or _always
        self._description = description

    def match(self, actual: Any) -> float:
        return 1.0 if _is_number(actual) and self._additional_filter(actual) else 0.0

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        if self._description:
            data["filter"] = self._description
        return data


class StringMatcher(Matcher):
    kind = "string"

    def __init__(
        self,
        additional_filter: Callable[[str], bool] | None = None,
        description: str | None = None,
    ):
        self._additional_filter = additional_filter or _always
        self._description = description

    def match(self, actual: Any) -> float:
        return 1.0 if isinstance(actual, str) and self._additional_filter(actual) else 0.0

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        if self._description:
            data["filter"] = self._description
        return data


class BooleanMatcher(Matcher):
    kind = "boolean"

    def __init__(self, expected: bool | None = None):
        self._expected = expected

    def match(self, actual: Any) -> float:
        if not isinstance(actual, bool):
            return 0.0
        return 1.0 if self._expected is None or self._expected == actual else 0.0

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        if self._expected is not None:
            data["expected"] = self._expected
        return data


class CaseInsensitiveStringMatcher(Matcher):
    kind = "case_insensitive_string"

    def __init__(self, expected: str):
        self._expected = expected

    def match(self, actual: Any) -> float:
        if not isinstance(actual, str):
            return 0.0
        return 1.0 if self._expected.lower() == actual.lower() else 0.0

    def to_json(self) -> dict[str, Any]:
        return {**super().to_json(), "expected": self._expected}

    def __repr__(self) -> str:
        return f"Matcher.case_insensitive_string({self._expected!r})"


class CompositeMatcher(Matcher):
    """Any-of: the best score among the wrapped matchers."""

    kind = "any_of"

    def __init__(self, matchers: tuple[Matcher, ...] | list[Matcher]):
        self._matchers = tuple(matchers)

    def match(self, actual: Any) -> float:
        current_score = 0.0
        for matcher in self._matchers:
            score = matcher.match(actual)
            if score == 1:
                return 1.0
            current_score = max(current_score, score)
        return current_score

    def to_json(self) -> dict[str, Any]:
        return {
            **super().to_json(),
            "matchers": [matcher.to_json() for matcher in self._matchers],
        }

    def __repr__(self) -> str:
        return f"Matcher.any_of({', '.join(repr(m) for m in self._matchers)})"


class NotMatcher(Matcher):
    """Binary inversion: anything short of a perfect inner match passes."""

    kind = "not"

    def __init__(self, matcher: Matcher):
        self._matcher = matcher

    def match(self, actual: Any) -> float:
        return 0.0 if self._matcher.match(actual) == 1 else 1.0

    def to_json(self) -> dict[str, Any]:
        return {**super().to_json(), "matcher": self._matcher.to_json()}

    def __repr__(self) -> str:
        return f"Matcher.not_({self._matcher!r})"


class ArrayOrSingleMatcher(Matcher):
    """Accepts a value either bare or wrapped in a one element list."""

    kind = "array_or_single"

    def __init__(self, matcher: Matcher):
        self._matcher = matcher

    def match(self, actual: Any) -> float:
        if _is_sequence(actual):
            return 1.0 if len(actual) == 1 and self._matcher.match(actual[0]) == 1 else 0.0
        return self._matcher.match(actual)

    def to_json(self) -> dict[str, Any]:
        return {**super().to_json(), "matcher": self._matcher.to_json()}

    def __repr__(self) -> str:
        return f"Matcher.array_or_single({self._matcher!r})"


class ValueMatcher(Matcher):
    """Recursive structural comparison of an expectation tree.

    Extra keys or extra list elements in the observed value always score 0.
    Missing structure is only tolerated when the expectation says so through
    an embedded matcher such as ``Matcher.undefined()``.
    """

    kind = "value"

    def __init__(self, expected: Any):
        self._expected = expected

    def match(self, actual: Any) -> float:
        expected = self._expected
        if _same_value(expected, actual):
            return 1.0

        if expected is None or expected is MISSING:
            return 1.0 if actual is None or actual is MISSING else 0.0

        if isinstance(expected, Matcher):
            return expected.match(actual)

        current_score = 1.0

        if _is_sequence(expected):
            if not _is_sequence(actual):
                return 0.0

            if len(actual) > len(expected):
                # Extra elements (e.g. additional pipeline stages) are never tolerated
                return 0.0

            for index, expected_item in enumerate(expected):
                actual_item = actual[index] if index < len(actual) else MISSING
                current_score = min(current_score, Matcher.value(expected_item).match(actual_item))
                if current_score == 0:
                    return 0.0

        elif isinstance(expected, Mapping):
            if not isinstance(actual, Mapping):
                return 0.0

            if len(actual) > len(expected):
                # Hallucinated keys must be allowed explicitly with matchers
                logger.debug(
                    f"Unexpected keys {sorted(set(actual) - set(expected))} in observed value"
                )
                return 0.0

            for key, expected_item in expected.items():
                current_score = min(
                    current_score,
                    Matcher.value(expected_item).match(actual.get(key, MISSING)),
                )
                if current_score == 0:
                    return 0.0

        else:
            return 0.0

        return current_score

    def to_json(self) -> dict[str, Any]:
        return {**super().to_json(), "expected": dump_match_spec(self._expected)}

    def __repr__(self) -> str:
        return f"Matcher.value({self._expected!r})"


def dump_match_spec(spec: Any) -> Any:
    """Convert an expectation tree into plain JSON, describing any matchers."""
    if isinstance(spec, Matcher):
        return spec.to_json()
    if spec is MISSING:
        return UndefinedMatcher().to_json()
    if isinstance(spec, Mapping):
        return {str(key): dump_match_spec(value) for key, value in spec.items()}
    if _is_sequence(spec):
        return [dump_match_spec(item) for item in spec]
    return spec
