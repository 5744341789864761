"""Accuracy Test Loader.

This module loads accuracy test cases from YAML files, converting them to
AccuracyTestCase models. Matchers are written with YAML tags:

    - prompt: "List all the movies in 'mflix.movies' namespace."
      expected_tool_calls:
        - tool_name: list-databases
          optional: true
        - tool_name: find
          parameters:
            database: mflix
            collection: movies
            filter: !empty_or_undefined
            limit: !any_of [!undefined, !number {min: 1}]

Supported tags: !any, !undefined, !null, !empty_or_undefined, !number,
!string, !boolean, !ci_string, !any_of, !not, !array_or_single and !value.
``!not`` and ``!array_or_single`` take a one element list holding their
operand, e.g. ``!not [!null]``.
"""

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .matcher import Matcher
from .models import AccuracyTestCase, ExpectedToolCall


logger = logging.getLogger(__name__)


class MatcherLoader(yaml.SafeLoader):
    """SafeLoader that builds Matcher instances from matcher tags."""


def _is_empty_scalar(node: yaml.Node) -> bool:
    return isinstance(node, yaml.ScalarNode) and node.value == ""


def _construct_options(loader: MatcherLoader, node: yaml.Node) -> dict[str, Any]:
    if _is_empty_scalar(node):
        return {}
    if not isinstance(node, yaml.MappingNode):
        raise yaml.constructor.ConstructorError(
            None, None, f"expected a mapping of options for {node.tag}", node.start_mark
        )
    return loader.construct_mapping(node, deep=True)


def _construct_operand(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    if not isinstance(node, yaml.SequenceNode) or len(node.value) != 1:
        raise yaml.constructor.ConstructorError(
            None, None, f"{node.tag} expects a single element list", node.start_mark
        )
    return Matcher.value(loader.construct_object(node.value[0], deep=True))


def _construct_number(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    options = _construct_options(loader, node)
    minimum = options.get("min")
    maximum = options.get("max")
    if minimum is None and maximum is None:
        return Matcher.number()

    def in_range(value: float) -> bool:
        if minimum is not None and value < minimum:
            return False
        if maximum is not None and value > maximum:
            return False
        return True

    return Matcher.number(in_range, description=f"min={minimum}, max={maximum}")


def _construct_string(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    options = _construct_options(loader, node)
    pattern = options.get("pattern")
    if pattern is None:
        return Matcher.string()

    compiled = re.compile(pattern)
    return Matcher.string(
        lambda value: compiled.search(value) is not None,
        description=f"pattern={pattern}",
    )


def _construct_boolean(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    if _is_empty_scalar(node):
        return Matcher.boolean()
    return Matcher.boolean(loader.construct_yaml_bool(node))


def _construct_any_of(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    items = loader.construct_sequence(node, deep=True)
    return Matcher.any_of(*(Matcher.value(item) for item in items))


def _construct_value(loader: MatcherLoader, node: yaml.Node) -> Matcher:
    # Build the untagged node; construct_object would dispatch back to this tag
    if isinstance(node, yaml.MappingNode):
        return Matcher.value(loader.construct_mapping(node, deep=True))
    if isinstance(node, yaml.SequenceNode):
        return Matcher.value(loader.construct_sequence(node, deep=True))
    tag = loader.resolve(yaml.ScalarNode, node.value, (True, False))
    return Matcher.value(loader.construct_object(yaml.ScalarNode(tag, node.value), deep=True))


MatcherLoader.add_constructor("!any", lambda loader, node: Matcher.any_value())
MatcherLoader.add_constructor("!undefined", lambda loader, node: Matcher.undefined())
MatcherLoader.add_constructor("!null", lambda loader, node: Matcher.null())
MatcherLoader.add_constructor(
    "!empty_or_undefined", lambda loader, node: Matcher.empty_object_or_undefined()
)
MatcherLoader.add_constructor("!number", _construct_number)
MatcherLoader.add_constructor("!string", _construct_string)
MatcherLoader.add_constructor("!boolean", _construct_boolean)
MatcherLoader.add_constructor(
    "!ci_string",
    lambda loader, node: Matcher.case_insensitive_string(str(loader.construct_scalar(node))),
)
MatcherLoader.add_constructor("!any_of", _construct_any_of)
MatcherLoader.add_constructor(
    "!not", lambda loader, node: Matcher.not_(_construct_operand(loader, node))
)
MatcherLoader.add_constructor(
    "!array_or_single",
    lambda loader, node: Matcher.array_or_single(_construct_operand(loader, node)),
)
MatcherLoader.add_constructor("!value", _construct_value)


def load_yaml(text: str) -> Any:
    """Parse YAML text, building matchers for matcher tags."""
    return yaml.load(text, Loader=MatcherLoader)


def load_accuracy_tests_from_yaml(path: str | Path) -> list[AccuracyTestCase]:
    """Load accuracy test cases from a YAML file.

    The file holds either a list of test definitions or a mapping with a
    ``tests`` (or ``test_cases``) key.

    Args:
        path: Path to the YAML file.

    Returns:
        List of AccuracyTestCase objects.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the YAML is malformed or a test definition is invalid.
    """
    logger.info(f"Loading accuracy tests from {path}")

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Accuracy tests file not found: {path}")

    try:
        data = load_yaml(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.exception(f"Failed to parse YAML file: {path}")
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        logger.warning(f"Empty YAML file: {path}")
        return []

    if isinstance(data, dict):
        tests_data = data.get("tests", data.get("test_cases", []))
    elif isinstance(data, list):
        tests_data = data
    else:
        raise ValueError(f"Invalid YAML structure in {path}: expected list or dict")

    test_cases = []
    for idx, test_data in enumerate(tests_data):
        try:
            test_cases.append(parse_accuracy_test(test_data))
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse accuracy test at index {idx} in {path}: {e}")
            raise ValueError(f"Invalid accuracy test at index {idx} in {path}: {e}") from e

    logger.info(f"Loaded {len(test_cases)} accuracy test(s) from {path}")
    return test_cases


def parse_accuracy_test(data: dict[str, Any]) -> AccuracyTestCase:
    """Parse an accuracy test case from a dictionary.

    Args:
        data: Dictionary containing the test definition.

    Returns:
        AccuracyTestCase object.
    """
    if not isinstance(data, dict):
        raise TypeError(f"expected a mapping, got {type(data).__name__}")

    expected_data = data.get("expected_tool_calls", data.get("expected_tools", []))
    return AccuracyTestCase(
        prompt=data.get("prompt", ""),
        expected_tool_calls=[_parse_expected_tool_call(call_data) for call_data in expected_data],
        system_prompt=data.get("system_prompt"),
    )


def _parse_expected_tool_call(data: dict[str, Any]) -> ExpectedToolCall:
    """Parse an expected tool call, accepting ``tool``/``params`` shorthands."""
    if not isinstance(data, dict):
        raise TypeError(f"expected tool call must be a mapping, got {type(data).__name__}")

    tool_name = data.get("tool_name", data.get("tool"))
    if not tool_name:
        raise ValueError("expected tool call is missing 'tool_name'")

    return ExpectedToolCall(
        tool_name=tool_name,
        parameters=data.get("parameters", data.get("params", {})),
        optional=data.get("optional", False),
    )


def load_accuracy_tests_from_directory(
    directory: str | Path,
    pattern: str = "*.yaml",
) -> list[AccuracyTestCase]:
    """Load accuracy tests from every YAML file in a directory.

    Args:
        directory: Directory to search.
        pattern: Glob pattern for matching files; the ``.yml`` variant is
            searched as well.

    Returns:
        Combined list of AccuracyTestCase objects, in file name order.
    """
    dir_path = Path(directory)

    if not dir_path.exists():
        logger.warning(f"Directory not found: {directory}")
        return []

    files = set(dir_path.glob(pattern))
    files.update(dir_path.glob(pattern.replace(".yaml", ".yml")))

    all_tests = []
    for file_path in sorted(files):
        all_tests.extend(load_accuracy_tests_from_yaml(file_path))

    logger.info(f"Total accuracy tests loaded from {directory}: {len(all_tests)}")
    return all_tests
