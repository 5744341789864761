"""Tests for the structural parameter matchers."""

import pytest

from tool_accuracy.matcher import MISSING, Matcher, dump_match_spec


class TestLeafMatchers:
    """Tests for matchers that inspect a single value."""

    @pytest.mark.parametrize(
        "actual, score",
        [
            (MISSING, 1.0),
            (None, 1.0),
            ({}, 1.0),
            ({"genre": "Horror"}, 0.0),
            ([], 0.0),
            ("", 0.0),
        ],
    )
    def test_empty_object_or_undefined(self, actual, score):
        assert Matcher.empty_object_or_undefined().match(actual) == score

    @pytest.mark.parametrize("actual", [MISSING, None, 0, "", {"a": 1}, [1, 2]])
    def test_any_value_accepts_everything(self, actual):
        assert Matcher.any_value().match(actual) == 1.0

    def test_undefined_only_accepts_missing(self):
        assert Matcher.undefined().match(MISSING) == 1.0
        assert Matcher.undefined().match(None) == 0.0
        assert Matcher.undefined().match(0) == 0.0

    def test_null_only_accepts_none(self):
        assert Matcher.null().match(None) == 1.0
        assert Matcher.null().match(MISSING) == 0.0
        assert Matcher.null().match("") == 0.0

    @pytest.mark.parametrize(
        "actual, score",
        [(10, 1.0), (2.5, 1.0), (0, 1.0), ("10", 0.0), (True, 0.0), (None, 0.0)],
    )
    def test_number(self, actual, score):
        assert Matcher.number().match(actual) == score

    def test_number_with_filter(self):
        positive = Matcher.number(lambda value: value > 0)
        assert positive.match(5) == 1.0
        assert positive.match(-5) == 0.0

    def test_string_with_filter(self):
        matcher = Matcher.string(lambda value: value.startswith("mflix"))
        assert matcher.match("mflix.movies") == 1.0
        assert matcher.match("sample.movies") == 0.0
        assert matcher.match(42) == 0.0

    def test_boolean(self):
        assert Matcher.boolean().match(True) == 1.0
        assert Matcher.boolean().match(False) == 1.0
        assert Matcher.boolean().match(1) == 0.0
        assert Matcher.boolean(True).match(True) == 1.0
        assert Matcher.boolean(True).match(False) == 0.0

    def test_case_insensitive_string(self):
        matcher = Matcher.case_insensitive_string("Horror")
        assert matcher.match("horror") == 1.0
        assert matcher.match("HORROR") == 1.0
        assert matcher.match("Comedy") == 0.0
        assert matcher.match(None) == 0.0


class TestCombinators:
    """Tests for any_of, not_ and array_or_single."""

    def test_any_of_takes_best_score(self):
        matcher = Matcher.any_of(Matcher.undefined(), Matcher.number())
        assert matcher.match(MISSING) == 1.0
        assert matcher.match(10) == 1.0
        assert matcher.match("10") == 0.0

    def test_any_of_short_circuits_on_perfect_match(self):
        calls = []

        def record(value):
            calls.append(value)
            return True

        matcher = Matcher.any_of(Matcher.undefined(), Matcher.string(record))
        assert matcher.match(MISSING) == 1.0
        assert calls == []

    def test_any_of_without_matchers_scores_zero(self):
        assert Matcher.any_of().match("anything") == 0.0

    def test_not_inverts(self):
        matcher = Matcher.not_(Matcher.null())
        assert matcher.match(None) == 0.0
        assert matcher.match("value") == 1.0
        assert matcher.match(MISSING) == 1.0

    def test_array_or_single(self):
        matcher = Matcher.array_or_single(Matcher.value({"$match": {"genre": "Horror"}}))
        assert matcher.match({"$match": {"genre": "Horror"}}) == 1.0
        assert matcher.match([{"$match": {"genre": "Horror"}}]) == 1.0
        assert matcher.match([]) == 0.0
        assert matcher.match([{"$match": {"genre": "Horror"}}, {"$limit": 1}]) == 0.0

    def test_value_returns_matchers_unchanged(self):
        matcher = Matcher.number()
        assert Matcher.value(matcher) is matcher


class TestValueMatcher:
    """Tests for the recursive structural comparison."""

    def test_identical_nested_structures(self):
        expected = {"db": "test", "filter": {"age": {"$gte": 18}, "tags": ["a", "b"]}}
        actual = {"db": "test", "filter": {"age": {"$gte": 18}, "tags": ["a", "b"]}}
        assert Matcher.value(expected).match(actual) == 1.0

    def test_scalars_of_different_kind_do_not_match(self):
        assert Matcher.value(1).match("1") == 0.0
        assert Matcher.value(1).match(True) == 0.0
        assert Matcher.value(True).match(1) == 0.0

    def test_int_and_float_are_the_same_number(self):
        assert Matcher.value(100).match(100.0) == 1.0

    def test_none_and_missing_are_interchangeable_as_literals(self):
        assert Matcher.value(None).match(MISSING) == 1.0
        assert Matcher.value({"limit": None}).match({}) == 1.0

    def test_extra_key_scores_zero(self):
        assert Matcher.value({"db": "test"}).match({"db": "test", "limit": 10}) == 0.0

    def test_missing_key_scores_zero(self):
        assert Matcher.value({"db": "test", "limit": 10}).match({"db": "test"}) == 0.0

    def test_missing_key_allowed_by_undefined(self):
        expected = {"db": "test", "limit": Matcher.undefined()}
        assert Matcher.value(expected).match({"db": "test"}) == 1.0

    def test_extra_list_element_scores_zero(self):
        assert Matcher.value([1, 2]).match([1, 2, 3]) == 0.0

    def test_shorter_actual_list_compares_element_wise(self):
        assert Matcher.value([1, 2, 3]).match([1, 2]) == 0.0
        assert Matcher.value([1, 2, Matcher.undefined()]).match([1, 2]) == 1.0

    @pytest.mark.parametrize(
        "value",
        [{"a": [1, {"b": None}]}, [], {}, "text", 0, False, [{"$match": {"x": 1.5}}]],
    )
    def test_identity(self, value):
        assert Matcher.value(value).match(value) == 1.0

    def test_root_level_matcher(self):
        expected = Matcher.any_of(Matcher.value({"database": "mflix"}), Matcher.empty_object_or_undefined())
        assert Matcher.value(expected).match({}) == 1.0
        assert Matcher.value(expected).match({"database": "mflix"}) == 1.0
        assert Matcher.value(expected).match({"database": "other"}) == 0.0

    def test_missing_list_element_allowed_by_any_of_undefined(self):
        expected = [{"$match": {}}, Matcher.any_of(Matcher.undefined(), Matcher.any_value())]
        assert Matcher.value(expected).match([{"$match": {}}]) == 1.0
        assert Matcher.value(expected).match([{"$match": {}}, {"$limit": 5}]) == 1.0

    def test_container_kind_mismatch_scores_zero(self):
        assert Matcher.value({"a": 1}).match([1]) == 0.0
        assert Matcher.value([1]).match({"a": 1}) == 0.0
        assert Matcher.value([1]).match("1") == 0.0

    def test_tuples_compare_like_lists(self):
        assert Matcher.value([1, 2]).match((1, 2)) == 1.0


class TestDumpMatchSpec:
    """Tests for the JSON description of expectation trees."""

    def test_plain_values_pass_through(self):
        spec = {"db": "test", "pipeline": [{"$limit": 1}], "flag": True}
        assert dump_match_spec(spec) == spec

    def test_matchers_are_described(self):
        spec = {
            "filter": Matcher.empty_object_or_undefined(),
            "limit": Matcher.any_of(Matcher.undefined(), Matcher.number()),
            "name": Matcher.case_insensitive_string("Horror"),
        }
        assert dump_match_spec(spec) == {
            "filter": {"$matcher": "empty_object_or_undefined"},
            "limit": {
                "$matcher": "any_of",
                "matchers": [{"$matcher": "undefined"}, {"$matcher": "number"}],
            },
            "name": {"$matcher": "case_insensitive_string", "expected": "Horror"},
        }

    def test_missing_is_described_as_undefined(self):
        assert dump_match_spec(MISSING) == {"$matcher": "undefined"}


class FixedScore(Matcher):
    """Always returns the same score."""

    kind = "fixed_score"

    def __init__(self, score):
        self._score = score

    def match(self, actual):
        return self._score


class TestPartialScores:
    def test_any_of_keeps_highest_partial_score(self):
        assert Matcher.any_of(FixedScore(0.3), FixedScore(0.8)).match("x") == 0.8
        assert Matcher.any_of(FixedScore(0.8), FixedScore(0.3)).match("x") == 0.8

    def test_any_of_perfect_score_wins_over_partial(self):
        assert Matcher.any_of(FixedScore(0.8), Matcher.any_value()).match("x") == 1.0

    def test_not_treats_partial_score_as_miss(self):
        assert Matcher.not_(FixedScore(0.9)).match("x") == 1.0

    def test_value_takes_minimum_over_keys(self):
        expected = {"a": FixedScore(0.9), "b": FixedScore(0.8), "c": 1}
        assert Matcher.value(expected).match({"a": 1, "b": 2, "c": 1}) == 0.8

    def test_value_takes_minimum_over_elements(self):
        assert Matcher.value([FixedScore(0.95), FixedScore(0.85)]).match([1, 2]) == 0.85
