import pytest

from grouping_eval.contingency import build_contingency, scored_ids
from grouping_eval.types import GroupingConfigError, grouping_from_labels, invert_grouping


def test_only_shared_ids_are_counted() -> None:
    manual = {"a": 0, "b": 0, "c": 1, "x": 5}
    auto = {"a": 1, "b": 1, "c": 2, "d": 0}
    ct = build_contingency(manual, auto)
    assert ct.scored_ids == ("a", "b", "c")
    assert ct.manual_labels == (0, 1)
    assert ct.auto_labels == (1, 2)
    assert ct.as_lists() == ((2, 0), (0, 1))
    assert ct.n == 3
    assert list(ct.row_sums) == [2, 1]
    assert list(ct.col_sums) == [2, 1]


def test_cell_sum_equals_scored_count() -> None:
    manual = {f"s{i}": i % 3 for i in range(20)}
    auto = {f"s{i}": i % 4 for i in range(5, 25)}
    ct = build_contingency(manual, auto)
    assert int(ct.table.sum()) == len(scored_ids(manual, auto)) == 15


def test_empty_inputs_give_empty_table() -> None:
    ct = build_contingency({}, {"a": 0})
    assert ct.shape == (0, 0)
    assert ct.n == 0


def test_negative_label_rejected() -> None:
    with pytest.raises(GroupingConfigError):
        build_contingency({"a": -1}, {"a": 0})


def test_invert_grouping_rejects_double_assignment() -> None:
    with pytest.raises(GroupingConfigError):
        invert_grouping({0: ["a", "b"], 1: ["b"]})


def test_grouping_roundtrip() -> None:
    grouping = {0: ["a", "b"], 2: ["c"]}
    assert grouping_from_labels(invert_grouping(grouping)) == grouping
