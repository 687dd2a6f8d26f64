import pytest

from grouping_eval.alignment import (
    find_merges,
    find_splits,
    greedy_one_to_one_mapping,
    majority_mapping,
    mapped_accuracy,
    one_to_one_accuracy,
    per_class_prf1,
)
from grouping_eval.contingency import build_contingency
from grouping_eval.types import MergeFinding, SplitFinding, invert_grouping


def _ct(manual, auto):
    return build_contingency(invert_grouping(manual), invert_grouping(auto))


@pytest.fixture
def merged():
    manual = {0: ["s1", "s2"], 1: ["s3", "s4"], 2: ["s5", "s6"]}
    auto = {0: ["s1", "s2", "s3", "s4"], 1: ["s5", "s6"]}
    return _ct(manual, auto)


def test_merge_detection(merged) -> None:
    merges = find_merges(merged)
    assert merges == [MergeFinding(auto_label=0, manual_shares=((0, 1.0), (1, 1.0)))]
    assert merges[0].manual_labels == (0, 1)
    assert merges[0].describe() == "{M0(100%), M1(100%)} -> Auto 0"


def test_mappings_and_gap(merged) -> None:
    assert majority_mapping(merged) == {0: 0, 1: 0, 2: 1}
    assert greedy_one_to_one_mapping(merged) == {0: 0, 2: 1}
    assert mapped_accuracy(merged) == pytest.approx(1.0)
    assert one_to_one_accuracy(merged) == pytest.approx(4 / 6)
    assert mapped_accuracy(merged) - one_to_one_accuracy(merged) > 0


def test_greedy_ties_prefer_lower_labels() -> None:
    ct = _ct({0: ["a", "b"], 1: ["c", "d"]}, {0: ["a", "c"], 1: ["b", "d"]})
    assert ct.as_lists() == ((1, 1), (1, 1))
    assert greedy_one_to_one_mapping(ct) == {0: 0, 1: 1}
    assert majority_mapping(ct) == {0: 0, 1: 0}


def test_split_detection() -> None:
    ct = _ct({0: ["a", "b", "c", "d"], 1: ["e"]}, {0: ["a", "b"], 1: ["c", "d"], 2: ["e"]})
    splits = find_splits(ct)
    assert splits == [SplitFinding(manual_label=0, auto_shares=((0, 0.5), (1, 0.5)))]
    assert splits[0].describe() == "Manual 0 -> {A0(50%), A1(50%)}"


def test_no_split_when_top_share_dominates() -> None:
    ct = _ct({0: ["a", "b", "c", "d"]}, {0: ["a", "b", "c"], 1: ["d"]})
    assert find_splits(ct) == []


def test_per_class_under_majority_mapping(merged) -> None:
    prf = per_class_prf1(merged)
    assert prf[0].precision == pytest.approx(0.5)
    assert prf[0].recall == pytest.approx(1.0)
    assert prf[0].f1 == pytest.approx(2 / 3)
    assert prf[2].f1 == pytest.approx(1.0)


def test_thresholds_are_configurable(merged) -> None:
    assert find_merges(merged, min_share=1.0)
    ct = _ct({0: ["a", "b", "c", "d"]}, {0: ["a", "b", "c"], 1: ["d"]})
    assert find_splits(ct, max_top_share=0.8, min_second_share=0.25)
