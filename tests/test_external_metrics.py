import pytest
from sklearn import metrics as skm

from grouping_eval.contingency import build_contingency
from grouping_eval.external import (
    adjusted_rand_index,
    b_cubed,
    homogeneity_completeness_v,
    normalized_mutual_info,
    purity,
)

TRUE = [0, 0, 0, 1, 1, 1, 2, 2, 2, 2, 0, 1]
PRED = [0, 0, 1, 1, 1, 2, 2, 2, 0, 2, 0, 1]


def _table(true, pred):
    ids = [f"s{i}" for i in range(len(true))]
    return build_contingency(dict(zip(ids, true)), dict(zip(ids, pred)))


def test_identical_partitions_score_perfectly() -> None:
    ct = _table([0, 0, 0, 1, 1, 1], [0, 0, 0, 1, 1, 1])
    assert ct.as_lists() == ((3, 0), (0, 3))
    assert adjusted_rand_index(ct) == pytest.approx(1.0)
    assert purity(ct) == pytest.approx(1.0)
    assert normalized_mutual_info(ct) == pytest.approx(1.0)


def test_matches_sklearn_reference() -> None:
    ct = _table(TRUE, PRED)
    assert adjusted_rand_index(ct) == pytest.approx(skm.adjusted_rand_score(TRUE, PRED))
    assert normalized_mutual_info(ct) == pytest.approx(
        skm.normalized_mutual_info_score(TRUE, PRED, average_method="geometric")
    )
    h, c, v = homogeneity_completeness_v(ct)
    ref = skm.homogeneity_completeness_v_measure(TRUE, PRED)
    assert (h, c, v) == pytest.approx(ref)


def test_label_permutation_does_not_change_scores() -> None:
    relabel = {0: 7, 1: 3, 2: 5}
    a = _table(TRUE, PRED)
    b = _table(TRUE, [relabel[p] for p in PRED])
    assert adjusted_rand_index(a) == pytest.approx(adjusted_rand_index(b))
    assert normalized_mutual_info(a) == pytest.approx(normalized_mutual_info(b))
    assert purity(a) == pytest.approx(purity(b))


def test_degenerate_tables() -> None:
    empty = _table([], [])
    assert adjusted_rand_index(empty) == 1.0
    assert normalized_mutual_info(empty) == 0.0
    assert purity(empty) == 0.0
    assert b_cubed(empty) == (0.0, 0.0, 0.0)

    single = _table([0], [4])
    assert adjusted_rand_index(single) == 1.0

    # one cluster on both sides: zero denominator, zero entropies
    flat = _table([0, 0, 0], [1, 1, 1])
    assert adjusted_rand_index(flat) == 1.0
    assert normalized_mutual_info(flat) == 0.0
    assert homogeneity_completeness_v(flat) == (1.0, 1.0, 1.0)


def test_b_cubed_collapsed_cluster() -> None:
    ct = _table([0, 0, 1], [0, 0, 0])
    p, r, f1 = b_cubed(ct)
    assert p == pytest.approx(5 / 9)
    assert r == pytest.approx(1.0)
    assert f1 == pytest.approx(2 * p * r / (p + r))
