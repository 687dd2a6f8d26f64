import pytest

from grouping_eval.recommend import (
    ClusteringMethod,
    GroupCharacteristics,
    SpectralPattern,
    analyze_session,
    has_hierarchical_structure,
    identify_rms_clusters,
    optimal_loudness_weight,
    spectral_weights,
)
from grouping_eval.grouping import group_with_options
from grouping_eval.session import GroupingSession
from tests.helpers.samples import make_samples


@pytest.fixture
def layered() -> GroupingSession:
    samples = make_samples([(0.0,)] * 6, rms=[1.0, 2.0, 3.0, 10.0, 11.0, 12.0])
    return GroupingSession(
        samples=tuple(samples),
        manual_grouping={0: ["s1", "s2", "s3"], 1: ["s4", "s5", "s6"]},
    )


def _stats(mean_rms: float, lo: float, hi: float, centroid: float = 1000.0) -> GroupCharacteristics:
    return GroupCharacteristics(mean_rms, (lo, hi), centroid, (centroid, centroid), 3)


def test_rms_gaps_split_ranges() -> None:
    assert identify_rms_clusters([1.0, 2.0, 3.0, 10.0, 11.0, 12.0]) == [(1.0, 3.0), (10.0, 12.0)]
    assert identify_rms_clusters([0.5]) == [(0.5, 0.5)]
    assert identify_rms_clusters([]) == [(0.0, 0.0)]


def test_analyze_session(layered) -> None:
    rec = analyze_session(layered)
    assert rec.suggested_clusters == 2
    assert rec.rms_thresholds == (3.0, 12.0)
    assert rec.clustering_method is ClusteringMethod.KMEANS
    assert rec.loudness_weight == pytest.approx(0.5)
    weights = rec.spectral_weights
    assert sum(weights.values()) == pytest.approx(1.0)
    assert weights["centroid"] > weights["rolloff"] > weights["bandwidth"] > 0
    assert weights["zcr"] == 0.0

    opts = rec.to_clustering_options()
    assert (opts.min_clusters, opts.max_clusters) == (2, 3)
    assert opts.method is ClusteringMethod.KMEANS


def test_loudness_weight_bounds() -> None:
    assert optimal_loudness_weight({0: _stats(1.0, 0.5, 1.5)}) == 0.3
    # overlapping RMS ranges carry no loudness information
    overlapping = {0: _stats(1.0, 0.0, 5.0, 1000.0), 1: _stats(2.0, 1.0, 6.0, 3000.0)}
    assert optimal_loudness_weight(overlapping) == 0.2


def test_hierarchy_detection() -> None:
    tiers = {0: _stats(0.1, 0.0, 0.2), 1: _stats(0.105, 0.0, 0.2), 2: _stats(0.5, 0.4, 0.6)}
    assert has_hierarchical_structure(tiers)
    flat = {0: _stats(0.1, 0.0, 0.2), 1: _stats(0.5, 0.4, 0.6)}
    assert not has_hierarchical_structure(flat)


def test_uneven_groups_prefer_dbscan() -> None:
    samples = make_samples([(0.0,)] * 10, rms=[0.1 * i for i in range(1, 11)])
    session = GroupingSession(
        samples=tuple(samples),
        manual_grouping={0: [f"s{i}" for i in range(1, 10)], 1: ["s10"]},
    )
    assert analyze_session(session).clustering_method is ClusteringMethod.DBSCAN


def test_spectral_weights_rank_scores() -> None:
    patterns = [SpectralPattern(0.0, 0.0, ("centroid", "rolloff", "bandwidth"))]
    weights = spectral_weights(patterns)
    total = 1 + 1 / 2 + 1 / 3
    assert weights["centroid"] == pytest.approx(1 / total)
    assert weights["bandwidth"] == pytest.approx((1 / 3) / total)
    assert spectral_weights([]) == {k: 0.0 for k in weights}


def test_recommended_options_regroup_by_loudness(layered) -> None:
    # identical timbre: only the loudness column can separate the layers
    opts = analyze_session(layered).to_clustering_options()
    grouping = group_with_options(list(layered.samples), opts)
    assert sorted(grouping) == [0, 1]
    assert set(grouping[0]) == {"s1", "s2", "s3"}
    assert set(grouping[1]) == {"s4", "s5", "s6"}
