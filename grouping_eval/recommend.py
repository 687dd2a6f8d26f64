"""Derive clustering parameter suggestions from a curated session.

The manual grouping of a session is treated as ground truth: its RMS layout
suggests a cluster count and loudness thresholds, and the spread of the raw
spectral descriptors inside each loudness range suggests feature weights.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from .grouping import ClusteringMethod, ClusteringOptions
from .session import GroupingSession
from .types import Sample

logger = logging.getLogger(__name__)

# raw descriptor name -> Sample attribute
SPECTRAL_FEATURES = {
    "centroid": "spectral_centroid_hz",
    "rolloff": "spectral_rolloff_hz",
    "bandwidth": "spectral_bandwidth_hz",
    "flatness": "spectral_flatness",
    "zcr": "zero_crossing_rate",
}

GAP_MAD_FACTOR = 2.5
HIERARCHY_RMS_STEP = 0.01


@dataclass(frozen=True)
class SpectralPattern:
    mean_centroid: float
    centroid_variance: float
    dominant_features: tuple[str, ...] = ()


@dataclass(frozen=True)
class GroupCharacteristics:
    mean_rms: float
    rms_range: tuple[float, float]
    mean_centroid: float
    centroid_range: tuple[float, float]
    sample_count: int


@dataclass(frozen=True)
class GroupingRecommendations:
    suggested_clusters: int
    loudness_weight: float
    clustering_method: ClusteringMethod
    rms_thresholds: tuple[float, ...]
    spectral_weights: dict[str, float] = field(default_factory=dict)

    def to_clustering_options(self) -> ClusteringOptions:
        return ClusteringOptions(
            method=self.clustering_method,
            min_clusters=max(2, self.suggested_clusters - 1),
            max_clusters=min(8, self.suggested_clusters + 1),
            loudness_weight=self.loudness_weight,
        )


def _variance(values) -> float:
    arr = np.asarray(list(values), dtype=np.float64)
    return float(arr.var()) if arr.size else 0.0


def _upper_median(values: list[float]) -> float:
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def _attr(samples: list[Sample], name: str) -> list[float]:
    return [float(v) for v in (getattr(s, name) for s in samples) if v is not None]


def identify_rms_clusters(sorted_rms: list[float]) -> list[tuple[float, float]]:
    """Split sorted RMS values at gaps larger than ``median + 2.5 * MAD``."""
    if len(sorted_rms) <= 1:
        v = sorted_rms[0] if sorted_rms else 0.0
        return [(v, v)]
    gaps = [sorted_rms[i] - sorted_rms[i - 1] for i in range(1, len(sorted_rms))]
    med = _upper_median(gaps)
    mad = _upper_median([abs(g - med) for g in gaps])
    threshold = med + GAP_MAD_FACTOR * mad

    ranges: list[tuple[float, float]] = []
    lo = sorted_rms[0]
    for i, gap in enumerate(gaps, start=1):
        if gap > threshold:
            ranges.append((lo, sorted_rms[i - 1]))
            lo = sorted_rms[i]
    ranges.append((lo, sorted_rms[-1]))
    return ranges


def spectral_pattern(samples: list[Sample]) -> SpectralPattern:
    """Mean centroid plus the three raw descriptors with the largest variance."""
    if not samples:
        return SpectralPattern(0.0, 0.0)
    centroids = _attr(samples, "spectral_centroid_hz")
    variances = [(name, _variance(_attr(samples, attr))) for name, attr in SPECTRAL_FEATURES.items()]
    variances.sort(key=lambda t: -t[1])
    return SpectralPattern(
        mean_centroid=float(np.mean(centroids)) if centroids else 0.0,
        centroid_variance=_variance(centroids),
        dominant_features=tuple(name for name, _ in variances[:3]),
    )


def manual_group_stats(session: GroupingSession) -> dict[int, GroupCharacteristics]:
    by_id = session.sample_by_id()
    out: dict[int, GroupCharacteristics] = {}
    for label in sorted(session.manual_grouping):
        members = [by_id[sid] for sid in session.manual_grouping[label] if sid in by_id]
        rms = _attr(members, "rms")
        cents = _attr(members, "spectral_centroid_hz")
        if not rms:
            continue
        out[label] = GroupCharacteristics(
            mean_rms=float(np.mean(rms)),
            rms_range=(min(rms), max(rms)),
            mean_centroid=float(np.mean(cents)) if cents else 0.0,
            centroid_range=(min(cents), max(cents)) if cents else (0.0, 0.0),
            sample_count=len(members),
        )
    return out


def _consistency(separations: list[float]) -> float:
    top = max(separations)
    if top <= 0:
        return 0.0
    return 1.0 - _variance(separations) / top


def optimal_loudness_weight(stats: dict[int, GroupCharacteristics]) -> float:
    """Weight loudness by how consistently RMS, rather than centroid, separates groups.

    Result is clamped to ``[0.2, 0.6]``; ``0.3`` with fewer than two groups or
    when neither separation carries information.
    """
    groups = sorted(stats.values(), key=lambda g: g.mean_rms)
    if len(groups) < 2:
        return 0.3
    rms_sep = []
    spec_sep = []
    for prev, cur in zip(groups, groups[1:]):
        overlap = cur.rms_range[0] < prev.rms_range[1]
        rms_sep.append(0.0 if overlap else cur.mean_rms - prev.mean_rms)
        spec_sep.append(abs(cur.mean_centroid - prev.mean_centroid))
    rms_c = _consistency(rms_sep)
    spec_c = _consistency(spec_sep)
    if rms_c + spec_c <= 0:
        return 0.3
    return min(0.6, max(0.2, rms_c / (rms_c + spec_c)))


def has_hierarchical_structure(stats: dict[int, GroupCharacteristics]) -> bool:
    """True when groups fall into 2-3 loudness tiers and one tier holds several groups."""
    tiers: list[list[int]] = []
    last = 0.0
    for label, g in sorted(stats.items(), key=lambda kv: kv[1].mean_rms):
        if tiers and g.mean_rms - last < HIERARCHY_RMS_STEP:
            tiers[-1].append(label)
        else:
            tiers.append([label])
        last = g.mean_rms
    return 2 <= len(tiers) <= 3 and any(len(t) > 1 for t in tiers)


def recommend_method(session: GroupingSession, stats: dict[int, GroupCharacteristics]) -> ClusteringMethod:
    if has_hierarchical_structure(stats):
        return ClusteringMethod.HIERARCHICAL
    sizes = [len(ids) for ids in session.manual_grouping.values()]
    if _variance(sizes) > session.sample_count * 0.1:
        return ClusteringMethod.DBSCAN
    return ClusteringMethod.KMEANS


def spectral_weights(patterns: list[SpectralPattern]) -> dict[str, float]:
    """Score ``1 / (rank + 1)`` per dominant feature and normalise to sum 1."""
    scores = {name: 0.0 for name in SPECTRAL_FEATURES}
    for pattern in patterns:
        for rank, name in enumerate(pattern.dominant_features):
            scores[name] += 1.0 / (rank + 1)
    total = sum(scores.values())
    if total > 0:
        scores = {k: v / total for k, v in scores.items()}
    return scores


def analyze_session(session: GroupingSession) -> GroupingRecommendations:
    with_rms = [s for s in session.samples if s.rms is not None]
    if len(with_rms) < session.sample_count:
        logger.warning("%d sample(s) without RMS ignored", session.sample_count - len(with_rms))
    ranges = identify_rms_clusters(sorted(float(s.rms) for s in with_rms))
    patterns = [
        spectral_pattern([s for s in with_rms if lo <= s.rms <= hi]) for lo, hi in ranges
    ]
    stats = manual_group_stats(session)
    rec = GroupingRecommendations(
        suggested_clusters=len(ranges),
        loudness_weight=optimal_loudness_weight(stats),
        clustering_method=recommend_method(session, stats),
        rms_thresholds=tuple(hi for _, hi in ranges),
        spectral_weights=spectral_weights(patterns),
    )
    logger.info(
        "recommend %d clusters via %s (loudness weight %.2f)",
        rec.suggested_clusters,
        rec.clustering_method.value,
        rec.loudness_weight,
    )
    return rec


__all__ = [
    "ClusteringMethod",
    "ClusteringOptions",
    "GroupCharacteristics",
    "GroupingRecommendations",
    "SpectralPattern",
    "analyze_session",
    "has_hierarchical_structure",
    "identify_rms_clusters",
    "manual_group_stats",
    "optimal_loudness_weight",
    "recommend_method",
    "spectral_pattern",
    "spectral_weights",
]
