"""Automatic grouping of samples into loudness-ordered clusters."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from statistics import median

import numpy as np
from numpy.typing import NDArray
from sklearn.cluster import DBSCAN, AgglomerativeClustering, KMeans
from sklearn.metrics.pairwise import cosine_distances

from .internal import silhouette_scores
from .normalize import VARIANCE_FLOOR
from .types import GroupingConfigError, Sample, stack_vectors

logger = logging.getLogger(__name__)

DBSCAN_EPS = 0.5
DBSCAN_MIN_SAMPLES = 2


class ClusteringMethod(str, Enum):
    KMEANS = "kmeans"
    HIERARCHICAL = "hierarchical"
    DBSCAN = "dbscan"


@dataclass(frozen=True)
class ClusteringOptions:
    method: ClusteringMethod
    min_clusters: int
    max_clusters: int
    loudness_weight: float
    adaptive_windowing: bool = True


def optimal_cluster_count(n_samples: int) -> int:
    """Pick a velocity-layer count from the number of samples."""
    if n_samples <= 8:
        return 1
    if n_samples <= 16:
        return 2
    if n_samples <= 24:
        return 3
    if n_samples <= 32:
        return 4
    return min(8, max(4, n_samples // 6))


def sort_by_diversity(vectors: Sequence[Sequence[float]] | np.ndarray) -> list[int]:
    """Farthest-point ordering in cosine distance, starting from index 0.

    Each next pick maximises its minimum distance to the already picked
    vectors; ties keep the earliest index.
    """
    X = stack_vectors(vectors) if not isinstance(vectors, np.ndarray) else vectors
    n = len(X)
    if n == 0:
        return []
    D = cosine_distances(X)
    picked = [0]
    remaining = list(range(1, n))
    nearest = D[0].copy()
    while remaining:
        best = max(remaining, key=lambda i: (nearest[i], -i))
        picked.append(best)
        remaining.remove(best)
        nearest = np.minimum(nearest, D[best])
    return picked


def weighted_vectors(samples: Sequence[Sample], loudness_weight: float | None = None) -> NDArray[np.float64]:
    """Stack the sample vectors, optionally prefixed by a weighted loudness column.

    With a ``loudness_weight`` ``w`` the z-scored RMS is scaled by ``w`` and
    the timbre vector by ``1 - w``.  Samples without an RMS sit at the mean.
    """
    X = stack_vectors([s.vector for s in samples])
    if loudness_weight is None:
        return X
    w = float(loudness_weight)
    if not 0.0 <= w <= 1.0:
        raise GroupingConfigError(f"loudness_weight must be in [0, 1], got {w}")
    known = [float(s.rms) for s in samples if s.rms is not None]
    mean = float(np.mean(known)) if known else 0.0
    rms = np.array([mean if s.rms is None else float(s.rms) for s in samples])
    z = (rms - mean) / np.sqrt(max(float(rms.var()), VARIANCE_FLOOR))
    return np.column_stack([z * w, X * (1.0 - w)])


def cluster_labels(
    X: NDArray[np.float64],
    k: int,
    method: ClusteringMethod = ClusteringMethod.KMEANS,
    *,
    random_state: int = 0,
    eps: float = DBSCAN_EPS,
    min_samples: int = DBSCAN_MIN_SAMPLES,
) -> NDArray[np.int64]:
    """Label the rows of ``X``; DBSCAN ignores ``k`` and marks noise with ``-1``."""
    method = ClusteringMethod(method)
    if method is ClusteringMethod.DBSCAN:
        return DBSCAN(eps=eps, min_samples=min_samples).fit_predict(X)
    if k <= 1:
        return np.zeros(len(X), dtype=np.int64)
    if method is ClusteringMethod.HIERARCHICAL:
        return AgglomerativeClustering(n_clusters=k, linkage="average").fit_predict(X)
    return KMeans(n_clusters=k, random_state=random_state, n_init=10).fit_predict(X)


def select_cluster_count(
    X: NDArray[np.float64], min_k: int, max_k: int, *, random_state: int = 0
) -> int:
    """Return the k in ``[min_k, max_k]`` whose k-means labeling has the best silhouette.

    The range is clamped to ``n - 1`` rows (all singletons score a perfect
    silhouette); ties keep the smaller k.
    """
    n = len(X)
    cap = n - 1 if n > 2 else n
    lo = max(1, min(int(min_k), cap))
    hi = max(lo, min(int(max_k), cap))
    best_k, best_score = lo, -np.inf
    for k in range(lo, hi + 1):
        labels = cluster_labels(X, k, random_state=random_state)
        score, _ = silhouette_scores(X, labels)
        logger.debug("k=%d silhouette=%.4f", k, score)
        if score > best_score:
            best_k, best_score = k, score
    return best_k


def _median_rms(members: list[Sample]) -> float:
    values = [s.rms for s in members if s.rms is not None]
    return float(median(values)) if values else 0.0


def _usable(samples: Sequence[Sample]) -> list[Sample]:
    usable = [s for s in samples if s.vector]
    if len(usable) < len(samples):
        logger.warning("%d sample(s) without a vector left ungrouped", len(samples) - len(usable))
    return usable


def _ordered_groups(
    usable: list[Sample], X: NDArray[np.float64], labels: NDArray[np.int64]
) -> dict[int, list[str]]:
    clusters: dict[int, list[int]] = {}
    noise = 0
    for i, lab in enumerate(labels):
        if lab < 0:
            noise += 1
            continue
        clusters.setdefault(int(lab), []).append(i)
    if noise:
        logger.warning("%d noise sample(s) left ungrouped", noise)
    order = sorted(
        clusters, key=lambda c: (_median_rms([usable[i] for i in clusters[c]]), c)
    )
    out: dict[int, list[str]] = {}
    for new_label, c in enumerate(order):
        idx = clusters[c]
        ranked = sort_by_diversity(X[idx])
        out[new_label] = [usable[idx[r]].id for r in ranked]
    logger.info("grouped %d samples into %d clusters", len(usable) - noise, len(out))
    return out


def auto_group(
    samples: Sequence[Sample],
    k: int | None = None,
    *,
    method: ClusteringMethod | str = ClusteringMethod.KMEANS,
    loudness_weight: float | None = None,
    random_state: int = 0,
    eps: float = DBSCAN_EPS,
    min_samples: int = DBSCAN_MIN_SAMPLES,
) -> dict[int, list[str]]:
    """Cluster ``samples`` by their vectors and return ``{label: [ids]}``.

    Groups are relabelled ``0..k-1`` from quietest to loudest median RMS and
    members are ordered for round-robin diversity.  DBSCAN noise samples are
    left out of every group.
    """

    method = ClusteringMethod(method)
    usable = _usable(samples)
    if not usable:
        return {}
    if k is None:
        k = optimal_cluster_count(len(usable))
    k = max(1, min(int(k), len(usable)))

    X = weighted_vectors(usable, loudness_weight)
    labels = cluster_labels(
        X, k, method, random_state=random_state, eps=eps, min_samples=min_samples
    )
    return _ordered_groups(usable, X, labels)


def group_with_options(
    samples: Sequence[Sample], options: ClusteringOptions, *, random_state: int = 0
) -> dict[int, list[str]]:
    """Apply recommended :class:`ClusteringOptions`.

    k is chosen by silhouette within ``[min_clusters, max_clusters]`` on the
    loudness-weighted vectors, then ``options.method`` clusters them.
    """
    usable = _usable(samples)
    if not usable:
        return {}
    X = weighted_vectors(usable, options.loudness_weight)
    k = select_cluster_count(
        X, options.min_clusters, options.max_clusters, random_state=random_state
    )
    labels = cluster_labels(X, k, options.method, random_state=random_state)
    return _ordered_groups(usable, X, labels)


__all__ = [
    "ClusteringMethod",
    "ClusteringOptions",
    "auto_group",
    "cluster_labels",
    "group_with_options",
    "optimal_cluster_count",
    "select_cluster_count",
    "sort_by_diversity",
    "weighted_vectors",
]
