"""Internal validation indices over normalized feature vectors."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.distance import cdist

from .cancellation import CancelToken, check
from .types import DimensionMismatchError, stack_vectors


def euclid(a: Sequence[float] | NDArray[np.float64], b: Sequence[float] | NDArray[np.float64]) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(f"cannot compare vectors of shape {a.shape} and {b.shape}")
    return float(np.sqrt(np.sum((a - b) ** 2)))


def _as_matrix(vectors: Sequence[Sequence[float]] | NDArray[np.float64]) -> NDArray[np.float64]:
    if isinstance(vectors, np.ndarray) and vectors.ndim == 2:
        return vectors.astype(np.float64, copy=False)
    return stack_vectors(vectors)


def distance_matrix(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64],
    *,
    block_rows: int = 256,
    cancel: CancelToken | None = None,
) -> NDArray[np.float64]:
    """Return the full pairwise Euclidean distance matrix.

    Rows are filled in blocks of ``block_rows`` and ``cancel`` is polled
    between blocks.
    """
    X = _as_matrix(vectors)
    n = X.shape[0]
    D = np.zeros((n, n), dtype=np.float64)
    step = max(1, block_rows)
    for start in range(0, n, step):
        check(cancel)
        stop = min(n, start + step)
        D[start:stop] = cdist(X[start:stop], X, metric="euclidean")
    np.fill_diagonal(D, 0.0)
    return D


def _groups(labels: Sequence[int]) -> dict[int, NDArray[np.intp]]:
    y = np.asarray(labels, dtype=np.int64)
    return {int(g): np.flatnonzero(y == g) for g in np.unique(y)}


def silhouette_scores(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64],
    labels: Sequence[int],
    *,
    block_rows: int = 256,
    cancel: CancelToken | None = None,
) -> tuple[float, dict[int, float]]:
    """Return ``(global_mean, {label: mean})`` silhouette values.

    ``a(i)`` is 0 for singletons; ``s(i)`` is 0 when ``max(a, b)`` is 0 or
    when no other group exists.  With fewer than two vectors the result is
    ``(0.0, {})``.
    """
    X = _as_matrix(vectors)
    n = X.shape[0]
    if n != len(labels):
        raise ValueError("vectors and labels differ in length")
    if n < 2:
        return 0.0, {}
    D = distance_matrix(X, block_rows=block_rows, cancel=cancel)
    groups = _groups(labels)
    y = np.asarray(labels, dtype=np.int64)

    # mean distance from every sample to every group: shape (n, n_groups)
    order = sorted(groups)
    means = np.column_stack([D[:, groups[g]].mean(axis=1) for g in order])
    sizes = np.array([groups[g].size for g in order], dtype=np.float64)
    col_of = {g: j for j, g in enumerate(order)}

    s = np.zeros(n, dtype=np.float64)
    for i in range(n):
        j = col_of[int(y[i])]
        own = sizes[j]
        # own group mean includes the zero self-distance
        a = means[i, j] * own / (own - 1) if own > 1 else 0.0
        others = np.delete(means[i], j)
        if others.size == 0:
            continue
        b = float(others.min())
        denom = max(a, b)
        s[i] = (b - a) / denom if denom > 0 else 0.0

    by_group = {g: float(s[groups[g]].mean()) for g in order}
    return float(s.mean()), by_group


def centroids_and_scatter(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64], labels: Sequence[int]
) -> tuple[dict[int, NDArray[np.float64]], dict[int, float], dict[int, NDArray[np.intp]]]:
    """Return per-label centroids, scatter (mean distance to centroid) and member indices."""
    X = _as_matrix(vectors)
    groups = _groups(labels) if len(labels) else {}
    cents: dict[int, NDArray[np.float64]] = {}
    scatter: dict[int, float] = {}
    for g, idx in groups.items():
        c = X[idx].mean(axis=0)
        cents[g] = c
        scatter[g] = float(np.linalg.norm(X[idx] - c, axis=1).mean())
    return cents, scatter, groups


def davies_bouldin(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64], labels: Sequence[int]
) -> float:
    """Mean over clusters of the worst ``(S_i + S_j) / d(c_i, c_j)`` ratio.

    ``0`` with fewer than two clusters; zero-distance centroid pairs are
    skipped and a cluster with no positive ratio contributes ``0``.
    """
    cents, scatter, _ = centroids_and_scatter(vectors, labels)
    order = sorted(cents)
    if len(order) < 2:
        return 0.0
    total = 0.0
    for i in order:
        worst = 0.0
        for j in order:
            if j == i:
                continue
            m = float(np.linalg.norm(cents[i] - cents[j]))
            if m > 0:
                worst = max(worst, (scatter[i] + scatter[j]) / m)
        total += worst
    return total / len(order)


def calinski_harabasz(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64], labels: Sequence[int]
) -> float:
    """Return ``(tr(B) / (k - 1)) / (tr(W) / (n - k))``.

    ``0`` unless ``1 < k < n``; ``0`` as well when the within-cluster
    dispersion vanishes.
    """
    X = _as_matrix(vectors)
    n = X.shape[0]
    if n <= 2:
        return 0.0
    k = len(set(int(v) for v in labels))
    if not 1 < k < n:
        return 0.0
    mu = X.mean(axis=0)
    cents, _, groups = centroids_and_scatter(X, labels)
    within = 0.0
    between = 0.0
    for g, idx in groups.items():
        within += float(np.sum((X[idx] - cents[g]) ** 2))
        between += idx.size * float(np.sum((cents[g] - mu) ** 2))
    if within == 0:
        return 0.0
    return (between / (k - 1)) / (within / (n - k))


__all__ = [
    "calinski_harabasz",
    "centroids_and_scatter",
    "davies_bouldin",
    "distance_matrix",
    "euclid",
    "silhouette_scores",
]
