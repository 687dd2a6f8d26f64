"""Iterative split/merge calibration of an automatic grouping toward a target K.

Each step either bisects the cluster with the weakest silhouette or merges
the pair of clusters whose union scores best, then recomputes quality on the
new labeling.  The loop ends when the target K is reached, when a split
stalls (cluster too small or not separable), or after ``max_iterations``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.distance import cdist

from .cancellation import CancelToken, check
from .config import DEFAULT_CONFIG, EngineConfig
from .internal import calinski_harabasz, davies_bouldin, silhouette_scores
from .types import (
    CalibrationConfigError,
    ClusteringState,
    ClusterQuality,
    LabelAssignment,
    check_labels,
    stack_vectors,
    vector_map,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationStep:
    iteration: int
    action: str
    k: int
    quality: ClusterQuality
    objective: float
    detail: str = ""


@dataclass(frozen=True)
class CalibrationResult:
    """Final state plus the step history.

    ``iterations`` counts the steps actually taken.  A stalled split ends the
    loop at once, so a run that cannot split reports ``iterations=1`` with a
    single ``"stall"`` step rather than ``max_iterations`` repeats of it; the
    resulting labels are the same either way.
    """

    state: ClusteringState
    target_k: int
    iterations: int
    history: tuple[CalibrationStep, ...] = ()

    @property
    def reached(self) -> bool:
        return self.state.k == self.target_k


def local_bisecting_kmeans(
    vectors: Sequence[Sequence[float]] | NDArray[np.float64],
    k: int = 2,
    *,
    max_iterations: int = 10,
) -> tuple[list[int], NDArray[np.float64]]:
    """Deterministic k-means seeded from the farthest pair of points.

    Returns ``(assignments, centroids)``.  With fewer vectors than ``k``
    every vector is assigned to cluster 0.  Assignment ties go to the lower
    cluster index and an emptied cluster keeps its previous centroid.
    """
    X = stack_vectors(vectors) if not isinstance(vectors, np.ndarray) else vectors.astype(np.float64)
    n = X.shape[0]
    if n < k or k < 2:
        cent = X[:1].copy() if n else np.zeros((0, 0))
        return [0] * n, cent

    D = cdist(X, X)
    # first pair with the strictly largest distance, scanning i < j
    seeds = [0, 1]
    best = 0.0
    for i in range(n):
        for j in range(i + 1, n):
            if D[i, j] > best:
                best = D[i, j]
                seeds = [i, j]
    while len(seeds) < k:
        nearest = D[:, seeds].min(axis=1)
        nearest[seeds] = -1.0
        seeds.append(int(np.argmax(nearest)))

    centroids = X[seeds].copy()
    labels = np.zeros(n, dtype=np.int64)
    for _ in range(max_iterations):
        new = np.argmin(cdist(X, centroids), axis=1)
        if np.array_equal(new, labels):
            break
        labels = new
        for c in range(k):
            members = X[labels == c]
            if len(members):
                centroids[c] = members.mean(axis=0)
    return [int(v) for v in labels], centroids


class KCalibrator:
    """Split/merge calibrator over a :class:`ClusteringState`."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, cancel: CancelToken | None = None):
        self.config = config
        self.cancel = cancel

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------
    def recompute_state(
        self, labels: Mapping[str, int], vectors: Mapping[str, NDArray[np.float64]]
    ) -> ClusteringState:
        """Build a fresh state: centroids, silhouettes, DB, CH over vector-bearing ids."""
        labels = dict(labels)
        ids = [sid for sid in labels if sid in vectors]
        if not ids:
            return ClusteringState(
                labels=labels,
                vectors=dict(vectors),
                centroids={},
                quality=ClusterQuality(silhouette=0.0),
                silhouette_by_cluster={},
            )
        X = stack_vectors([vectors[sid] for sid in ids])
        y = [labels[sid] for sid in ids]
        sil, by_cluster = silhouette_scores(
            X, y, block_rows=self.config.distance_block_rows, cancel=self.cancel
        )
        yy = np.asarray(y)
        centroids = {int(g): X[yy == g].mean(axis=0) for g in sorted(set(y))}
        quality = ClusterQuality(
            silhouette=sil,
            davies_bouldin=davies_bouldin(X, y),
            calinski_harabasz=calinski_harabasz(X, y),
        )
        return ClusteringState(
            labels=labels,
            vectors=dict(vectors),
            centroids=centroids,
            quality=quality,
            silhouette_by_cluster=by_cluster,
        )

    def initial_state(
        self,
        labels: LabelAssignment,
        vectors: Mapping[str, Sequence[float]],
    ) -> ClusteringState:
        return self.recompute_state(check_labels(labels), vector_map(vectors))

    @staticmethod
    def quality_score(quality: ClusterQuality) -> float:
        return quality.composite

    def selection_objective(self, quality: ClusterQuality, k: int, target_k: int) -> float:
        """Composite quality minus ``lambda * (k - target_k) ** 2``."""
        return quality.composite - self.config.selection_lambda * float(k - target_k) ** 2

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def split_cluster(self, state: ClusteringState, cluster_id: int) -> ClusteringState:
        """Bisect ``cluster_id``; group 1 receives ``max(label) + 1``.

        Clusters below ``min_split_size`` members are returned unchanged.
        """
        members = [
            sid for sid, g in state.labels.items() if g == cluster_id and sid in state.vectors
        ]
        if len(members) < self.config.min_split_size:
            logger.debug(
                "cluster %d has %d members, too small to split", cluster_id, len(members)
            )
            return state
        assign, _ = local_bisecting_kmeans(
            [state.vectors[sid] for sid in members],
            2,
            max_iterations=self.config.kmeans_max_iterations,
        )
        new_label = max(state.labels.values()) + 1
        labels = dict(state.labels)
        for sid, a in zip(members, assign):
            labels[sid] = cluster_id if a == 0 else new_label
        return self.recompute_state(labels, state.vectors)

    def merge_best_pair(self, state: ClusteringState) -> ClusteringState:
        """Relabel ``b`` into ``a`` for every pair ``a < b`` and keep the best composite."""
        clusters = sorted(set(state.labels.values()))
        best: tuple[float, ClusteringState] | None = None
        for i, a in enumerate(clusters):
            for b in clusters[i + 1 :]:
                check(self.cancel)
                labels = {sid: (a if g == b else g) for sid, g in state.labels.items()}
                candidate = self.recompute_state(labels, state.vectors)
                score = candidate.quality.composite
                logger.debug("merge %d <- %d scores %.4f", a, b, score)
                if best is None or score > best[0]:
                    best = (score, candidate)
        return state if best is None else best[1]

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def calibrate_to_k(self, target_k: int, state: ClusteringState) -> CalibrationResult:
        if target_k <= 0:
            raise CalibrationConfigError(f"target_k must be positive, got {target_k}")

        history: list[CalibrationStep] = []
        iterations = 0
        while iterations < self.config.max_iterations:
            check(self.cancel)
            current = state.k
            if current == target_k:
                break
            iterations += 1
            if current < target_k:
                if not state.silhouette_by_cluster:
                    logger.info("no silhouette information, cannot split further")
                    break
                # lowest silhouette, ties to the lowest label
                worst = min(
                    sorted(state.silhouette_by_cluster),
                    key=lambda g: state.silhouette_by_cluster[g],
                )
                nxt = self.split_cluster(state, worst)
                action, detail = "split", f"cluster {worst}"
            else:
                nxt = self.merge_best_pair(state)
                action, detail = "merge", ""
            if nxt.k == current:
                logger.info("iteration %d: %s stalled at K=%d", iterations, action, current)
                objective = self.selection_objective(state.quality, current, target_k)
                history.append(
                    CalibrationStep(iterations, "stall", current, state.quality, objective, detail)
                )
                break
            state = nxt
            objective = self.selection_objective(state.quality, state.k, target_k)
            logger.info(
                "iteration %d: %s -> K=%d composite=%.4f objective=%.4f",
                iterations,
                action,
                state.k,
                state.quality.composite,
                objective,
            )
            history.append(
                CalibrationStep(iterations, action, state.k, state.quality, objective, detail)
            )
        return CalibrationResult(
            state=state, target_k=target_k, iterations=iterations, history=tuple(history)
        )


def calibrate_labels(
    labels: LabelAssignment,
    vectors: Mapping[str, Sequence[float]],
    target_k: int,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    cancel: CancelToken | None = None,
) -> CalibrationResult:
    """Convenience wrapper: build the initial state and calibrate it."""
    if target_k <= 0:
        raise CalibrationConfigError(f"target_k must be positive, got {target_k}")
    calibrator = KCalibrator(config, cancel)
    return calibrator.calibrate_to_k(target_k, calibrator.initial_state(labels, vectors))


__all__ = [
    "CalibrationResult",
    "CalibrationStep",
    "KCalibrator",
    "calibrate_labels",
    "local_bisecting_kmeans",
]
