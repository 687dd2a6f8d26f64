from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .types import LabelAssignment


@dataclass(frozen=True)
class Ambiguity:
    """Where one sample sits relative to the automatic centroids."""

    sample_id: str
    distances: tuple[tuple[int, float], ...]
    nearest: int | None
    second_nearest: int | None
    margin: float


def group_centroids(
    labels: LabelAssignment,
    vectors: Mapping[str, NDArray[np.float64]],
    ids: Iterable[str] | None = None,
) -> dict[int, NDArray[np.float64]]:
    """Mean vector per label over ``ids`` (default: every labelled id) that carry a vector."""
    members: dict[int, list[NDArray[np.float64]]] = {}
    for sid in ids if ids is not None else labels:
        if sid not in labels or sid not in vectors:
            continue
        members.setdefault(int(labels[sid]), []).append(vectors[sid])
    return {g: np.mean(np.vstack(members[g]), axis=0) for g in sorted(members)}


def sample_ambiguity(
    sample_id: str,
    vector: NDArray[np.float64],
    centroids: Mapping[int, NDArray[np.float64]],
) -> Ambiguity:
    """Rank ``centroids`` by distance to ``vector``.

    ``margin`` is ``d2 / d1``; it is infinite with fewer than two centroids
    or when the nearest centroid coincides with the sample.
    """
    ranked = sorted(
        ((float(np.linalg.norm(vector - c)), g) for g, c in centroids.items()),
    )
    distances = tuple((g, d) for d, g in ranked)
    nearest = distances[0][0] if distances else None
    second = distances[1][0] if len(distances) > 1 else None
    if len(distances) > 1 and distances[0][1] > 0:
        margin = distances[1][1] / distances[0][1]
    else:
        margin = math.inf
    return Ambiguity(
        sample_id=sample_id,
        distances=distances,
        nearest=nearest,
        second_nearest=second,
        margin=margin,
    )


def analyze_ambiguity(
    ids: Iterable[str],
    vectors: Mapping[str, NDArray[np.float64]],
    centroids: Mapping[int, NDArray[np.float64]],
) -> dict[str, Ambiguity]:
    return {
        sid: sample_ambiguity(sid, vectors[sid], centroids)
        for sid in ids
        if sid in vectors
    }


__all__ = ["Ambiguity", "analyze_ambiguity", "group_centroids", "sample_ambiguity"]
