"""Value types shared by the evaluation engine.

Everything here is a frozen dataclass.  Reports are produced once per
comparison and never mutated afterwards; the calibrator builds a fresh
:class:`ClusteringState` for every split or merge step.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np

LabelAssignment = Mapping[str, int]
Grouping = Mapping[int, Sequence[str]]


class GroupingEvalError(Exception):
    """Base class for engine errors."""


class GroupingConfigError(GroupingEvalError, ValueError):
    """Raised when caller supplied labels, vectors or settings are malformed."""


class DimensionMismatchError(GroupingConfigError):
    """Raised when feature vectors do not share one dimensionality."""


class CalibrationConfigError(GroupingConfigError):
    """Raised when the calibrator is asked for an impossible target."""


class SessionFormatError(GroupingEvalError, ValueError):
    """Raised when a session document cannot be decoded."""


RAW_FEATURES = (
    "rms",
    "spectral_centroid_hz",
    "spectral_rolloff_hz",
    "spectral_bandwidth_hz",
    "spectral_flatness",
    "zero_crossing_rate",
)


@dataclass(frozen=True)
class Sample:
    """One transient-bounded audio region.

    ``vector`` is the normalized timbre vector used for every distance.  The
    raw scalar features are carried for reporting only.
    """

    id: str
    vector: tuple[float, ...] = ()
    name: str | None = None
    index: int | None = None
    sample_position: int | None = None
    duration: float | None = None
    rms: float | None = None
    spectral_centroid_hz: float | None = None
    spectral_rolloff_hz: float | None = None
    spectral_bandwidth_hz: float | None = None
    spectral_flatness: float | None = None
    zero_crossing_rate: float | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class ClassMetrics:
    precision: float
    recall: float
    f1: float


@dataclass(frozen=True)
class MergeFinding:
    """Several manual groups collapsed into one automatic cluster."""

    auto_label: int
    manual_shares: tuple[tuple[int, float], ...]

    @property
    def manual_labels(self) -> tuple[int, ...]:
        return tuple(m for m, _ in self.manual_shares)

    def describe(self) -> str:
        parts = ", ".join(f"M{m}({int(s * 100)}%)" for m, s in self.manual_shares)
        return f"{{{parts}}} -> Auto {self.auto_label}"


@dataclass(frozen=True)
class SplitFinding:
    """One manual group spread over its two strongest automatic clusters."""

    manual_label: int
    auto_shares: tuple[tuple[int, float], ...]

    @property
    def auto_labels(self) -> tuple[int, ...]:
        return tuple(a for a, _ in self.auto_shares)

    def describe(self) -> str:
        parts = ", ".join(f"A{a}({int(s * 100)}%)" for a, s in self.auto_shares)
        return f"Manual {self.manual_label} -> {{{parts}}}"


@dataclass(frozen=True)
class SampleComparison:
    sample_id: str
    manual_group: int
    auto_group: int
    agreement: bool
    mapped_auto_group: int | None = None
    distance_to_auto_centroid: float | None = None
    distance_to_manual_centroid: float | None = None
    nearest_auto_cluster: int | None = None
    second_nearest_auto_cluster: int | None = None
    margin: float | None = None

    @property
    def centroid_delta(self) -> float | None:
        if self.distance_to_auto_centroid is None or self.distance_to_manual_centroid is None:
            return None
        return self.distance_to_auto_centroid - self.distance_to_manual_centroid


@dataclass(frozen=True)
class ComparisonMetrics:
    """Immutable outcome of one manual vs. automatic comparison."""

    adjusted_rand_index: float
    normalized_mutual_info: float
    purity: float
    silhouette: float
    mapped_accuracy: float
    one_to_one_accuracy: float
    accuracy_gap: float
    homogeneity: float
    completeness: float
    v_measure: float
    b3_precision: float
    b3_recall: float
    b3_f1: float
    davies_bouldin: float | None
    calinski_harabasz: float | None
    manual_cluster_count: int
    auto_cluster_count: int
    samples_scored: int
    total_samples: int
    coverage: float
    manual_labels: tuple[int, ...]
    auto_labels: tuple[int, ...]
    confusion_matrix: tuple[tuple[int, ...], ...]
    label_mapping: dict[int, int] = field(default_factory=dict)
    one_to_one_mapping: dict[int, int] = field(default_factory=dict)
    per_class: dict[int, ClassMetrics] = field(default_factory=dict)
    silhouette_by_auto_cluster: dict[int, float] = field(default_factory=dict)
    silhouette_by_manual_group: dict[int, float] = field(default_factory=dict)
    merges: tuple[MergeFinding, ...] = ()
    splits: tuple[SplitFinding, ...] = ()
    detailed_comparison: tuple[SampleComparison, ...] = ()

    def misclustered(self) -> list[SampleComparison]:
        return [c for c in self.detailed_comparison if not c.agreement]

    def ambiguous(self, max_margin: float = 1.2) -> list[SampleComparison]:
        return [
            c
            for c in self.detailed_comparison
            if c.margin is not None and c.margin < max_margin
        ]


@dataclass(frozen=True)
class ClusterQuality:
    silhouette: float
    davies_bouldin: float | None = None
    calinski_harabasz: float | None = None

    @property
    def composite(self) -> float:
        """Silhouette plus bounded Davies-Bouldin and Calinski-Harabasz bonuses."""
        score = self.silhouette
        db = self.davies_bouldin
        ch = self.calinski_harabasz
        if db is not None and math.isfinite(db):
            score += max(0.0, 1.0 - min(db, 2.0)) * 0.2
        if ch is not None and math.isfinite(ch):
            score += min(ch / 1000.0, 0.2)
        return score


@dataclass(frozen=True, eq=False)
class ClusteringState:
    """Working value of the k-calibrator.

    ``labels`` keeps the caller's sample order.  ``vectors`` is shared
    read-only between states; ``labels`` and the derived maps are rebuilt
    for every step.
    """

    labels: dict[str, int]
    vectors: dict[str, np.ndarray]
    centroids: dict[int, np.ndarray]
    quality: ClusterQuality
    silhouette_by_cluster: dict[int, float]

    @property
    def k(self) -> int:
        return len(set(self.labels.values()))

    def grouping(self) -> dict[int, list[str]]:
        out: dict[int, list[str]] = {}
        for sid, label in self.labels.items():
            out.setdefault(label, []).append(sid)
        return {label: out[label] for label in sorted(out)}


def invert_grouping(grouping: Grouping) -> dict[str, int]:
    """Return ``{sample_id: label}`` for a ``{label: [sample_id, ...]}`` grouping."""

    out: dict[str, int] = {}
    for label in sorted(grouping):
        lab = int(label)
        if lab < 0:
            raise GroupingConfigError(f"negative cluster label {lab}")
        for sid in grouping[label]:
            sid = str(sid)
            if sid in out and out[sid] != lab:
                raise GroupingConfigError(
                    f"sample {sid!r} assigned to groups {out[sid]} and {lab}"
                )
            out[sid] = lab
    return out


def grouping_from_labels(labels: LabelAssignment) -> dict[int, list[str]]:
    """Inverse of :func:`invert_grouping`; groups are returned in label order."""

    out: dict[int, list[str]] = {}
    for sid, label in labels.items():
        out.setdefault(int(label), []).append(sid)
    return {label: out[label] for label in sorted(out)}


def check_labels(labels: LabelAssignment) -> dict[str, int]:
    out: dict[str, int] = {}
    for sid, label in labels.items():
        lab = int(label)
        if lab < 0:
            raise GroupingConfigError(f"negative cluster label {lab} for {sid!r}")
        out[str(sid)] = lab
    return out


def stack_vectors(vectors: Iterable[Sequence[float]]) -> np.ndarray:
    """Stack feature vectors into an ``(n, d)`` float matrix.

    Raises :class:`DimensionMismatchError` when lengths differ.
    """

    rows = [np.asarray(v, dtype=np.float64).ravel() for v in vectors]
    if not rows:
        return np.zeros((0, 0), dtype=np.float64)
    dims = {r.shape[0] for r in rows}
    if len(dims) != 1:
        raise DimensionMismatchError(
            f"feature vectors must share one dimensionality, got {sorted(dims)}"
        )
    return np.vstack(rows)


def vector_map(samples: Iterable[Sample] | Mapping[str, Sequence[float]]) -> dict[str, np.ndarray]:
    """Return ``{id: vector}`` for every sample that carries a non-empty vector."""

    if isinstance(samples, Mapping):
        items = [(str(k), v) for k, v in samples.items()]
    else:
        items = [(s.id, s.vector) for s in samples]
    out: dict[str, np.ndarray] = {}
    dims: set[int] = set()
    for sid, vec in items:
        arr = np.asarray(vec, dtype=np.float64).ravel()
        if arr.size == 0:
            continue
        dims.add(arr.shape[0])
        out[sid] = arr
    if len(dims) > 1:
        raise DimensionMismatchError(
            f"feature vectors must share one dimensionality, got {sorted(dims)}"
        )
    return out


__all__ = [
    "CalibrationConfigError",
    "ClassMetrics",
    "ClusterQuality",
    "ClusteringState",
    "ComparisonMetrics",
    "DimensionMismatchError",
    "Grouping",
    "GroupingConfigError",
    "GroupingEvalError",
    "LabelAssignment",
    "MergeFinding",
    "RAW_FEATURES",
    "Sample",
    "SampleComparison",
    "SessionFormatError",
    "SplitFinding",
    "check_labels",
    "grouping_from_labels",
    "invert_grouping",
    "stack_vectors",
    "vector_map",
]
