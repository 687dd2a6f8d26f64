"""JSON codec for grouping sessions and comparison reports.

A session bundles the analysed samples with both groupings and, once a
comparison ran, its :class:`ComparisonMetrics`.  Documents are written with
sorted keys so two dumps of the same session are byte-identical.  ``id`` and
``date`` are regenerated on decode; every other field round-trips.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .types import (
    ClassMetrics,
    ComparisonMetrics,
    Grouping,
    MergeFinding,
    Sample,
    SampleComparison,
    SessionFormatError,
    SplitFinding,
    invert_grouping,
)

DEFAULT_WINDOW_MS = 256.0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class GroupingSession:
    window_length_ms: float = DEFAULT_WINDOW_MS
    samples: tuple[Sample, ...] = ()
    manual_grouping: dict[int, list[str]] = field(default_factory=dict)
    automatic_grouping: dict[int, list[str]] = field(default_factory=dict)
    comparison_metrics: ComparisonMetrics | None = None
    id: str = field(default_factory=_new_id)
    date: str = field(default_factory=_now)

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def sample_by_id(self) -> dict[str, Sample]:
        return {s.id: s for s in self.samples}

    def manual_labels(self) -> dict[str, int]:
        return invert_grouping(self.manual_grouping)

    def automatic_labels(self) -> dict[str, int]:
        return invert_grouping(self.automatic_grouping)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "window_length_ms": self.window_length_ms,
            "sample_count": self.sample_count,
            "samples": [sample_to_dict(s) for s in self.samples],
            "manual_grouping": _grouping_to_dict(self.manual_grouping),
            "automatic_grouping": _grouping_to_dict(self.automatic_grouping),
            "comparison_metrics": (
                metrics_to_dict(self.comparison_metrics)
                if self.comparison_metrics is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroupingSession:
        if not isinstance(data, dict):
            raise SessionFormatError("session document must be a JSON object")
        try:
            metrics = data.get("comparison_metrics")
            return cls(
                window_length_ms=float(data.get("window_length_ms", DEFAULT_WINDOW_MS)),
                samples=tuple(sample_from_dict(s) for s in data.get("samples", [])),
                manual_grouping=grouping_from_dict(data.get("manual_grouping", {})),
                automatic_grouping=grouping_from_dict(data.get("automatic_grouping", {})),
                comparison_metrics=metrics_from_dict(metrics) if metrics is not None else None,
            )
        except SessionFormatError:
            raise
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise SessionFormatError(f"invalid session document: {exc}") from exc


# ---------------------------------------------------------------------------
# Field codecs
# ---------------------------------------------------------------------------

_SAMPLE_FIELDS = {f.name for f in fields(Sample)}


def sample_to_dict(sample: Sample) -> dict[str, Any]:
    d = asdict(sample)
    d["vector"] = list(sample.vector)
    return d


def sample_from_dict(data: dict[str, Any]) -> Sample:
    unknown = set(data) - _SAMPLE_FIELDS
    if unknown:
        raise SessionFormatError(f"unknown sample fields: {sorted(unknown)}")
    if "id" not in data:
        raise SessionFormatError("sample without 'id'")
    d = dict(data)
    d["id"] = str(d["id"])
    d["vector"] = tuple(float(v) for v in d.get("vector") or ())
    return Sample(**d)


def _grouping_to_dict(grouping: Grouping) -> dict[str, list[str]]:
    return {str(k): list(grouping[k]) for k in sorted(grouping)}


def grouping_from_dict(data: dict[Any, Any]) -> dict[int, list[str]]:
    if not isinstance(data, dict):
        raise SessionFormatError("grouping must be an object of label -> [sample ids]")
    out = {int(k): [str(s) for s in v] for k, v in data.items()}
    # validates labels and double assignment
    invert_grouping(out)
    return {k: out[k] for k in sorted(out)}


def _int_keys(data: dict[Any, Any], value=lambda v: v) -> dict[int, Any]:
    return {int(k): value(v) for k, v in sorted(data.items(), key=lambda kv: int(kv[0]))}


def _float_or_none(v: Any) -> float | None:
    return None if v is None else float(v)


def metrics_to_dict(metrics: ComparisonMetrics) -> dict[str, Any]:
    """Encode ``metrics`` as a JSON-ready dict; map keys become strings."""

    d = asdict(metrics)
    for name in (
        "label_mapping",
        "one_to_one_mapping",
        "per_class",
        "silhouette_by_auto_cluster",
        "silhouette_by_manual_group",
    ):
        d[name] = {str(k): v for k, v in d[name].items()}
    d["confusion_matrix"] = [list(row) for row in metrics.confusion_matrix]
    d["manual_labels"] = list(metrics.manual_labels)
    d["auto_labels"] = list(metrics.auto_labels)
    d["merges"] = [
        {"auto_label": m.auto_label, "manual_shares": [list(p) for p in m.manual_shares]}
        for m in metrics.merges
    ]
    d["splits"] = [
        {"manual_label": s.manual_label, "auto_shares": [list(p) for p in s.auto_shares]}
        for s in metrics.splits
    ]
    return d


def _pairs(data: list[Any]) -> tuple[tuple[int, float], ...]:
    return tuple((int(a), float(b)) for a, b in data)


def _comparison_from_dict(d: dict[str, Any]) -> SampleComparison:
    margin = d.get("margin")
    return SampleComparison(
        sample_id=str(d["sample_id"]),
        manual_group=int(d["manual_group"]),
        auto_group=int(d["auto_group"]),
        agreement=bool(d["agreement"]),
        mapped_auto_group=None if d.get("mapped_auto_group") is None else int(d["mapped_auto_group"]),
        distance_to_auto_centroid=_float_or_none(d.get("distance_to_auto_centroid")),
        distance_to_manual_centroid=_float_or_none(d.get("distance_to_manual_centroid")),
        nearest_auto_cluster=(
            None if d.get("nearest_auto_cluster") is None else int(d["nearest_auto_cluster"])
        ),
        second_nearest_auto_cluster=(
            None
            if d.get("second_nearest_auto_cluster") is None
            else int(d["second_nearest_auto_cluster"])
        ),
        margin=None if margin is None else float(margin),
    )


def metrics_from_dict(d: dict[str, Any]) -> ComparisonMetrics:
    """Inverse of :func:`metrics_to_dict`."""

    if not isinstance(d, dict):
        raise SessionFormatError("comparison_metrics must be an object")
    try:
        return ComparisonMetrics(
            adjusted_rand_index=float(d["adjusted_rand_index"]),
            normalized_mutual_info=float(d["normalized_mutual_info"]),
            purity=float(d["purity"]),
            silhouette=float(d["silhouette"]),
            mapped_accuracy=float(d["mapped_accuracy"]),
            one_to_one_accuracy=float(d["one_to_one_accuracy"]),
            accuracy_gap=float(d["accuracy_gap"]),
            homogeneity=float(d["homogeneity"]),
            completeness=float(d["completeness"]),
            v_measure=float(d["v_measure"]),
            b3_precision=float(d["b3_precision"]),
            b3_recall=float(d["b3_recall"]),
            b3_f1=float(d["b3_f1"]),
            davies_bouldin=_float_or_none(d.get("davies_bouldin")),
            calinski_harabasz=_float_or_none(d.get("calinski_harabasz")),
            manual_cluster_count=int(d["manual_cluster_count"]),
            auto_cluster_count=int(d["auto_cluster_count"]),
            samples_scored=int(d["samples_scored"]),
            total_samples=int(d["total_samples"]),
            coverage=float(d["coverage"]),
            manual_labels=tuple(int(v) for v in d["manual_labels"]),
            auto_labels=tuple(int(v) for v in d["auto_labels"]),
            confusion_matrix=tuple(tuple(int(v) for v in row) for row in d["confusion_matrix"]),
            label_mapping=_int_keys(d.get("label_mapping", {}), int),
            one_to_one_mapping=_int_keys(d.get("one_to_one_mapping", {}), int),
            per_class=_int_keys(
                d.get("per_class", {}),
                lambda v: ClassMetrics(
                    precision=float(v["precision"]),
                    recall=float(v["recall"]),
                    f1=float(v["f1"]),
                ),
            ),
            silhouette_by_auto_cluster=_int_keys(d.get("silhouette_by_auto_cluster", {}), float),
            silhouette_by_manual_group=_int_keys(d.get("silhouette_by_manual_group", {}), float),
            merges=tuple(
                MergeFinding(auto_label=int(m["auto_label"]), manual_shares=_pairs(m["manual_shares"]))
                for m in d.get("merges", [])
            ),
            splits=tuple(
                SplitFinding(manual_label=int(s["manual_label"]), auto_shares=_pairs(s["auto_shares"]))
                for s in d.get("splits", [])
            ),
            detailed_comparison=tuple(
                _comparison_from_dict(c) for c in d.get("detailed_comparison", [])
            ),
        )
    except (TypeError, ValueError, KeyError) as exc:
        raise SessionFormatError(f"invalid comparison metrics: {exc}") from exc


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def dumps(session: GroupingSession) -> str:
    """Serialise ``session``; infinite margins are written as ``Infinity``."""
    return json.dumps(session.to_dict(), sort_keys=True, indent=2)


def loads(text: str) -> GroupingSession:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SessionFormatError(f"not a JSON document: {exc}") from exc
    return GroupingSession.from_dict(data)


def save(session: GroupingSession, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps(session), encoding="utf-8")
    return path


def load(path: str | Path) -> GroupingSession:
    return loads(Path(path).read_text(encoding="utf-8"))


def load_input(path: str | Path) -> GroupingSession:
    """Read a JSON or YAML input document.

    Expected keys: ``samples`` (list of sample objects), ``manual`` and
    optionally ``automatic`` (``{label: [ids]}``) and ``window_length_ms``.
    The full session keys ``manual_grouping`` / ``automatic_grouping`` are
    accepted as well.
    """

    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SessionFormatError(f"{path.name}: cannot parse input: {exc}") from exc
    if not isinstance(data, dict):
        raise SessionFormatError(f"{path.name}: expected a mapping at the top level")
    doc = dict(data)
    if "manual" in doc:
        doc["manual_grouping"] = doc.pop("manual")
    if "automatic" in doc:
        doc["automatic_grouping"] = doc.pop("automatic")
    doc.pop("comparison_metrics", None)
    return GroupingSession.from_dict(doc)


__all__ = [
    "GroupingSession",
    "dumps",
    "grouping_from_dict",
    "load",
    "load_input",
    "loads",
    "metrics_from_dict",
    "metrics_to_dict",
    "sample_from_dict",
    "sample_to_dict",
    "save",
]
