"""Build a :class:`ComparisonMetrics` snapshot for one manual vs. automatic grouping.

The contingency table is computed once and shared by every external metric
and by the label aligner.  Internal metrics and the ambiguity analysis run on
the scored samples that carry a feature vector.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from .alignment import (
    find_merges,
    find_splits,
    greedy_one_to_one_mapping,
    majority_mapping,
    mapping_accuracy,
    per_class_prf1,
)
from .ambiguity import analyze_ambiguity, group_centroids
from .cancellation import CancelToken, check
from .config import DEFAULT_CONFIG, EngineConfig
from .contingency import build_contingency
from .external import (
    adjusted_rand_index,
    b_cubed,
    homogeneity_completeness_v,
    normalized_mutual_info,
    purity,
)
from .internal import calinski_harabasz, davies_bouldin, silhouette_scores
from .types import (
    ComparisonMetrics,
    Grouping,
    LabelAssignment,
    Sample,
    SampleComparison,
    check_labels,
    invert_grouping,
    stack_vectors,
    vector_map,
)

logger = logging.getLogger(__name__)

SampleInput = Iterable[Sample] | Mapping[str, Sequence[float]] | None


def as_assignment(labels: LabelAssignment | Grouping) -> dict[str, int]:
    """Accept either ``{id: label}`` or ``{label: [id, ...]}`` and return ``{id: label}``."""

    if not labels:
        return {}
    first = next(iter(labels.values()))
    if isinstance(first, (list, tuple, set, frozenset)):
        return invert_grouping(labels)  # type: ignore[arg-type]
    return check_labels(labels)  # type: ignore[arg-type]


def _sample_order(samples: SampleInput) -> dict[str, int]:
    if samples is None:
        return {}
    if isinstance(samples, Mapping):
        return {str(k): i for i, k in enumerate(samples)}
    return {s.id: i for i, s in enumerate(samples)}


def compare_groupings(
    manual: LabelAssignment | Grouping,
    automatic: LabelAssignment | Grouping,
    samples: SampleInput = None,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    cancel: CancelToken | None = None,
) -> ComparisonMetrics:
    """Compare ``automatic`` against the reference ``manual`` grouping.

    Never raises on empty or degenerate input; malformed labels or vectors of
    mixed dimensionality raise :class:`GroupingConfigError`.
    """

    manual = as_assignment(manual)
    automatic = as_assignment(automatic)
    if samples is not None and not isinstance(samples, Mapping):
        samples = list(samples)
    vectors = vector_map(samples) if samples is not None else {}

    ct = build_contingency(manual, automatic)
    union = set(manual) | set(automatic)
    unscored = len(union) - ct.n
    if unscored:
        logger.warning("%d sample(s) labelled by only one grouping are not scored", unscored)
    coverage = ct.n / len(union) if union else 0.0

    ari = adjusted_rand_index(ct)
    nmi = normalized_mutual_info(ct, floor=config.probability_floor)
    pur = purity(ct)
    homo, comp, v = homogeneity_completeness_v(ct, floor=config.probability_floor)
    b3_p, b3_r, b3_f = b_cubed(ct)

    mapping = majority_mapping(ct)
    one_to_one = greedy_one_to_one_mapping(ct)
    mapped_acc = mapping_accuracy(ct, mapping)
    one_acc = mapping_accuracy(ct, one_to_one)
    check(cancel)

    with_vec = [sid for sid in ct.scored_ids if sid in vectors]
    missing = len(ct.scored_ids) - len(with_vec)
    if missing:
        logger.warning("%d scored sample(s) have no feature vector", missing)

    silhouette = 0.0
    sil_auto: dict[int, float] = {}
    sil_manual: dict[int, float] = {}
    db: float | None = None
    ch: float | None = None
    if with_vec:
        X = stack_vectors([vectors[sid] for sid in with_vec])
        auto_y = [automatic[sid] for sid in with_vec]
        manual_y = [manual[sid] for sid in with_vec]
        rows = config.distance_block_rows
        silhouette, sil_auto = silhouette_scores(X, auto_y, block_rows=rows, cancel=cancel)
        _, sil_manual = silhouette_scores(X, manual_y, block_rows=rows, cancel=cancel)
        db = davies_bouldin(X, auto_y)
        ch = calinski_harabasz(X, auto_y)
    check(cancel)

    auto_cents = group_centroids(automatic, vectors, with_vec)
    manual_cents = group_centroids(manual, vectors, with_vec)
    amb = analyze_ambiguity(with_vec, vectors, auto_cents)

    order = _sample_order(samples)
    tail = len(order)
    ranked_ids = sorted(ct.scored_ids, key=lambda sid: (order.get(sid, tail), sid))
    details = []
    for sid in ranked_ids:
        m, a = manual[sid], automatic[sid]
        mapped = mapping.get(m)
        d_auto = d_manual = None
        nearest = second = None
        margin = None
        if sid in amb:
            vec = vectors[sid]
            d_auto = float(np.linalg.norm(vec - auto_cents[a]))
            d_manual = float(np.linalg.norm(vec - manual_cents[m]))
            nearest = amb[sid].nearest
            second = amb[sid].second_nearest
            margin = amb[sid].margin
        details.append(
            SampleComparison(
                sample_id=sid,
                manual_group=m,
                auto_group=a,
                agreement=mapped == a,
                mapped_auto_group=mapped,
                distance_to_auto_centroid=d_auto,
                distance_to_manual_centroid=d_manual,
                nearest_auto_cluster=nearest,
                second_nearest_auto_cluster=second,
                margin=margin,
            )
        )

    metrics = ComparisonMetrics(
        adjusted_rand_index=ari,
        normalized_mutual_info=nmi,
        purity=pur,
        silhouette=silhouette,
        mapped_accuracy=mapped_acc,
        one_to_one_accuracy=one_acc,
        accuracy_gap=mapped_acc - one_acc,
        homogeneity=homo,
        completeness=comp,
        v_measure=v,
        b3_precision=b3_p,
        b3_recall=b3_r,
        b3_f1=b3_f,
        davies_bouldin=db,
        calinski_harabasz=ch,
        manual_cluster_count=len(ct.manual_labels),
        auto_cluster_count=len(ct.auto_labels),
        samples_scored=ct.n,
        total_samples=len(union),
        coverage=coverage,
        manual_labels=ct.manual_labels,
        auto_labels=ct.auto_labels,
        confusion_matrix=ct.as_lists(),
        label_mapping=mapping,
        one_to_one_mapping=one_to_one,
        per_class=per_class_prf1(ct),
        silhouette_by_auto_cluster=sil_auto,
        silhouette_by_manual_group=sil_manual,
        merges=tuple(find_merges(ct, min_share=config.merge_share)),
        splits=tuple(
            find_splits(
                ct,
                max_top_share=config.split_top_share,
                min_second_share=config.split_second_share,
            )
        ),
        detailed_comparison=tuple(details),
    )
    logger.info(
        "compared %d samples: ARI=%.3f NMI=%.3f purity=%.3f",
        ct.n,
        ari,
        nmi,
        pur,
    )
    return metrics


__all__ = ["as_assignment", "compare_groupings"]
