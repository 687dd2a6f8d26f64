"""Align automatic cluster ids with manual group ids.

Two mappings are built from the contingency table:

* the *majority* mapping sends every manual group to the automatic cluster
  holding most of its samples (many-to-one allowed);
* the *one-to-one* mapping greedily pairs the largest remaining cells so no
  automatic cluster is used twice.

The one-to-one mapping is a greedy approximation, not an optimal
assignment.  A positive gap between the two accuracies means several manual
groups collapsed into one automatic cluster.
"""

from __future__ import annotations

import numpy as np

from .contingency import ContingencyTable
from .types import ClassMetrics, MergeFinding, SplitFinding


def majority_mapping(ct: ContingencyTable) -> dict[int, int]:
    """Return ``{manual_label: auto_label}``; ties go to the lowest column."""
    out: dict[int, int] = {}
    if not ct.auto_labels:
        return out
    for i, m in enumerate(ct.manual_labels):
        out[m] = ct.auto_labels[int(np.argmax(ct.table[i]))]
    return out


def greedy_one_to_one_mapping(ct: ContingencyTable) -> dict[int, int]:
    """Pair manual and automatic labels by descending cell count.

    Ties are broken by lower manual label, then lower automatic label.
    """
    cells = [
        (-int(ct.table[i, j]), i, j)
        for i in range(len(ct.manual_labels))
        for j in range(len(ct.auto_labels))
        if ct.table[i, j] > 0
    ]
    cells.sort()
    out: dict[int, int] = {}
    used_cols: set[int] = set()
    for _, i, j in cells:
        m = ct.manual_labels[i]
        if m in out or j in used_cols:
            continue
        out[m] = ct.auto_labels[j]
        used_cols.add(j)
    return {m: out[m] for m in sorted(out)}


def mapping_accuracy(ct: ContingencyTable, mapping: dict[int, int]) -> float:
    """Fraction of scored samples whose cell lies on ``mapping``; ``0`` if empty."""
    n = ct.n
    if n == 0:
        return 0.0
    hits = 0
    for i, m in enumerate(ct.manual_labels):
        a = mapping.get(m)
        if a is None or a not in ct.auto_labels:
            continue
        hits += int(ct.table[i, ct.col_index(a)])
    return hits / n


def mapped_accuracy(ct: ContingencyTable) -> float:
    return mapping_accuracy(ct, majority_mapping(ct))


def one_to_one_accuracy(ct: ContingencyTable) -> float:
    return mapping_accuracy(ct, greedy_one_to_one_mapping(ct))


def _row_shares(ct: ContingencyTable, i: int) -> np.ndarray | None:
    total = int(ct.row_sums[i])
    if total == 0:
        return None
    return ct.table[i] / float(total)


def find_merges(ct: ContingencyTable, *, min_share: float = 0.6) -> list[MergeFinding]:
    """Automatic clusters that absorb ``min_share`` of two or more manual groups."""
    by_auto: dict[int, list[tuple[int, float]]] = {}
    for i, m in enumerate(ct.manual_labels):
        shares = _row_shares(ct, i)
        if shares is None:
            continue
        for j, a in enumerate(ct.auto_labels):
            if shares[j] >= min_share:
                by_auto.setdefault(a, []).append((m, float(shares[j])))
    return [
        MergeFinding(auto_label=a, manual_shares=tuple(sorted(by_auto[a])))
        for a in sorted(by_auto)
        if len(by_auto[a]) > 1
    ]


def find_splits(
    ct: ContingencyTable, *, max_top_share: float = 0.7, min_second_share: float = 0.3
) -> list[SplitFinding]:
    """Manual groups whose two strongest automatic clusters both hold a real share."""
    out: list[SplitFinding] = []
    for i, m in enumerate(ct.manual_labels):
        shares = _row_shares(ct, i)
        if shares is None:
            continue
        ranked = sorted(
            ((float(s), j) for j, s in enumerate(shares) if s > 0),
            key=lambda t: (-t[0], t[1]),
        )
        if len(ranked) < 2:
            continue
        (top, j1), (second, j2) = ranked[0], ranked[1]
        if top < max_top_share and second >= min_second_share:
            out.append(
                SplitFinding(
                    manual_label=m,
                    auto_shares=((ct.auto_labels[j1], top), (ct.auto_labels[j2], second)),
                )
            )
    return out


def per_class_prf1(ct: ContingencyTable) -> dict[int, ClassMetrics]:
    """Precision/recall/F1 of every manual group under the majority mapping."""
    mapping = majority_mapping(ct)
    rows = ct.row_sums
    cols = ct.col_sums
    out: dict[int, ClassMetrics] = {}
    for i, m in enumerate(ct.manual_labels):
        if m not in mapping:
            continue
        j = ct.col_index(mapping[m])
        tp = float(ct.table[i, j])
        prec = tp / cols[j] if cols[j] else 0.0
        rec = tp / rows[i] if rows[i] else 0.0
        f1 = 0.0 if prec + rec == 0 else 2 * prec * rec / (prec + rec)
        out[m] = ClassMetrics(precision=float(prec), recall=float(rec), f1=float(f1))
    return out


__all__ = [
    "find_merges",
    "find_splits",
    "greedy_one_to_one_mapping",
    "majority_mapping",
    "mapped_accuracy",
    "mapping_accuracy",
    "one_to_one_accuracy",
    "per_class_prf1",
]
