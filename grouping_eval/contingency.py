from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .types import LabelAssignment, check_labels


@dataclass(frozen=True, eq=False)
class ContingencyTable:
    """Manual x automatic cross-tabulation over the scored samples.

    Rows follow ``manual_labels`` and columns ``auto_labels``, both sorted.
    Row sums, column sums and ``n`` are always derived from ``table``.
    """

    table: NDArray[np.int64]
    manual_labels: tuple[int, ...]
    auto_labels: tuple[int, ...]
    scored_ids: tuple[str, ...]

    @property
    def row_sums(self) -> NDArray[np.int64]:
        return self.table.sum(axis=1)

    @property
    def col_sums(self) -> NDArray[np.int64]:
        return self.table.sum(axis=0)

    @property
    def n(self) -> int:
        return int(self.table.sum())

    @property
    def shape(self) -> tuple[int, int]:
        return (len(self.manual_labels), len(self.auto_labels))

    def row_index(self, manual_label: int) -> int:
        return self.manual_labels.index(manual_label)

    def col_index(self, auto_label: int) -> int:
        return self.auto_labels.index(auto_label)

    def as_lists(self) -> tuple[tuple[int, ...], ...]:
        return tuple(tuple(int(v) for v in row) for row in self.table)


def scored_ids(manual: LabelAssignment, automatic: LabelAssignment) -> list[str]:
    """Return the sorted ids labelled by both assignments."""
    return sorted(set(manual) & set(automatic))


def build_contingency(manual: LabelAssignment, automatic: LabelAssignment) -> ContingencyTable:
    """Cross-tabulate ``manual`` against ``automatic``.

    Only ids present in both maps are counted; labels that appear solely on
    unscored samples do not get a row or column.
    """

    manual = check_labels(manual)
    automatic = check_labels(automatic)
    keys = scored_ids(manual, automatic)
    m_labels = sorted({manual[k] for k in keys})
    a_labels = sorted({automatic[k] for k in keys})
    row_of = {lab: i for i, lab in enumerate(m_labels)}
    col_of = {lab: j for j, lab in enumerate(a_labels)}
    table = np.zeros((len(m_labels), len(a_labels)), dtype=np.int64)
    for k in keys:
        table[row_of[manual[k]], col_of[automatic[k]]] += 1
    return ContingencyTable(
        table=table,
        manual_labels=tuple(m_labels),
        auto_labels=tuple(a_labels),
        scored_ids=tuple(keys),
    )


__all__ = ["ContingencyTable", "build_contingency", "scored_ids"]
