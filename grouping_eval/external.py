"""External validation metrics computed from a :class:`ContingencyTable`.

Every function is total: degenerate tables return the neutral value listed
in its docstring instead of raising.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray
from scipy.special import comb

from .contingency import ContingencyTable

PROBABILITY_FLOOR = 1e-12


def _comb2(counts: NDArray[np.int64] | int) -> float:
    return float(np.sum(comb(counts, 2, exact=False)))


def adjusted_rand_index(ct: ContingencyTable) -> float:
    """Return the Adjusted Rand Index.

    ``1.0`` when ``n <= 1`` or when the expected and maximum indices
    coincide (zero denominator).
    """
    n = ct.n
    if n <= 1:
        return 1.0
    sum_comb = _comb2(ct.table)
    sum_rows = _comb2(ct.row_sums)
    sum_cols = _comb2(ct.col_sums)
    total = _comb2(n)
    expected = sum_rows * sum_cols / max(total, 1.0)
    max_term = (sum_rows + sum_cols) / 2.0
    denominator = max_term - expected
    if denominator == 0:
        return 1.0
    return float((sum_comb - expected) / denominator)


def _entropy(counts: NDArray[np.int64], n: int, floor: float) -> float:
    counts = counts[counts > 0]
    if n == 0 or counts.size == 0:
        return 0.0
    p = counts / float(n)
    return float(-np.sum(p * np.log(np.maximum(p, floor))))


def mutual_information(ct: ContingencyTable, *, floor: float = PROBABILITY_FLOOR) -> float:
    """Natural-log mutual information over the nonzero cells."""
    n = ct.n
    if n == 0:
        return 0.0
    rows, cols = np.nonzero(ct.table)
    nij = ct.table[rows, cols].astype(np.float64)
    p_ij = nij / n
    p_i = ct.row_sums[rows] / n
    p_j = ct.col_sums[cols] / n
    log_ratio = (
        np.log(np.maximum(p_ij, floor))
        - np.log(np.maximum(p_i, floor))
        - np.log(np.maximum(p_j, floor))
    )
    return float(np.sum(p_ij * log_ratio))


def entropies(ct: ContingencyTable, *, floor: float = PROBABILITY_FLOOR) -> tuple[float, float]:
    """Return ``(H(manual), H(automatic))``."""
    n = ct.n
    return _entropy(ct.row_sums, n, floor), _entropy(ct.col_sums, n, floor)


def normalized_mutual_info(ct: ContingencyTable, *, floor: float = PROBABILITY_FLOOR) -> float:
    """Return MI / sqrt(H(U) * H(V)); ``0`` if ``n == 0`` or either entropy is 0."""
    h_u, h_v = entropies(ct, floor=floor)
    if ct.n == 0 or h_u == 0 or h_v == 0:
        return 0.0
    return mutual_information(ct, floor=floor) / math.sqrt(h_u * h_v)


def purity(ct: ContingencyTable) -> float:
    """Sum of majority manual counts per automatic cluster over ``n``; ``0`` if empty."""
    n = ct.n
    if n == 0:
        return 0.0
    return float(ct.table.max(axis=0).sum()) / n


def homogeneity_completeness_v(
    ct: ContingencyTable, *, floor: float = PROBABILITY_FLOOR
) -> tuple[float, float, float]:
    """Return ``(homogeneity, completeness, v_measure)``.

    Homogeneity is ``1`` when ``H(manual) == 0``, completeness is ``1`` when
    ``H(automatic) == 0`` and the V-measure is ``0`` when both are ``0``.
    """
    h_u, h_v = entropies(ct, floor=floor)
    mi = mutual_information(ct, floor=floor)
    homo = 1.0 if h_u == 0 else mi / h_u
    comp = 1.0 if h_v == 0 else mi / h_v
    v = 0.0 if homo + comp == 0 else 2 * homo * comp / (homo + comp)
    return homo, comp, v


def b_cubed(ct: ContingencyTable) -> tuple[float, float, float]:
    """Return B-cubed ``(precision, recall, f1)``; all ``0`` with no scored samples.

    Every sample in cell ``(i, j)`` shares the same overlap ``n_ij`` between
    its manual set (size ``row_i``) and automatic set (size ``col_j``), so
    the per-sample averages reduce to sums over cells.
    """
    n = ct.n
    if n == 0:
        return 0.0, 0.0, 0.0
    rows, cols = np.nonzero(ct.table)
    nij = ct.table[rows, cols].astype(np.float64)
    precision = float(np.sum(nij * nij / ct.col_sums[cols])) / n
    recall = float(np.sum(nij * nij / ct.row_sums[rows])) / n
    f1 = 0.0 if precision + recall == 0 else 2 * precision * recall / (precision + recall)
    return precision, recall, f1


__all__ = [
    "PROBABILITY_FLOOR",
    "adjusted_rand_index",
    "b_cubed",
    "entropies",
    "homogeneity_completeness_v",
    "mutual_information",
    "normalized_mutual_info",
    "purity",
]
