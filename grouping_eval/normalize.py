from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

import numpy as np

from .types import Sample, stack_vectors

VARIANCE_FLOOR = 1e-6


def z_score_normalize(samples: Iterable[Sample]) -> list[Sample]:
    """Return copies of ``samples`` whose vectors are per-column z-scores.

    The population variance of each column is floored at ``1e-6`` so constant
    columns map to zero instead of dividing by zero.  Samples without a vector
    are returned unchanged.
    """

    samples = list(samples)
    idx = [i for i, s in enumerate(samples) if s.vector]
    if not idx:
        return samples
    X = stack_vectors([samples[i].vector for i in idx])
    mean = X.mean(axis=0)
    std = np.sqrt(np.maximum(X.var(axis=0), VARIANCE_FLOOR))
    Z = (X - mean) / std
    out = list(samples)
    for row, i in enumerate(idx):
        out[i] = replace(samples[i], vector=tuple(float(v) for v in Z[row]))
    return out


__all__ = ["VARIANCE_FLOOR", "z_score_normalize"]
