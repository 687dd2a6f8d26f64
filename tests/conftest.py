from __future__ import annotations

import pytest
from hypothesis import settings

from grouping_eval.types import Sample
from tests.helpers.samples import make_samples

settings.register_profile("ci", deadline=None)
settings.load_profile("ci")


@pytest.fixture
def two_blobs() -> list[Sample]:
    """Three quiet samples near the origin, three loud ones near (10, 10)."""
    points = [(0.0, 0.0), (0.5, 0.0), (0.0, 0.5), (10.0, 10.0), (10.5, 10.0), (10.0, 10.5)]
    return make_samples(points, rms=[0.1, 0.11, 0.12, 0.8, 0.81, 0.82])


@pytest.fixture
def six_ids() -> list[str]:
    return [f"s{i}" for i in range(1, 7)]
