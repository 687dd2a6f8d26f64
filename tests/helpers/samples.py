from __future__ import annotations

from grouping_eval.types import Sample


def make_samples(points, rms=None) -> list[Sample]:
    """``s1``, ``s2``, ... with the given vectors and optional RMS values."""
    out = []
    for i, vec in enumerate(points, start=1):
        out.append(
            Sample(
                id=f"s{i}",
                vector=tuple(float(v) for v in vec),
                name=f"hit_{i:02d}",
                index=i - 1,
                rms=None if rms is None else float(rms[i - 1]),
                spectral_centroid_hz=1000.0 + 100 * i,
                spectral_rolloff_hz=4000.0 + 50 * i,
                spectral_bandwidth_hz=1500.0 + 10 * i,
                spectral_flatness=0.1 + 0.01 * i,
                zero_crossing_rate=0.05 + 0.001 * i,
            )
        )
    return out
