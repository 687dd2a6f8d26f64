"""Plain-text console report for a :class:`GroupingSession`."""

from __future__ import annotations

import math

from .config import DEFAULT_CONFIG, EngineConfig
from .session import GroupingSession
from .types import ComparisonMetrics, Sample

RULE = "=" * 80


def _section(lines: list[str], title: str, width: int) -> None:
    lines.append("")
    lines.append(title)
    lines.append("-" * width)


def _fmt(value: float | None, fmt: str = ".3f") -> str:
    if value is None:
        return "n/a"
    if math.isinf(value):
        return "inf"
    return format(value, fmt)


def _opt(value: float | None, fmt: str) -> str:
    return "-" if value is None else format(value, fmt)


def _metrics_block(
    lines: list[str], session: GroupingSession, m: ComparisonMetrics, config: EngineConfig
) -> None:
    names = {s.id: s.display_name for s in session.samples}

    _section(lines, "SUMMARY:", 60)
    lines.append(f"K_manual: {m.manual_cluster_count}  K_auto: {m.auto_cluster_count}")
    lines.append(
        f"Coverage: {m.coverage * 100:.1f}%  ({m.samples_scored}/{m.total_samples} samples)"
    )

    _section(lines, "HEADLINE METRICS:", 80)
    lines.append(
        f"ACC (mapped): {m.mapped_accuracy:.3f}  ARI: {m.adjusted_rand_index:.3f}  "
        f"NMI: {m.normalized_mutual_info:.3f}  V-measure: {m.v_measure:.3f}  "
        f"Purity: {m.purity:.3f}  Sil: {m.silhouette:.3f}"
    )
    lines.append(f"DBI: {_fmt(m.davies_bouldin)}  CH: {_fmt(m.calinski_harabasz, '.1f')}")
    gap_line = f"ACC_1to1: {m.one_to_one_accuracy:.3f}  ACC_gap: {m.accuracy_gap:.3f}"
    if m.accuracy_gap > config.merge_signal_gap:
        gap_line += " (merge signal)"
    lines.append(gap_line)
    lines.append(f"Homogeneity: {m.homogeneity:.3f}  Completeness: {m.completeness:.3f}")
    lines.append(f"B3 (P/R/F1): {m.b3_precision:.3f}/{m.b3_recall:.3f}/{m.b3_f1:.3f}")

    if m.silhouette_by_auto_cluster:
        _section(lines, "PER-CLUSTER SILHOUETTES (auto):", 40)
        low = []
        for cluster in sorted(m.silhouette_by_auto_cluster):
            score = m.silhouette_by_auto_cluster[cluster]
            warn = ""
            if score < config.low_silhouette:
                warn = " (boundary cluster)"
                low.append(cluster)
            lines.append(f"Cluster {cluster}: {score:.3f}{warn}")
        if low:
            lines.append("")
            lines.append("Low silhouette clusters detected. Check feature thresholds for:")
            for cluster in low:
                groups = sorted(
                    {c.manual_group for c in m.detailed_comparison if c.auto_group == cluster}
                )
                lines.append(f"   Auto {cluster} contains Manual groups: {groups}")

    if m.manual_cluster_count != m.auto_cluster_count:
        lines.append("")
        lines.append(
            f"K mismatch: K_auto={m.auto_cluster_count} vs K_manual={m.manual_cluster_count}"
        )
        if m.auto_cluster_count < m.manual_cluster_count:
            lines.append("   -> Expect merges (multiple manual groups in same auto cluster)")
        else:
            lines.append("   -> Expect splits (manual groups distributed across auto clusters)")

    if m.confusion_matrix:
        _section(lines, "CONFUSION MATRIX (manual->auto):", 50)
        lines.append("     " + "".join(f"{a:5d}" for a in m.auto_labels) + " | Total")
        lines.append("-" * (5 + len(m.auto_labels) * 5 + 8))
        for label, row in zip(m.manual_labels, m.confusion_matrix):
            cells = "".join(f"{v:5d}" for v in row)
            lines.append(f"{label:3d}: {cells} | {sum(row):5d}")

        _section(lines, "TOP CONFUSIONS BY MANUAL GROUP:", 60)
        for label, row in zip(m.manual_labels, m.confusion_matrix):
            top = sorted(
                ((count, j) for j, count in enumerate(row) if count > 0),
                key=lambda t: (-t[0], t[1]),
            )[:2]
            if not top:
                continue
            info = ", ".join(f"->Auto {m.auto_labels[j]} ({count})" for count, j in top)
            prf = m.per_class.get(label)
            if prf is not None:
                info += f"  [P:{prf.precision:.2f} R:{prf.recall:.2f}]"
            lines.append(f"Manual {label}: {info}")

    if m.merges:
        _section(lines, "MERGES (manual groups in same auto cluster):", 50)
        lines.extend(f"* {merge.describe()}" for merge in m.merges[:5])
    if m.splits:
        _section(lines, "SPLITS (manual group across auto clusters):", 50)
        lines.extend(f"* {split.describe()}" for split in m.splits[:5])

    wrong = m.misclustered()
    if wrong:
        _section(lines, "MISCLUSTERED SAMPLES (with centroid distance deltas):", 80)
        for c in wrong[:10]:
            line = f"* {names.get(c.sample_id, c.sample_id):<20}: Manual {c.manual_group} -> Auto {c.auto_group}"
            if c.centroid_delta is not None:
                line += f"  (delta={c.centroid_delta:.3f})"
            lines.append(line)
        if len(wrong) > 10:
            lines.append(f"... and {len(wrong) - 10} more")

    unsure = m.ambiguous(config.ambiguity_margin)
    if unsure:
        _section(lines, f"AMBIGUOUS SAMPLES (margin < {config.ambiguity_margin:g}):", 80)
        for c in unsure[:10]:
            lines.append(
                f"* {names.get(c.sample_id, c.sample_id):<20}: Nearest A{c.nearest_auto_cluster}, "
                f"Second A{c.second_nearest_auto_cluster} (margin={c.margin:.2f})"
            )
        if len(unsure) > 10:
            lines.append(f"... and {len(unsure) - 10} more")


def _feature_row(sample: Sample, mapping: str) -> str:
    return " ".join(
        [
            f"{sample.display_name:<16.16}",
            f"{_opt(sample.rms, '.4f'):<8}",
            f"{_opt(sample.spectral_centroid_hz, '.0f'):<10}",
            f"{_opt(sample.spectral_rolloff_hz, '.0f'):<10}",
            f"{_opt(sample.spectral_bandwidth_hz, '.0f'):<10}",
            f"{_opt(sample.spectral_flatness, '.3f'):<10}",
            f"{mapping:<7}",
        ]
    )


def render_report(session: GroupingSession, config: EngineConfig = DEFAULT_CONFIG) -> str:
    """Return the multi-section console report for ``session``."""

    lines = [RULE, "GROUPING TEST SESSION", f"Session: {session.id}", f"Date: {session.date}"]
    lines.append(f"Sample Count: {session.sample_count}")
    lines.append(f"Window Length: {session.window_length_ms:g}ms")
    lines.append(RULE)

    m = session.comparison_metrics
    if m is not None:
        _metrics_block(lines, session, m, config)

    by_id = {c.sample_id: c for c in m.detailed_comparison} if m is not None else {}
    _section(lines, "FEATURE ANALYSIS (top 10 samples):", 100)
    header = ["Sample", "RMS", "Centroid", "Rolloff", "Bandwidth", "Flatness", "M->A"]
    widths = [16, 8, 10, 10, 10, 10, 7]
    lines.append(" ".join(f"{h:<{w}}" for h, w in zip(header, widths)))
    lines.append("-" * 100)
    for sample in session.samples[:10]:
        c = by_id.get(sample.id)
        mapping = f"{c.manual_group}->{c.auto_group}" if c is not None else "-"
        lines.append(_feature_row(sample, mapping).rstrip())
    if session.sample_count > 10:
        lines.append(f"... and {session.sample_count - 10} more samples")
    lines.append("")
    lines.append(RULE)
    return "\n".join(lines)


__all__ = ["render_report"]
