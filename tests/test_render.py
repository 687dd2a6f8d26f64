from grouping_eval.config import EngineConfig
from grouping_eval.render import render_report
from grouping_eval.report import compare_groupings
from grouping_eval.session import GroupingSession

from tests.helpers.samples import make_samples


def _session(samples, manual, auto) -> GroupingSession:
    return GroupingSession(
        samples=tuple(samples),
        manual_grouping=manual,
        automatic_grouping=auto,
        comparison_metrics=compare_groupings(manual, auto, samples),
    )


def test_merge_report_sections(two_blobs, six_ids) -> None:
    manual = {0: six_ids[:2], 1: six_ids[2:4], 2: six_ids[4:]}
    auto = {0: six_ids[:4], 1: six_ids[4:]}
    text = render_report(_session(two_blobs, manual, auto))
    assert "K_manual: 3  K_auto: 2" in text
    assert "Coverage: 100.0%  (6/6 samples)" in text
    assert "(merge signal)" in text
    assert "K mismatch: K_auto=2 vs K_manual=3" in text
    assert "Expect merges" in text
    assert "CONFUSION MATRIX (manual->auto):" in text
    assert "* {M0(100%), M1(100%)} -> Auto 0" in text
    assert "Manual 0: ->Auto 0 (2)  [P:0.50 R:1.00]" in text
    assert "FEATURE ANALYSIS (top 10 samples):" in text
    assert "hit_01" in text


def test_low_silhouette_warning_lists_manual_groups(two_blobs, six_ids) -> None:
    # both quiet and loud samples mixed in each automatic cluster
    manual = {0: six_ids[:3], 1: six_ids[3:]}
    auto = {0: ["s1", "s4"], 1: ["s2", "s3", "s5", "s6"]}
    text = render_report(_session(two_blobs, manual, auto))
    assert "(boundary cluster)" in text
    assert "Auto 0 contains Manual groups: [0, 1]" in text


def test_misclustered_and_ambiguous_listing(two_blobs, six_ids) -> None:
    manual = {0: six_ids[:3], 1: six_ids[3:]}
    auto = {0: ["s1", "s2", "s4"], 1: ["s3", "s5", "s6"]}
    text = render_report(_session(two_blobs, manual, auto), EngineConfig(ambiguity_margin=3.0))
    assert "MISCLUSTERED SAMPLES" in text
    assert "hit_04" in text and "Manual 1 -> Auto 0" in text
    assert "AMBIGUOUS SAMPLES (margin < 3):" in text


def test_report_without_metrics_and_long_feature_table() -> None:
    samples = make_samples([(float(i), 0.0) for i in range(12)], rms=[0.1] * 12)
    text = render_report(GroupingSession(samples=tuple(samples)))
    assert "HEADLINE METRICS" not in text
    assert "... and 2 more samples" in text
    assert "Sample Count: 12" in text
