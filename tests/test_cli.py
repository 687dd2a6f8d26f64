import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from grouping_eval import cli
from grouping_eval.session import load, sample_to_dict


@pytest.fixture
def input_doc(tmp_path: Path, two_blobs) -> Path:
    doc = tmp_path / "input.json"
    data = {
        "window_length_ms": 256,
        "samples": [sample_to_dict(s) for s in two_blobs],
        "manual": {"0": ["s1", "s2", "s3"], "1": ["s4", "s5", "s6"]},
        "automatic": {"0": ["s1", "s2", "s3", "s4", "s5", "s6"]},
    }
    doc.write_text(json.dumps(data))
    return doc


def _json_from(output: str):
    return json.JSONDecoder().raw_decode(output[output.index("{") :])[0]


def test_compare_writes_session(tmp_path: Path, input_doc: Path) -> None:
    out = tmp_path / "session.json"
    runner = CliRunner()
    res = runner.invoke(cli.cli, ["compare", str(input_doc), "--out", str(out)])
    assert res.exit_code == 0, res.output
    assert "HEADLINE METRICS:" in res.output
    assert "K_manual: 2  K_auto: 1" in res.output
    assert load(out).comparison_metrics is not None

    res = runner.invoke(cli.cli, ["show", str(out)])
    assert res.exit_code == 0
    assert "CONFUSION MATRIX" in res.output

    res = runner.invoke(cli.cli, ["recommend", str(out)])
    assert res.exit_code == 0
    assert "suggested clusters:" in res.output


def test_calibrate_splits_to_target(input_doc: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["calibrate", str(input_doc), "--target-k", "2"])
    assert res.exit_code == 0, res.output
    assert "target K=2 reached: K=2" in res.output
    assert "ARI: 1.000" in res.output


def test_calibrate_rejects_non_positive_target(input_doc: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["calibrate", str(input_doc), "--target-k", "0"])
    assert res.exit_code == 2
    assert "target_k" in res.output


def test_bad_config_exits_with_2(tmp_path: Path, input_doc: Path) -> None:
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("merge_share: 3.0\n")
    res = CliRunner().invoke(cli.cli, ["compare", str(input_doc), "--config", str(cfg)])
    assert res.exit_code == 2
    assert "merge_share" in res.output


def test_missing_input_exits_with_2(tmp_path: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["group", str(tmp_path / "nope.json")])
    assert res.exit_code == 2


def test_group_prints_layers(input_doc: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["group", str(input_doc), "--k", "2"])
    assert res.exit_code == 0, res.output
    layers = _json_from(res.output)
    assert sorted(layers["0"]) == ["s1", "s2", "s3"]
    assert sorted(layers["1"]) == ["s4", "s5", "s6"]


@pytest.mark.parametrize("method", ["kmeans", "hierarchical", "dbscan"])
def test_group_methods(input_doc: Path, method: str) -> None:
    args = ["group", str(input_doc), "--k", "2", "--method", method, "--eps", "1.0"]
    res = CliRunner().invoke(cli.cli, args)
    assert res.exit_code == 0, res.output
    layers = _json_from(res.output)
    assert sorted(layers["0"]) == ["s1", "s2", "s3"]
    assert sorted(layers["1"]) == ["s4", "s5", "s6"]


def test_group_rejects_bad_loudness_weight(input_doc: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["group", str(input_doc), "--loudness-weight", "2"])
    assert res.exit_code == 2
    assert "loudness_weight" in res.output


def test_recommend_apply_prints_grouping(input_doc: Path) -> None:
    res = CliRunner().invoke(cli.cli, ["recommend", str(input_doc), "--apply"])
    assert res.exit_code == 0, res.output
    assert "method: kmeans" in res.output
    layers = _json_from(res.output)
    assert sorted(sid for ids in layers.values() for sid in ids) == [f"s{i}" for i in range(1, 7)]
