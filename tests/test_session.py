import json
from pathlib import Path

import pytest

from grouping_eval.report import compare_groupings
from grouping_eval.session import (
    GroupingSession,
    dumps,
    load,
    load_input,
    loads,
    metrics_from_dict,
    metrics_to_dict,
    save,
)
from grouping_eval.types import SessionFormatError


@pytest.fixture
def session(two_blobs, six_ids) -> GroupingSession:
    manual = {0: six_ids[:2], 1: six_ids[2:4], 2: six_ids[4:]}
    auto = {0: six_ids[:4], 1: six_ids[4:]}
    return GroupingSession(
        window_length_ms=128.0,
        samples=tuple(two_blobs),
        manual_grouping=manual,
        automatic_grouping=auto,
        comparison_metrics=compare_groupings(manual, auto, two_blobs),
    )


def test_roundtrip_is_lossless_except_identity(session) -> None:
    back = loads(dumps(session))
    assert back.samples == session.samples
    assert back.manual_grouping == session.manual_grouping
    assert back.automatic_grouping == session.automatic_grouping
    assert back.window_length_ms == 128.0
    assert back.comparison_metrics == session.comparison_metrics
    assert back.id != session.id


def test_infinite_margin_survives(two_blobs, six_ids) -> None:
    m = compare_groupings({0: six_ids}, {0: six_ids}, two_blobs)
    assert metrics_from_dict(json.loads(json.dumps(metrics_to_dict(m)))) == m


def test_dumps_is_deterministic(session) -> None:
    text = dumps(session)
    assert text == dumps(session)
    data = json.loads(text)
    assert list(data) == sorted(data)
    assert data["sample_count"] == 6
    assert data["manual_grouping"] == {"0": ["s1", "s2"], "1": ["s3", "s4"], "2": ["s5", "s6"]}


def test_save_and_load(tmp_path: Path, session) -> None:
    path = save(session, tmp_path / "out" / "session.json")
    assert path.exists()
    assert load(path).comparison_metrics == session.comparison_metrics


def test_session_without_metrics() -> None:
    back = loads(dumps(GroupingSession(manual_grouping={1: ["a"]})))
    assert back.comparison_metrics is None
    assert back.manual_labels() == {"a": 1}


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2]",
        '{"samples": [{"name": "no id"}]}',
        '{"samples": [{"id": "a", "bogus": 1}]}',
        '{"manual_grouping": {"0": ["a"], "1": ["a"]}}',
        '{"comparison_metrics": {"purity": 1.0}}',
    ],
)
def test_bad_documents_raise(text: str) -> None:
    with pytest.raises(SessionFormatError):
        loads(text)


def test_load_input_yaml(tmp_path: Path) -> None:
    doc = tmp_path / "input.yaml"
    doc.write_text(
        "window_length_ms: 200\n"
        "samples:\n"
        "  - {id: a, vector: [0.0, 1.0], rms: 0.1}\n"
        "  - {id: b, vector: [1.0, 0.0], rms: 0.2}\n"
        "manual:\n"
        "  0: [a]\n"
        "  1: [b]\n"
    )
    session = load_input(doc)
    assert session.window_length_ms == 200.0
    assert session.samples[0].vector == (0.0, 1.0)
    assert session.manual_grouping == {0: ["a"], 1: ["b"]}
    assert session.automatic_grouping == {}


def test_load_input_json(tmp_path: Path) -> None:
    doc = tmp_path / "input.json"
    doc.write_text(
        json.dumps(
            {
                "samples": [{"id": "a", "vector": [0.0]}],
                "manual": {"0": ["a"]},
                "automatic": {"3": ["a"]},
            }
        )
    )
    session = load_input(doc)
    assert session.automatic_grouping == {3: ["a"]}
