from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import click

from .calibrate import KCalibrator
from .config import EngineConfig, load_config
from .grouping import ClusteringMethod, auto_group, group_with_options
from .normalize import z_score_normalize
from .recommend import analyze_session
from .render import render_report
from .report import compare_groupings
from .session import GroupingSession, load, load_input, save
from .types import GroupingEvalError, vector_map

logger = logging.getLogger(__name__)


class InputError(click.ClickException):
    """Invalid configuration or input document."""

    exit_code = 2


def _read_input(path: Path, normalize: bool = False) -> GroupingSession:
    try:
        session = load_input(path)
    except (GroupingEvalError, OSError) as exc:
        raise InputError(str(exc)) from exc
    if normalize:
        session = replace(session, samples=tuple(z_score_normalize(session.samples)))
    return session


def _with_automatic(session: GroupingSession, k: int | None = None) -> GroupingSession:
    if session.automatic_grouping:
        return session
    logger.info("no automatic grouping in input, running auto_group")
    return replace(session, automatic_grouping=auto_group(list(session.samples), k))


def _compared(session: GroupingSession, config: EngineConfig) -> GroupingSession:
    if not session.manual_grouping:
        return session
    metrics = compare_groupings(
        session.manual_grouping,
        session.automatic_grouping,
        session.samples,
        config=config,
    )
    return replace(session, comparison_metrics=metrics)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Evaluate and calibrate sample groupings."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


@cli.command()
@click.argument("input_path", type=Path)
@click.option("--config", "config_path", type=Path, default=None, help="YAML thresholds")
@click.option("--out", "out_path", type=Path, default=None, help="Write the session JSON here")
@click.option("--normalize/--no-normalize", default=False, help="Z-score the vectors first")
def compare(input_path: Path, config_path: Path | None, out_path: Path | None, normalize: bool) -> None:
    """Compare the manual grouping of INPUT_PATH with its automatic grouping.

    When the input carries no automatic grouping one is computed with
    ``auto_group``.
    """

    try:
        config = load_config(config_path)
        session = _with_automatic(_read_input(input_path, normalize))
        if not session.manual_grouping:
            raise InputError(f"{input_path.name}: no manual grouping to compare against")
        session = _compared(session, config)
    except (GroupingEvalError, FileNotFoundError) as exc:
        raise InputError(str(exc)) from exc
    if out_path is not None:
        save(session, out_path)
        logger.info("session written to %s", out_path)
    click.echo(render_report(session, config))


@cli.command()
@click.argument("input_path", type=Path)
@click.option("--target-k", "target_k", type=int, required=True)
@click.option("--config", "config_path", type=Path, default=None, help="YAML thresholds")
@click.option("--out", "out_path", type=Path, default=None, help="Write the session JSON here")
def calibrate(input_path: Path, target_k: int, config_path: Path | None, out_path: Path | None) -> None:
    """Split or merge the automatic grouping of INPUT_PATH toward TARGET_K clusters."""

    try:
        config = load_config(config_path)
        session = _with_automatic(_read_input(input_path))
        calibrator = KCalibrator(config)
        state = calibrator.initial_state(session.automatic_labels(), vector_map(session.samples))
        result = calibrator.calibrate_to_k(target_k, state)
        session = _compared(replace(session, automatic_grouping=result.state.grouping()), config)
    except (GroupingEvalError, FileNotFoundError) as exc:
        raise InputError(str(exc)) from exc

    for step in result.history:
        click.echo(
            f"[{step.iteration}] {step.action:<5} K={step.k} "
            f"composite={step.quality.composite:.4f} objective={step.objective:.4f}"
        )
    status = "reached" if result.reached else "not reached"
    click.echo(
        f"target K={target_k} {status}: K={result.state.k} after {result.iterations} iteration(s)"
    )
    if out_path is not None:
        save(session, out_path)
        logger.info("session written to %s", out_path)
    if session.comparison_metrics is not None:
        click.echo(render_report(session, config))


@cli.command()
@click.argument("session_path", type=Path)
@click.option("--config", "config_path", type=Path, default=None, help="YAML thresholds")
def show(session_path: Path, config_path: Path | None) -> None:
    """Print the report of a saved session."""

    try:
        config = load_config(config_path)
        session = load(session_path)
    except (GroupingEvalError, FileNotFoundError) as exc:
        raise InputError(str(exc)) from exc
    click.echo(render_report(session, config))


@cli.command()
@click.argument("session_path", type=Path)
@click.option("--apply", "apply_", is_flag=True, help="Also print the grouping the suggestion produces")
def recommend(session_path: Path, apply_: bool) -> None:
    """Suggest clustering parameters from the manual grouping of a session."""

    session = _read_input(session_path)
    rec = analyze_session(session)
    opts = rec.to_clustering_options()
    click.echo(f"suggested clusters: {rec.suggested_clusters}")
    click.echo(f"cluster range: {opts.min_clusters}-{opts.max_clusters}")
    click.echo(f"method: {rec.clustering_method.value}")
    click.echo(f"loudness weight: {rec.loudness_weight:.2f}")
    click.echo("rms thresholds: " + ", ".join(f"{t:.4f}" for t in rec.rms_thresholds))
    weights = ", ".join(f"{k}={v:.2f}" for k, v in sorted(rec.spectral_weights.items()))
    click.echo(f"spectral weights: {weights}")
    if apply_:
        try:
            grouping = group_with_options(list(session.samples), opts)
        except GroupingEvalError as exc:
            raise InputError(str(exc)) from exc
        click.echo(json.dumps({str(lab): ids for lab, ids in grouping.items()}, indent=2))


@cli.command()
@click.argument("input_path", type=Path)
@click.option("--k", "k", type=int, default=None, help="Cluster count (default: by sample count)")
@click.option("--normalize/--no-normalize", default=False, help="Z-score the vectors first")
@click.option(
    "--method",
    type=click.Choice([m.value for m in ClusteringMethod]),
    default=ClusteringMethod.KMEANS.value,
    show_default=True,
)
@click.option("--loudness-weight", type=float, default=None, help="Weight of RMS vs. timbre, 0-1")
@click.option("--eps", type=float, default=0.5, show_default=True, help="DBSCAN neighbourhood radius")
def group(
    input_path: Path,
    k: int | None,
    normalize: bool,
    method: str,
    loudness_weight: float | None,
    eps: float,
) -> None:
    """Group the samples of INPUT_PATH and print ``{label: [ids]}`` as JSON."""

    if k is not None and k <= 0:
        raise InputError("--k must be positive")
    session = _read_input(input_path, normalize)
    try:
        grouping = auto_group(
            list(session.samples),
            k,
            method=ClusteringMethod(method),
            loudness_weight=loudness_weight,
            eps=eps,
        )
    except GroupingEvalError as exc:
        raise InputError(str(exc)) from exc
    click.echo(json.dumps({str(lab): ids for lab, ids in grouping.items()}, indent=2))


__all__ = ["cli", "compare", "calibrate", "show", "recommend", "group", "main"]


def main(argv: Sequence[str] | None = None) -> None:  # pragma: no cover - CLI entry
    cli.main(args=list(argv) if argv is not None else None)


if __name__ == "__main__":  # pragma: no cover
    main()
