"""Command-line interface for stackduel.

Subcommands:
    stackduel performance   Sample request latency of both targets
    stackduel loadtest      Load test both targets with oha
    stackduel buildtest     Build both targets and compare the output
    stackduel check         Verify both targets are reachable
    stackduel results       Show stored comparison results
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import click

from stackduel import __version__
from stackduel.bench.config import DuelConfig, config_from_profile, load_profile
from stackduel.bench.display import format_history, format_record
from stackduel.bench.results import ResultsStore
from stackduel.bench.runner import DuelRunner
from stackduel.bench.sampler import check_endpoint
from stackduel.errors import ConfigError, ConnectivityFailure, LoadGeneratorError
from stackduel.logging import get_logger, setup_logging

log = get_logger("cli")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """stackduel: compare two web stacks side by side."""


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def _apply(options: list[Callable[..., Any]], func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(options):
        func = option(func)
    return func


def _target_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """--target-a/--target-b/--name-a/--name-b."""
    return _apply(
        [
            click.option(
                "--target-a", "endpoint_a", type=str, default=None, help="Target A origin URL."
            ),
            click.option(
                "--target-b", "endpoint_b", type=str, default=None, help="Target B origin URL."
            ),
            click.option("--name-a", type=str, default=None, help="Display name of target A."),
            click.option("--name-b", type=str, default=None, help="Display name of target B."),
        ],
        func,
    )


def _run_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """--profile, --results-dir and logging flags."""
    return _apply(
        [
            click.option(
                "--profile",
                "profile_path",
                type=click.Path(exists=True, path_type=Path),
                default=None,
                help="YAML profile with targets and run parameters.",
            ),
            click.option(
                "--results-dir",
                type=click.Path(path_type=Path),
                default=None,
                help="Where comparison records are stored (default: results).",
            ),
            click.option("-v", "--verbose", is_flag=True, help="Show detailed output."),
            click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors."),
            click.option(
                "--log-file",
                type=click.Path(path_type=Path),
                default=None,
                help="Also write a DEBUG log to this file.",
            ),
        ],
        func,
    )


def _build_config(
    mode: str | None,
    profile_path: Path | None,
    overrides: dict[str, Any],
) -> DuelConfig:
    """Load the profile (if any) and apply CLI overrides."""
    cli_overrides = dict(overrides)
    if mode is not None:
        cli_overrides["mode"] = mode
    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        return config_from_profile(profile_data, cli_overrides=cli_overrides)
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc


def _target_overrides(
    endpoint_a: str | None,
    endpoint_b: str | None,
    name_a: str | None,
    name_b: str | None,
) -> dict[str, Any]:
    return {
        "target_a.endpoint": endpoint_a,
        "target_b.endpoint": endpoint_b,
        "target_a.name": name_a,
        "target_b.name": name_b,
    }


def _run_duel(config: DuelConfig) -> None:
    """Run one comparison, print it and map failures to exit codes."""
    log.debug("Running %s comparison with results in %s", config.mode, config.results_dir)
    runner = DuelRunner(config)
    try:
        outcome = runner.run()
    except (ConfigError, ConnectivityFailure, LoadGeneratorError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nComparison interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    click.echo()
    click.echo(format_record(outcome.record))
    click.echo()
    if outcome.storage_error is not None:
        click.echo(f"Error: {outcome.storage_error}", err=True)
        raise SystemExit(1)
    click.echo(f"Results saved to: {outcome.saved_path}")


# ---------------------------------------------------------------------------
# performance
# ---------------------------------------------------------------------------


@main.command()
@_target_options
@click.option(
    "--warmup", "warmup_count", type=int, default=None, help="Warmup requests (default: 50)."
)
@click.option(
    "--requests", "measured_count", type=int, default=None, help="Measured requests (default: 20)."
)
@click.option(
    "--delay-ms",
    "inter_request_delay_ms",
    type=int,
    default=None,
    help="Pause after each measured request in ms (default: 10).",
)
@_run_options
def performance(
    endpoint_a: str | None,
    endpoint_b: str | None,
    name_a: str | None,
    name_b: str | None,
    warmup_count: int | None,
    measured_count: int | None,
    inter_request_delay_ms: int | None,
    profile_path: Path | None,
    results_dir: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Sample request latency and response size of both targets.

    \b
    Examples:
        stackduel performance --target-a http://localhost:3000 \\
            --target-b http://localhost:3001 --requests 50
        stackduel performance --profile duel.yaml
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    overrides = _target_overrides(endpoint_a, endpoint_b, name_a, name_b)
    overrides.update(
        {
            "warmup_count": warmup_count,
            "measured_count": measured_count,
            "inter_request_delay_ms": inter_request_delay_ms,
            "results_dir": results_dir,
        }
    )
    _run_duel(_build_config("performance", profile_path, overrides))


# ---------------------------------------------------------------------------
# loadtest
# ---------------------------------------------------------------------------


@main.command()
@_target_options
@click.option(
    "--duration",
    "load_duration_sec",
    type=int,
    default=None,
    help="Seconds per target (default: 30).",
)
@click.option(
    "--connections",
    "load_connections",
    type=int,
    default=None,
    help="Concurrent connections (default: 50).",
)
@click.option(
    "--pipelining",
    "load_pipelining",
    type=int,
    default=None,
    help="Pipelining factor (default: 1).",
)
@click.option(
    "--timeout",
    "load_timeout_sec",
    type=int,
    default=None,
    help="Request timeout in seconds (default: 10).",
)
@click.option(
    "--pause",
    "pause_between_targets_sec",
    type=float,
    default=None,
    help="Seconds to pause between targets (default: 0).",
)
@_run_options
def loadtest(
    endpoint_a: str | None,
    endpoint_b: str | None,
    name_a: str | None,
    name_b: str | None,
    load_duration_sec: int | None,
    load_connections: int | None,
    load_pipelining: int | None,
    load_timeout_sec: int | None,
    pause_between_targets_sec: float | None,
    profile_path: Path | None,
    results_dir: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Load test both targets, one after the other, with oha."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    overrides = _target_overrides(endpoint_a, endpoint_b, name_a, name_b)
    overrides.update(
        {
            "load_duration_sec": load_duration_sec,
            "load_connections": load_connections,
            "load_pipelining": load_pipelining,
            "load_timeout_sec": load_timeout_sec,
            "pause_between_targets_sec": pause_between_targets_sec,
            "results_dir": results_dir,
        }
    )
    _run_duel(_build_config("loadtest", profile_path, overrides))


# ---------------------------------------------------------------------------
# buildtest
# ---------------------------------------------------------------------------


@main.command()
@click.option("--name-a", type=str, default=None, help="Display name of target A.")
@click.option("--name-b", type=str, default=None, help="Display name of target B.")
@click.option("--build-command-a", type=str, default=None, help="Build command for target A.")
@click.option("--build-command-b", type=str, default=None, help="Build command for target B.")
@click.option(
    "--workdir-a", type=click.Path(path_type=Path), default=None, help="Target A project dir."
)
@click.option(
    "--workdir-b", type=click.Path(path_type=Path), default=None, help="Target B project dir."
)
@click.option(
    "--artifact-dir-a",
    type=str,
    default=None,
    help="Target A output dir, relative to its workdir.",
)
@click.option(
    "--artifact-dir-b",
    type=str,
    default=None,
    help="Target B output dir, relative to its workdir.",
)
@click.option(
    "--build-timeout",
    "build_timeout_sec",
    type=float,
    default=None,
    help="Per-build timeout in seconds (default: 120).",
)
@_run_options
def buildtest(
    name_a: str | None,
    name_b: str | None,
    build_command_a: str | None,
    build_command_b: str | None,
    workdir_a: Path | None,
    workdir_b: Path | None,
    artifact_dir_a: str | None,
    artifact_dir_b: str | None,
    build_timeout_sec: float | None,
    profile_path: Path | None,
    results_dir: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run the production build of both targets and compare the output."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    overrides = {
        "target_a.name": name_a,
        "target_b.name": name_b,
        "target_a.build_command": build_command_a,
        "target_b.build_command": build_command_b,
        "target_a.build_workdir": workdir_a,
        "target_b.build_workdir": workdir_b,
        "target_a.artifact_dir": artifact_dir_a,
        "target_b.artifact_dir": artifact_dir_b,
        "build_timeout_sec": build_timeout_sec,
        "results_dir": results_dir,
    }
    _run_duel(_build_config("buildtest", profile_path, overrides))


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@main.command()
@_target_options
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile with targets.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
def check(
    endpoint_a: str | None,
    endpoint_b: str | None,
    name_a: str | None,
    name_b: str | None,
    profile_path: Path | None,
    verbose: bool,
) -> None:
    """Verify that both targets answer HTTP requests."""
    setup_logging(verbose=verbose, quiet=True)
    overrides = _target_overrides(endpoint_a, endpoint_b, name_a, name_b)
    config = _build_config(None, profile_path, overrides)

    failed = False
    for target in config.targets:
        try:
            check_endpoint(target.name, target.endpoint, timeout=config.request_timeout_sec)
        except ConnectivityFailure as exc:
            click.echo(f"  FAIL  {exc}")
            failed = True
        else:
            click.echo(f"  OK    {target.name} ({target.endpoint})")
    if failed:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# results
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--results-dir",
    type=click.Path(path_type=Path),
    default=Path("results"),
    show_default=True,
)
@click.option("--history", is_flag=True, help="List all stored comparisons instead of the latest.")
@click.option(
    "--mode",
    type=click.Choice(["performance", "loadtest", "buildtest"]),
    default=None,
    help="Only show comparisons of this mode.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def results(results_dir: Path, history: bool, mode: str | None, as_json: bool) -> None:
    """Show the latest stored comparison, or the full history."""
    store = ResultsStore(results_dir)

    if history:
        records = store.history(mode)
        if as_json:
            click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        else:
            click.echo(format_history(records))
        return

    if mode is not None:
        found = store.history(mode)
        record = found[-1] if found else None
    else:
        record = store.latest()
    if record is None:
        click.echo(f"No stored results in {results_dir}.", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
    else:
        click.echo(format_record(record))
