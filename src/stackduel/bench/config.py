"""Benchmark configuration and profile loading.

Handles:
- The immutable ``DuelConfig`` built once per run and passed to every
  component.
- Loading benchmark profiles from YAML files.
- Merging CLI options over profile values.
- Validating the final configuration before anything is measured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

log = logging.getLogger("stackduel")

MODES = ("performance", "loadtest", "buildtest")

DEFAULT_ARTIFACT_GLOBS: tuple[str, ...] = ("*.js", "*.css")


# ---------------------------------------------------------------------------
# Targets and scenarios
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Scenario:
    """A named request path sampled against both targets."""

    name: str
    path: str = "/"


@dataclass(frozen=True)
class TargetDef:
    """One side of the comparison: an HTTP origin and how to build it."""

    name: str
    endpoint: str
    build_command: str = "pnpm run build"
    build_workdir: Path = field(default_factory=lambda: Path("."))
    artifact_dir: str = "dist"
    artifact_globs: tuple[str, ...] = DEFAULT_ARTIFACT_GLOBS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "name": self.name,
            "endpoint": self.endpoint,
            "build_command": self.build_command,
            "build_workdir": str(self.build_workdir),
            "artifact_dir": self.artifact_dir,
            "artifact_globs": list(self.artifact_globs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, default_name: str) -> TargetDef:
        """Build a TargetDef from a profile mapping."""
        globs = data.get("artifact_globs", DEFAULT_ARTIFACT_GLOBS)
        if isinstance(globs, str):
            globs = [g.strip() for g in globs.split(",") if g.strip()]
        return cls(
            name=str(data.get("name", default_name)),
            endpoint=str(data.get("endpoint", "")),
            build_command=str(data.get("build_command", "pnpm run build")),
            build_workdir=Path(data.get("build_workdir", ".")),
            artifact_dir=str(data.get("artifact_dir", "dist")),
            artifact_globs=tuple(globs),
        )


# ---------------------------------------------------------------------------
# DuelConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DuelConfig:
    """Resolved configuration for one comparison run."""

    mode: str = "performance"
    target_a: TargetDef = field(
        default_factory=lambda: TargetDef(name="A", endpoint="http://localhost:3000")
    )
    target_b: TargetDef = field(
        default_factory=lambda: TargetDef(name="B", endpoint="http://localhost:3001")
    )

    # Request sampling
    warmup_count: int = 50
    measured_count: int = 20
    inter_request_delay_ms: int = 10
    request_timeout_sec: float = 10.0
    scenarios: tuple[Scenario, ...] = (Scenario("Homepage", "/"),)

    # Load test
    load_duration_sec: int = 30
    load_connections: int = 50
    load_pipelining: int = 1
    load_timeout_sec: int = 10
    pause_between_targets_sec: float = 0.0

    # Build test
    build_timeout_sec: float = 120.0

    results_dir: Path = field(default_factory=lambda: Path("results"))

    @property
    def targets(self) -> tuple[TargetDef, TargetDef]:
        """Both targets, A first."""
        return (self.target_a, self.target_b)

    def snapshot(self) -> dict[str, Any]:
        """The run parameters relevant to this config's mode, for records."""
        data: dict[str, Any] = {"mode": self.mode}
        if self.mode == "performance":
            data.update(
                {
                    "warmupCount": self.warmup_count,
                    "measuredCount": self.measured_count,
                    "interRequestDelayMs": self.inter_request_delay_ms,
                    "scenarios": [{"name": s.name, "path": s.path} for s in self.scenarios],
                }
            )
        elif self.mode == "loadtest":
            data.update(
                {
                    "durationSec": self.load_duration_sec,
                    "connections": self.load_connections,
                    "pipelining": self.load_pipelining,
                    "timeoutSec": self.load_timeout_sec,
                }
            )
        else:
            data["buildTimeoutSec"] = self.build_timeout_sec
        return data


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def _is_http_origin(endpoint: str) -> bool:
    parsed = urlparse(endpoint)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_config(config: DuelConfig) -> list[ValidationError]:
    """Validate a comparison configuration.

    Returns a list of validation errors. Empty list means valid.
    """
    errors: list[ValidationError] = []

    if config.mode not in MODES:
        errors.append(
            ValidationError(
                field="mode",
                message=f"Unknown mode '{config.mode}'. Choose one of: {', '.join(MODES)}.",
            )
        )

    for key, target in (("target_a", config.target_a), ("target_b", config.target_b)):
        if not target.name.strip():
            errors.append(ValidationError(field=f"{key}.name", message="Target name is empty."))
        if config.mode in ("performance", "loadtest") and not _is_http_origin(target.endpoint):
            errors.append(
                ValidationError(
                    field=f"{key}.endpoint",
                    message=(
                        f"Endpoint for target '{target.name}' must look like "
                        f"scheme://host:port (got {target.endpoint!r})."
                    ),
                )
            )
        if config.mode == "buildtest" and not target.build_command.strip():
            errors.append(
                ValidationError(
                    field=f"{key}.build_command",
                    message=f"Target '{target.name}' has no build command.",
                )
            )

    if config.mode == "performance":
        if config.measured_count < 1:
            errors.append(
                ValidationError(
                    field="measured_count",
                    message=f"Need at least 1 measured request (got {config.measured_count}).",
                )
            )
        elif config.measured_count < 10:
            errors.append(
                ValidationError(
                    field="measured_count",
                    message=(
                        f"Only {config.measured_count} measured requests; "
                        f"p95/p99 will collapse onto the maximum."
                    ),
                    severity="warning",
                )
            )
        if config.warmup_count < 0:
            errors.append(
                ValidationError(
                    field="warmup_count",
                    message=f"Warmup count cannot be negative (got {config.warmup_count}).",
                )
            )
        if config.inter_request_delay_ms < 0:
            errors.append(
                ValidationError(
                    field="inter_request_delay_ms",
                    message="Inter-request delay cannot be negative.",
                )
            )
        if not config.scenarios:
            errors.append(ValidationError(field="scenarios", message="No scenarios defined."))

    if config.mode == "loadtest":
        for name in (
            "load_duration_sec",
            "load_connections",
            "load_pipelining",
            "load_timeout_sec",
        ):
            value = getattr(config, name)
            if value <= 0:
                errors.append(
                    ValidationError(field=name, message=f"{name} must be positive (got {value}).")
                )

    if config.mode == "buildtest" and config.build_timeout_sec <= 0:
        errors.append(
            ValidationError(
                field="build_timeout_sec",
                message=f"Build timeout must be positive (got {config.build_timeout_sec}).",
            )
        )

    if config.request_timeout_sec <= 0:
        errors.append(
            ValidationError(
                field="request_timeout_sec",
                message=f"Request timeout must be positive (got {config.request_timeout_sec}).",
            )
        )

    if config.mode != "buildtest" and config.target_a.endpoint == config.target_b.endpoint:
        errors.append(
            ValidationError(
                field="target_b.endpoint",
                message="Both targets point at the same endpoint.",
                severity="warning",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a comparison profile from a YAML file.

    Profile format::

        mode: performance
        warmup_count: 50
        measured_count: 20
        results_dir: results

        scenarios:
          - name: Homepage
            path: /

        target_a:
          name: rari
          endpoint: http://localhost:3000
          build_command: pnpm run build
          build_workdir: rari-app
          artifact_dir: dist/assets
        target_b:
          name: Next.js
          endpoint: http://localhost:3001
          build_workdir: nextjs-app
          artifact_dir: .next/static/chunks

    Returns:
        The parsed YAML as a dict.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())

    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


_INT_FIELDS = (
    "warmup_count",
    "measured_count",
    "inter_request_delay_ms",
    "load_duration_sec",
    "load_connections",
    "load_pipelining",
    "load_timeout_sec",
)
_FLOAT_FIELDS = ("request_timeout_sec", "pause_between_targets_sec", "build_timeout_sec")


def _parse_scenarios(raw: Any) -> tuple[Scenario, ...]:
    if not isinstance(raw, list):
        raise ValueError("Profile 'scenarios' must be a list of {name, path} mappings")
    scenarios = []
    for item in raw:
        if isinstance(item, str):
            scenarios.append(Scenario(name=item, path=item))
        elif isinstance(item, dict) and "name" in item:
            scenarios.append(Scenario(name=str(item["name"]), path=str(item.get("path", "/"))))
        else:
            raise ValueError(f"Invalid scenario entry: {item!r}")
    return tuple(scenarios)


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> DuelConfig:
    """Build a DuelConfig from a parsed profile and CLI overrides.

    CLI overrides take precedence over profile values. Override keys are
    DuelConfig field names plus ``target_a.<field>`` / ``target_b.<field>``
    for per-target settings. ``None`` values, from either source, are
    ignored.

    Args:
        profile_data: Parsed YAML profile dict (may be empty).
        cli_overrides: Dict of CLI option values.

    Returns:
        A frozen DuelConfig.
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    base = DuelConfig()
    kwargs: dict[str, Any] = {}

    for name in ("mode", *_INT_FIELDS, *_FLOAT_FIELDS, "results_dir"):
        if name in cli:
            kwargs[name] = cli[name]
        elif profile_data.get(name) is not None:
            kwargs[name] = profile_data[name]

    for names, convert in ((_INT_FIELDS, int), (_FLOAT_FIELDS, float)):
        for name in names:
            if name not in kwargs:
                continue
            try:
                kwargs[name] = convert(kwargs[name])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value for '{name}': {kwargs[name]!r}") from exc
    if "results_dir" in kwargs:
        kwargs["results_dir"] = Path(kwargs["results_dir"])

    if "scenarios" in profile_data:
        kwargs["scenarios"] = _parse_scenarios(profile_data["scenarios"])

    for key, default in (("target_a", base.target_a), ("target_b", base.target_b)):
        target_data = profile_data.get(key) or {}
        if not isinstance(target_data, dict):
            raise ValueError(f"Profile '{key}' must be a mapping")
        merged = default.to_dict()
        merged.update({k: v for k, v in target_data.items() if v is not None})
        prefix = f"{key}."
        for ck, cv in cli.items():
            if ck.startswith(prefix):
                merged[ck[len(prefix) :]] = cv
        kwargs[key] = TargetDef.from_dict(merged, default_name=default.name)

    config = replace(base, **kwargs)
    log.debug("Resolved config: %s", config)
    return config
