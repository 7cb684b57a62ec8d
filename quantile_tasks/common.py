"""Shared helpers for the quantile regression comparison tasks."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np
import pandas as pd

# Synthetic data generator defaults.
RANDOM_SEED = 666
N_OBS = 500
TRUE_ALPHA = 1.0
TRUE_BETA = 2.0
NOISE_SCALE = 0.6
X_RANGE: tuple[float, float] = (0.0, 10.0)
DEFAULT_QUANTILE = 0.95

# Quantile levels reported for every posterior parameter.
SUMMARY_QUANTILES: Sequence[float] = (0.005, 0.25, 0.5, 0.75, 0.95)

# Central 95% credible interval, comparable with a 95% confidence interval.
INTERVAL_LEVELS: tuple[float, float] = (0.025, 0.975)

PARAMETERS: Sequence[str] = ("alpha", "beta", "sigma")

METHODS: Sequence[str] = ("frequentist", "bayes_qr", "jags", "stan")


@dataclass(frozen=True)
class Dataset:
    """Covariate/response sample plus the target quantile level."""

    x: np.ndarray
    y: np.ndarray
    p: float

    def __post_init__(self) -> None:
        x = np.array(self.x, dtype=float)
        y = np.array(self.y, dtype=float)
        if x.ndim != 1 or y.ndim != 1:
            raise ValueError("x and y must be one-dimensional")
        if x.shape != y.shape:
            raise ValueError(
                f"x and y must have the same length (got {x.size} and {y.size})"
            )
        validate_quantile(self.p)
        x.setflags(write=False)
        y.setflags(write=False)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "p", float(self.p))

    @property
    def n_obs(self) -> int:
        return int(self.x.size)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"x": self.x, "y": self.y})


@dataclass
class SamplerSettings:
    """Sampling controls shared by the Bayesian runners."""

    draws: int = 5000
    burnin: int = 1000
    thin: int = 1
    chains: int = 4
    warmup: int = 1000
    seed: int = RANDOM_SEED

    def __post_init__(self) -> None:
        if self.draws < 1:
            raise ValueError("draws must be positive")
        if self.burnin < 0 or self.warmup < 0:
            raise ValueError("burn-in and warm-up lengths cannot be negative")
        if self.thin < 1:
            raise ValueError("thin must be at least 1")
        if self.chains < 1:
            raise ValueError("chains must be at least 1")


@dataclass
class FitResult:
    """Container for one estimator's output."""

    method: str
    quantile: float
    summary: pd.DataFrame
    draws: pd.DataFrame | None = None
    diagnostics: Mapping[str, object] = field(default_factory=dict)

    @property
    def estimates(self) -> dict[str, float]:
        return {name: float(value) for name, value in self.summary["estimate"].items()}

    @property
    def parameters(self) -> list[str]:
        return list(self.summary.index)


def validate_quantile(p: float) -> float:
    """Return ``p`` as a float, raising when it is not strictly inside (0, 1)."""

    try:
        value = float(p)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Quantile level must be numeric, got {p!r}") from exc
    if not 0.0 < value < 1.0:
        raise ValueError(f"Quantile level must lie strictly between 0 and 1, got {value}")
    return value


def quantile_label(level: float) -> str:
    """Column label for a summary quantile level (0.005 -> 'q0.005')."""

    return f"q{level:g}"


def gelman_rubin(chains: np.ndarray) -> float:
    """Potential scale reduction factor for an array shaped (n_chains, n_draws)."""

    values = np.asarray(chains, dtype=float)
    n_chains, n_draws = values.shape
    if n_chains < 2 or n_draws < 2:
        return float("nan")
    chain_means = values.mean(axis=1)
    within = values.var(axis=1, ddof=1).mean()
    between = n_draws * chain_means.var(ddof=1)
    if within <= 0:
        return float("nan")
    pooled = (n_draws - 1) / n_draws * within + between / n_draws
    return float(np.sqrt(pooled / within))


def summarise_draws(
    draws: pd.DataFrame,
    parameters: Sequence[str] | None = None,
    *,
    levels: Sequence[float] = SUMMARY_QUANTILES,
) -> pd.DataFrame:
    """Reduce a posterior draw table to per-parameter summary statistics."""

    names = list(parameters) if parameters is not None else [
        column for column in draws.columns if column not in ("chain", "iteration")
    ]
    missing = [name for name in names if name not in draws.columns]
    if missing:
        raise KeyError("Draw table is missing parameters: " + ", ".join(missing))

    records = []
    for name in names:
        values = draws[name].to_numpy(dtype=float)
        record: dict[str, float | str] = {
            "parameter": name,
            "estimate": float(values.mean()),
            "spread": float(values.std(ddof=1)) if values.size > 1 else float("nan"),
        }
        quantiles = np.quantile(values, list(levels))
        for level, value in zip(levels, quantiles):
            record[quantile_label(level)] = float(value)
        conf_low, conf_high = np.quantile(values, list(INTERVAL_LEVELS))
        record["conf_low"] = float(conf_low)
        record["conf_high"] = float(conf_high)
        if "chain" in draws.columns and draws["chain"].nunique() > 1:
            per_chain = [
                group[name].to_numpy(dtype=float)
                for _, group in draws.groupby("chain", sort=True)
            ]
            length = min(len(chunk) for chunk in per_chain)
            record["rhat"] = gelman_rubin(np.vstack([chunk[:length] for chunk in per_chain]))
        else:
            record["rhat"] = float("nan")
        records.append(record)
    return pd.DataFrame.from_records(records).set_index("parameter")


def draws_frame(samples: Mapping[str, np.ndarray]) -> pd.DataFrame:
    """Build a long draw table from arrays shaped (n_draws, n_chains)."""

    names = list(samples)
    if not names:
        raise ValueError("No posterior samples supplied")
    first = np.asarray(samples[names[0]])
    n_draws, n_chains = first.shape
    frame = pd.DataFrame(
        {
            "chain": np.repeat(np.arange(1, n_chains + 1), n_draws),
            "iteration": np.tile(np.arange(1, n_draws + 1), n_chains),
        }
    )
    for name in names:
        values = np.asarray(samples[name], dtype=float)
        if values.shape != (n_draws, n_chains):
            raise ValueError(
                f"Samples for {name} have shape {values.shape}, expected {(n_draws, n_chains)}"
            )
        frame[name] = values.T.reshape(-1)
    return frame


def write_json(path: Path, payload: Mapping[str, object]) -> None:
    """Write a JSON payload with UTF-8 encoding."""

    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True, default=str)


def write_summary(
    directory: Path,
    lines: Sequence[str],
    *,
    filename: str = "summary.txt",
    max_lines: int = 10,
) -> Path:
    """Persist a short summary text file (at most max_lines)."""

    trimmed = list(lines)[:max_lines]
    path = directory / filename
    with path.open("w", encoding="utf-8") as handle:
        handle.write("\n".join(trimmed).strip() + "\n")
    return path


SESSION_PACKAGES: Sequence[str] = (
    "numpy",
    "pandas",
    "scipy",
    "statsmodels",
    "matplotlib",
    "seaborn",
    "pyarrow",
    "cmdstanpy",
    "pyjags",
)


def package_versions(extra_packages: Sequence[str] | None = None) -> dict[str, str]:
    """Installed versions of the packages used by the comparison."""

    packages = list(SESSION_PACKAGES)
    if extra_packages:
        packages.extend(extra_packages)

    versions: dict[str, str] = {}
    for pkg in packages:
        try:
            versions[pkg] = metadata.version(pkg)
        except metadata.PackageNotFoundError:
            continue
    return versions


def write_session_info(
    directory: Path,
    extra_packages: Sequence[str] | None = None,
) -> Path:
    """Record package versions used for the current analysis run."""

    path = directory / "session_info.txt"
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "packages": package_versions(extra_packages),
    }
    write_json(path, payload)
    return path


def format_bullet_summary(items: Mapping[str, object]) -> str:
    """Create a human-readable bullet summary from a mapping."""

    lines = [f"• {key}: {value}" for key, value in items.items()]
    return "\n".join(lines)


def indent_lines(text: str, spaces: int = 2) -> str:
    """Indent multi-line text for console display."""

    prefix = " " * spaces
    return "\n".join(prefix + line for line in text.splitlines())
