"""Quantile regression as a hand-written Stan model, sampled through cmdstanpy."""
from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any, Dict

import cmdstanpy
import numpy as np

from . import common

logger = logging.getLogger(__name__)

METHOD_NAME = "stan"
# Compiled executables are cached here so repeated runs skip compilation.
MODEL_DIR = Path(tempfile.gettempdir()) / "quantile_tasks" / "stan_models"
MODEL_NAME = "ald_quantile_regression"

STAN_MODEL = """
data {
  int<lower=1> N;
  real<lower=0, upper=1> p;
  vector[N] x;
  vector[N] y;
}

parameters {
  real alpha;
  real beta;
  real<lower=-5, upper=5> lsigma;
  vector<lower=0>[N] w;
}

transformed parameters {
  real<lower=0> sigma = exp(lsigma / 2);
  real<lower=0> tau = pow(sigma, -2);
}

model {
  vector[N] mu = alpha + beta * x;
  vector[N] me = (1 - 2 * p) / (p * (1 - p)) * w + mu;
  vector[N] pe = (p * (1 - p) * tau) ./ (2 * w);

  // Same priors as the JAGS model: precision 1e-4 is sd 100.
  alpha ~ normal(0, 100);
  beta ~ normal(0, 100);
  lsigma ~ uniform(-5, 5);

  w ~ exponential(tau);
  y ~ normal(me, inv_sqrt(pe));
}
"""


def build_data(dataset: common.Dataset, p: float) -> Dict[str, Any]:
    """Data block handed to Stan."""

    return {
        "N": dataset.n_obs,
        "p": common.validate_quantile(p),
        "x": np.asarray(dataset.x, dtype=float),
        "y": np.asarray(dataset.y, dtype=float),
    }


def build_inits(n_obs: int) -> Dict[str, Any]:
    """Starting point shared by every chain."""

    return {
        "alpha": 0.0,
        "beta": 0.0,
        "lsigma": 0.0,
        "w": np.ones(n_obs),
    }


def write_model(model_dir: Path | None = None) -> Path:
    """Write the Stan program to disk, leaving an identical file untouched."""

    directory = Path(model_dir) if model_dir is not None else MODEL_DIR
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{MODEL_NAME}.stan"
    if not path.exists() or path.read_text(encoding="utf-8") != STAN_MODEL:
        path.write_text(STAN_MODEL, encoding="utf-8")
    return path


def run_stan(
    dataset: common.Dataset,
    p: float | None = None,
    *,
    settings: common.SamplerSettings | None = None,
    model_dir: Path | None = None,
    verbose: bool = False,
) -> common.FitResult:
    """
    Compile (once) and sample the Stan model, returning draws of ``alpha``,
    ``beta`` and ``sigma`` across chains.

    Chains run in parallel inside CmdStan; the caller does not coordinate them.
    """
    tau = common.validate_quantile(dataset.p if p is None else p)
    settings = settings or common.SamplerSettings()

    logging.getLogger("cmdstanpy").setLevel(logging.DEBUG if verbose else logging.WARNING)

    stan_file = write_model(model_dir)
    logger.info(f"Compiling Stan model from {stan_file}")
    model = cmdstanpy.CmdStanModel(stan_file=str(stan_file))

    logger.info(
        f"Sampling Stan model: {settings.chains} chains, warmup={settings.warmup}, "
        f"iterations={settings.draws}"
    )
    fit = model.sample(
        data=build_data(dataset, tau),
        inits=build_inits(dataset.n_obs),
        chains=settings.chains,
        parallel_chains=settings.chains,
        iter_warmup=settings.warmup,
        iter_sampling=settings.draws,
        thin=settings.thin,
        seed=settings.seed,
        show_progress=verbose,
        show_console=False,
    )

    # Shape (iterations, chains, columns).
    raw = fit.draws(concat_chains=False)
    columns = list(fit.column_names)
    draws = common.draws_frame(
        {name: raw[:, :, columns.index(name)] for name in common.PARAMETERS}
    )
    summary = common.summarise_draws(draws, common.PARAMETERS)

    return common.FitResult(
        method=METHOD_NAME,
        quantile=tau,
        summary=summary,
        draws=draws.reset_index(drop=True),
        diagnostics={
            "chains": settings.chains,
            "warmup": settings.warmup,
            "iterations": settings.draws,
            "thin": settings.thin,
            "divergences": int(np.sum(fit.divergences)) if fit.divergences is not None else 0,
        },
    )
