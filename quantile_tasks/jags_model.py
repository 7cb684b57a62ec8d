"""Quantile regression as a hand-written JAGS model, sampled through pyjags."""
from __future__ import annotations

import logging
from typing import Any, Dict

import numpy as np

from . import common

try:
    import pyjags
    HAS_PYJAGS = True
except ImportError:
    HAS_PYJAGS = False

logger = logging.getLogger(__name__)

METHOD_NAME = "jags"

# Asymmetric Laplace likelihood as a normal mixed over an exponential latent w.
JAGS_MODEL = """
model {
  for (i in 1:N) {
    mu[i] <- alpha + beta * x[i]
    w[i] ~ dexp(tau)
    me[i] <- (1 - 2 * p) / (p * (1 - p)) * w[i] + mu[i]
    pe[i] <- (p * (1 - p) * tau) / (2 * w[i])
    y[i] ~ dnorm(me[i], pe[i])
  }

  # Weakly informative priors
  alpha ~ dnorm(0, 1.0E-4)
  beta ~ dnorm(0, 1.0E-4)
  lsigma ~ dunif(-5, 5)
  sigma <- exp(lsigma / 2)
  tau <- pow(sigma, -2)
}
"""


def build_data(dataset: common.Dataset, p: float) -> Dict[str, Any]:
    """Data block handed to JAGS."""

    return {
        "N": dataset.n_obs,
        "x": np.asarray(dataset.x, dtype=float),
        "y": np.asarray(dataset.y, dtype=float),
        "p": common.validate_quantile(p),
    }


def build_inits(chains: int, seed: int) -> list[Dict[str, Any]]:
    """Per-chain RNG settings so repeated runs reproduce the same draws."""

    return [
        {".RNG.name": "base::Mersenne-Twister", ".RNG.seed": seed + chain}
        for chain in range(chains)
    ]


def run_jags(
    dataset: common.Dataset,
    p: float | None = None,
    *,
    settings: common.SamplerSettings | None = None,
    verbose: bool = False,
) -> common.FitResult:
    """
    Compile the JAGS model, adapt, burn in, and collect ``alpha``, ``beta``
    and ``sigma`` draws across chains.

    Chains run on one thread each (bounded by the chain count); the caller
    does not coordinate them.
    """
    tau = common.validate_quantile(dataset.p if p is None else p)
    if not HAS_PYJAGS:
        raise ImportError(
            "pyjags is required for the JAGS runner. Install JAGS and then: pip install pyjags"
        )
    settings = settings or common.SamplerSettings()

    logger.info(
        f"Compiling JAGS model: {settings.chains} chains, adapt={settings.warmup}, "
        f"burn-in={settings.burnin}, iterations={settings.draws}"
    )
    model = pyjags.Model(
        code=JAGS_MODEL,
        data=build_data(dataset, tau),
        init=build_inits(settings.chains, settings.seed),
        chains=settings.chains,
        adapt=settings.warmup,
        threads=settings.chains,
        progress_bar=verbose,
    )
    if settings.burnin:
        model.update(settings.burnin)
    samples = model.sample(
        settings.draws,
        vars=list(common.PARAMETERS),
        thin=settings.thin,
    )

    # pyjags returns arrays shaped (dimension, iterations, chains).
    draws = common.draws_frame({name: samples[name][0] for name in common.PARAMETERS})
    summary = common.summarise_draws(draws, common.PARAMETERS)

    return common.FitResult(
        method=METHOD_NAME,
        quantile=tau,
        summary=summary,
        draws=draws,
        diagnostics={
            "chains": settings.chains,
            "adapt": settings.warmup,
            "burnin": settings.burnin,
            "iterations": settings.draws,
            "thin": settings.thin,
        },
    )
