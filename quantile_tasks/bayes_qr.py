"""Bayesian quantile regression via the asymmetric-Laplace mixture Gibbs sampler.

The asymmetric Laplace likelihood with scale ``sigma`` is written as a normal
location-scale mixture over an exponential latent ``v_i`` (mean ``sigma``):

    y_i = x_i' beta + theta * v_i + sqrt(tau2 * sigma * v_i) * z_i

with ``theta = (1 - 2p) / (p (1 - p))`` and ``tau2 = 2 / (p (1 - p))``. All
full conditionals are closed form:

- ``beta | v, sigma``  multivariate normal
- ``1 / v_i | beta, sigma``  inverse Gaussian
- ``sigma | beta, v``  inverse gamma

Priors follow the bayesQR defaults: ``beta ~ N(0, 100 I)`` and
``sigma ~ IG(0.01, 0.01)``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from . import common

logger = logging.getLogger(__name__)

METHOD_NAME = "bayes_qr"
PROGRESS_EVERY = 1000


@dataclass(frozen=True)
class Prior:
    """Normal prior on the coefficients and inverse-gamma prior on sigma."""

    beta_mean: float = 0.0
    beta_variance: float = 100.0
    sigma_shape: float = 0.01
    sigma_scale: float = 0.01


def mixture_constants(p: float) -> tuple[float, float]:
    """Return ``(theta, tau2)`` for quantile level ``p``."""

    p = common.validate_quantile(p)
    theta = (1.0 - 2.0 * p) / (p * (1.0 - p))
    tau2 = 2.0 / (p * (1.0 - p))
    return theta, tau2


def draw_beta(
    rng: np.random.Generator,
    y: np.ndarray,
    x: np.ndarray,
    v: np.ndarray,
    sigma: float,
    theta: float,
    tau2: float,
    prior_precision: np.ndarray,
    prior_shift: np.ndarray,
) -> np.ndarray:
    """Sample the coefficients from their multivariate normal conditional."""

    weights = 1.0 / (tau2 * sigma * v)
    precision = prior_precision + (x * weights[:, None]).T @ x
    covariance = np.linalg.inv(precision)
    mean = covariance @ (prior_shift + x.T @ (weights * (y - theta * v)))
    chol = np.linalg.cholesky(covariance)
    return mean + chol @ rng.standard_normal(mean.size)


def draw_latent(
    rng: np.random.Generator,
    residual: np.ndarray,
    sigma: float,
    theta: float,
    tau2: float,
) -> np.ndarray:
    """Sample the exponential mixing weights from their GIG(1/2) conditional."""

    # v ~ GIG(1/2, chi, psi)  <=>  1/v ~ InverseGaussian(sqrt(psi/chi), psi)
    chi = np.maximum(residual**2 / (tau2 * sigma), 1e-12)
    psi = theta**2 / (tau2 * sigma) + 2.0 / sigma
    inverse = rng.wald(np.sqrt(psi / chi), psi)
    return 1.0 / np.maximum(inverse, 1e-300)


def draw_sigma(
    rng: np.random.Generator,
    residual: np.ndarray,
    v: np.ndarray,
    theta: float,
    tau2: float,
    prior: Prior,
) -> float:
    """Sample the asymmetric-Laplace scale from its inverse-gamma conditional."""

    shape = prior.sigma_shape + 1.5 * residual.size
    rate = (
        prior.sigma_scale
        + v.sum()
        + np.sum((residual - theta * v) ** 2 / (2.0 * tau2 * v))
    )
    return float(1.0 / rng.gamma(shape, 1.0 / rate))


def sample_posterior(
    dataset: common.Dataset,
    p: float,
    *,
    draws: int,
    thin: int = 1,
    seed: int = common.RANDOM_SEED,
    prior: Prior | None = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """Run the Gibbs sampler and return every retained draw (single chain)."""

    if draws < 1:
        raise ValueError("draws must be positive")
    if thin < 1:
        raise ValueError("thin must be at least 1")
    prior = prior or Prior()
    theta, tau2 = mixture_constants(p)

    y = np.asarray(dataset.y, dtype=float)
    x = np.column_stack([np.ones_like(dataset.x), dataset.x])
    k = x.shape[1]

    prior_precision = np.eye(k) / prior.beta_variance
    prior_shift = prior_precision @ np.full(k, prior.beta_mean)

    rng = np.random.default_rng(seed)
    beta = np.linalg.lstsq(x, y, rcond=None)[0]
    v = np.ones_like(y)
    sigma = 1.0

    n_keep = draws // thin
    beta_draws = np.empty((n_keep, k))
    sigma_draws = np.empty(n_keep)

    level = logging.INFO if verbose else logging.DEBUG
    kept = 0
    for it in range(1, n_keep * thin + 1):
        beta = draw_beta(rng, y, x, v, sigma, theta, tau2, prior_precision, prior_shift)
        residual = y - x @ beta
        v = draw_latent(rng, residual, sigma, theta, tau2)
        sigma = draw_sigma(rng, residual, v, theta, tau2, prior)
        if it % thin == 0:
            beta_draws[kept] = beta
            sigma_draws[kept] = sigma
            kept += 1
        if it % PROGRESS_EVERY == 0:
            logger.log(level, f"  Gibbs iteration {it}/{n_keep * thin}")

    return pd.DataFrame(
        {
            "chain": 1,
            "iteration": np.arange(1, n_keep + 1),
            "alpha": beta_draws[:, 0],
            "beta": beta_draws[:, 1],
            "sigma": sigma_draws,
        }
    )


def run_bayes_qr(
    dataset: common.Dataset,
    p: float | None = None,
    *,
    settings: common.SamplerSettings | None = None,
    prior: Prior | None = None,
    verbose: bool = False,
) -> common.FitResult:
    """Bayesian quantile regression of ``y`` on ``x`` at level ``p``."""

    tau = common.validate_quantile(dataset.p if p is None else p)
    settings = settings or common.SamplerSettings()
    # Stored draw i corresponds to Gibbs iteration i * thin.
    retained = settings.draws // settings.thin - settings.burnin // settings.thin
    if retained < 1:
        raise ValueError(
            f"burn-in ({settings.burnin}) leaves no retained draws out of "
            f"{settings.draws} with thin={settings.thin}"
        )

    logger.info(f"Running Gibbs sampler: {settings.draws} draws at p={tau}")
    all_draws = sample_posterior(
        dataset,
        tau,
        draws=settings.draws,
        thin=settings.thin,
        seed=settings.seed,
        prior=prior,
        verbose=verbose,
    )
    kept = all_draws[all_draws["iteration"] * settings.thin > settings.burnin]
    kept = kept.reset_index(drop=True)
    summary = common.summarise_draws(kept, common.PARAMETERS)

    return common.FitResult(
        method=METHOD_NAME,
        quantile=tau,
        summary=summary,
        draws=kept,
        diagnostics={
            "draws": settings.draws,
            "burnin": settings.burnin,
            "thin": settings.thin,
            "retained": int(len(kept)),
        },
    )
