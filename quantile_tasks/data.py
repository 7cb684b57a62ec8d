"""Synthetic heteroskedastic linear data for the quantile regression comparison."""
from __future__ import annotations

import logging

import numpy as np
from scipy import stats

from . import common

logger = logging.getLogger(__name__)


def generate_dataset(
    *,
    seed: int = common.RANDOM_SEED,
    n_obs: int = common.N_OBS,
    alpha: float = common.TRUE_ALPHA,
    beta: float = common.TRUE_BETA,
    noise_scale: float = common.NOISE_SCALE,
    p: float = common.DEFAULT_QUANTILE,
) -> common.Dataset:
    """
    Draw ``x ~ U(0, 10)`` and ``y = alpha + beta * x + e`` with
    ``e ~ N(0, noise_scale * x)``.

    The noise standard deviation grows linearly with ``x``, so the conditional
    quantiles fan out and the upper-quantile slope exceeds ``beta``.
    """
    if n_obs < 1:
        raise ValueError(f"n_obs must be positive, got {n_obs}")
    if noise_scale < 0:
        raise ValueError(f"noise_scale cannot be negative, got {noise_scale}")
    p = common.validate_quantile(p)

    rng = np.random.default_rng(seed)
    low, high = common.X_RANGE
    x = rng.uniform(low, high, size=n_obs)
    noise = rng.normal(0.0, noise_scale * x)
    y = alpha + beta * x + noise

    logger.debug(f"Generated {n_obs} observations (seed={seed}, p={p})")
    return common.Dataset(x=x, y=y, p=p)


def theoretical_quantile_line(
    p: float,
    *,
    alpha: float = common.TRUE_ALPHA,
    beta: float = common.TRUE_BETA,
    noise_scale: float = common.NOISE_SCALE,
) -> dict[str, float]:
    """True conditional ``p``-quantile intercept and slope of the generator."""

    p = common.validate_quantile(p)
    return {
        "alpha": float(alpha),
        "beta": float(beta + noise_scale * stats.norm.ppf(p)),
    }
