"""Frequentist linear quantile regression (pinball-loss minimisation)."""
from __future__ import annotations

import logging
import warnings

import pandas as pd
import statsmodels.api as sm
from statsmodels.regression.quantile_regression import QuantReg
from statsmodels.tools.sm_exceptions import IterationLimitWarning

from . import common

logger = logging.getLogger(__name__)

METHOD_NAME = "frequentist"


def _design_matrix(dataset: common.Dataset) -> pd.DataFrame:
    exog = sm.add_constant(pd.DataFrame({"beta": dataset.x}), has_constant="add")
    return exog.rename(columns={"const": "alpha"})


def run_frequentist(
    dataset: common.Dataset,
    p: float | None = None,
    *,
    vcov: str = "robust",
    kernel: str = "epa",
    bandwidth: str = "hsheather",
    max_iter: int = 1000,
) -> common.FitResult:
    """
    Fit ``y ~ 1 + x`` at quantile ``p`` with statsmodels' QuantReg.

    Returns point estimates, standard errors and 95% confidence bounds for
    ``alpha`` and ``beta``. Solver non-convergence is raised, not recovered.
    """
    tau = common.validate_quantile(dataset.p if p is None else p)

    endog = pd.Series(dataset.y, name="y")
    exog = _design_matrix(dataset)
    model = QuantReg(endog, exog)

    with warnings.catch_warnings():
        warnings.simplefilter("error", IterationLimitWarning)
        fit = model.fit(
            q=tau,
            vcov=vcov,
            kernel=kernel,
            bandwidth=bandwidth,
            max_iter=max_iter,
        )

    conf = fit.conf_int(alpha=0.05)
    summary = pd.DataFrame(
        {
            "estimate": fit.params,
            "spread": fit.bse,
            "conf_low": conf[0],
            "conf_high": conf[1],
            "p_value": fit.pvalues,
        }
    )
    summary.index.name = "parameter"
    logger.info(
        f"QuantReg (q={tau}): alpha={summary.loc['alpha', 'estimate']:.3f}, "
        f"beta={summary.loc['beta', 'estimate']:.3f}"
    )

    return common.FitResult(
        method=METHOD_NAME,
        quantile=tau,
        summary=summary,
        draws=None,
        diagnostics={
            "n_obs": int(fit.nobs),
            "iterations": int(getattr(fit, "iterations", 0)),
            "vcov": vcov,
            "bandwidth": bandwidth,
            "pseudo_r2": float(fit.prsquared),
        },
    )
