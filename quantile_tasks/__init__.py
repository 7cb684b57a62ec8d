"""Comparison of frequentist and Bayesian quantile regression estimators."""

from . import bayes_qr, common, comparison, data, frequentist, jags_model, report, stan_model  # noqa: F401

__all__ = [
    "bayes_qr",
    "common",
    "comparison",
    "data",
    "frequentist",
    "jags_model",
    "report",
    "stan_model",
]
