"""Generate the shared dataset, run the selected estimators and report."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable

from . import bayes_qr, common, data, frequentist, jags_model, report, stan_model

logger = logging.getLogger(__name__)

Runner = Callable[..., common.FitResult]


def _run_frequentist(dataset: common.Dataset, settings: common.SamplerSettings, verbose: bool) -> common.FitResult:
    return frequentist.run_frequentist(dataset)


def _run_bayes_qr(dataset: common.Dataset, settings: common.SamplerSettings, verbose: bool) -> common.FitResult:
    return bayes_qr.run_bayes_qr(dataset, settings=settings, verbose=verbose)


def _run_jags(dataset: common.Dataset, settings: common.SamplerSettings, verbose: bool) -> common.FitResult:
    return jags_model.run_jags(dataset, settings=settings, verbose=verbose)


def _run_stan(dataset: common.Dataset, settings: common.SamplerSettings, verbose: bool) -> common.FitResult:
    return stan_model.run_stan(dataset, settings=settings, verbose=verbose)


METHOD_RUNNERS: Dict[str, Runner] = {
    "frequentist": _run_frequentist,
    "bayes_qr": _run_bayes_qr,
    "jags": _run_jags,
    "stan": _run_stan,
}


def run(
    *,
    methods: Iterable[str] = common.METHODS,
    p: float = common.DEFAULT_QUANTILE,
    seed: int = common.RANDOM_SEED,
    n_obs: int = common.N_OBS,
    settings: common.SamplerSettings | None = None,
    output_dir: Path | None = None,
    verbose: bool = False,
) -> list[common.FitResult]:
    """Fit every requested method on one generated dataset and print the comparison."""

    p = common.validate_quantile(p)
    selected = list(methods)
    unknown = [name for name in selected if name not in METHOD_RUNNERS]
    if unknown:
        raise ValueError("Unknown methods: " + ", ".join(unknown))
    settings = settings or common.SamplerSettings(seed=seed)

    dataset = data.generate_dataset(seed=seed, n_obs=n_obs, p=p)
    logger.info(f"Generated dataset: {dataset.n_obs} observations, target quantile {p:g}")

    results: list[common.FitResult] = []
    for index, name in enumerate(selected, start=1):
        logger.info(f"[{index}/{len(selected)}] Fitting {name}...")
        result = METHOD_RUNNERS[name](dataset, settings, verbose)
        report.print_fit(result)
        results.append(result)

    table = report.comparison_table(results, truth=data.theoretical_quantile_line(p))
    report.print_comparison(table)

    if output_dir is not None:
        report.write_artefacts(output_dir, dataset, results, table)

    report.print_session_info()
    return results
