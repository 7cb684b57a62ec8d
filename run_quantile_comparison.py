"""Fit the four quantile regression variants on the synthetic dataset and compare them."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from quantile_tasks import common, comparison


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compare frequentist, Gibbs, JAGS and Stan quantile regression fits.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--methods",
        nargs="+",
        choices=list(common.METHODS),
        default=list(common.METHODS),
        help="Subset of estimators to run.",
    )
    parser.add_argument(
        "--quantile",
        type=float,
        default=common.DEFAULT_QUANTILE,
        help="Target quantile level, strictly between 0 and 1.",
    )
    parser.add_argument("--seed", type=int, default=common.RANDOM_SEED, help="Random seed.")
    parser.add_argument("--n-obs", type=int, default=common.N_OBS, help="Sample size.")
    parser.add_argument("--draws", type=int, default=5000, help="Posterior draws per chain.")
    parser.add_argument("--burnin", type=int, default=1000, help="Burn-in draws discarded.")
    parser.add_argument("--thin", type=int, default=1, help="Thinning interval.")
    parser.add_argument("--chains", type=int, default=4, help="Chains for JAGS and Stan.")
    parser.add_argument("--warmup", type=int, default=1000, help="Adaptation / warm-up iterations.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Optional directory for tables, draws and figures (console only when omitted).",
    )
    parser.add_argument("--verbose", action="store_true", help="Show sampler progress and debug logs.")
    args = parser.parse_args(argv)

    try:
        common.validate_quantile(args.quantile)
    except ValueError as exc:
        parser.error(str(exc))
    return args


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    settings = common.SamplerSettings(
        draws=args.draws,
        burnin=args.burnin,
        thin=args.thin,
        chains=args.chains,
        warmup=args.warmup,
        seed=args.seed,
    )
    comparison.run(
        methods=args.methods,
        p=args.quantile,
        seed=args.seed,
        n_obs=args.n_obs,
        settings=settings,
        output_dir=args.output_dir,
        verbose=args.verbose,
    )
    print("All requested methods completed.")


if __name__ == "__main__":
    main()
