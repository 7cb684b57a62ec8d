"""Console summaries, comparison tables and optional artefacts."""
from __future__ import annotations

import logging
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for CLI
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from . import common, data

logger = logging.getLogger(__name__)

METHOD_LABELS: Mapping[str, str] = {
    "frequentist": "Frequentist (QuantReg)",
    "bayes_qr": "Bayesian QR (Gibbs)",
    "jags": "JAGS",
    "stan": "Stan",
}


def comparison_table(
    results: Sequence[common.FitResult],
    *,
    truth: Mapping[str, float] | None = None,
) -> pd.DataFrame:
    """One row per method and parameter with estimate, spread and 95% interval."""

    records: list[dict[str, object]] = []
    for result in results:
        for parameter, row in result.summary.iterrows():
            # 95% confidence interval (frequentist) or central 95% credible interval.
            low = row.get("conf_low", np.nan)
            high = row.get("conf_high", np.nan)
            records.append(
                {
                    "method": result.method,
                    "quantile": result.quantile,
                    "parameter": parameter,
                    "estimate": float(row["estimate"]),
                    "spread": float(row["spread"]),
                    "lower": float(low),
                    "upper": float(high),
                    "truth": float(truth[parameter]) if truth and parameter in truth else np.nan,
                }
            )
    frame = pd.DataFrame.from_records(
        records,
        columns=["method", "quantile", "parameter", "estimate", "spread", "lower", "upper", "truth"],
    )
    frame["error"] = frame["estimate"] - frame["truth"]
    return frame


def format_fit(result: common.FitResult) -> str:
    label = METHOD_LABELS.get(result.method, result.method)
    header = f"{label} – quantile {result.quantile:g}"
    with pd.option_context("display.float_format", "{:.4f}".format, "display.width", 120):
        table = result.summary.to_string()
    return "\n".join([header, common.indent_lines(table)])


def print_fit(result: common.FitResult) -> None:
    print(format_fit(result))
    print()


def print_comparison(table: pd.DataFrame) -> None:
    print("Quantile regression comparison:")
    pivot = table.pivot_table(index="parameter", columns="method", values="estimate", sort=False)
    if table["truth"].notna().any():
        pivot["truth"] = table.groupby("parameter", sort=False)["truth"].first()
    with pd.option_context("display.float_format", "{:.4f}".format, "display.width", 120):
        print(common.indent_lines(pivot.to_string()))
    print()


def session_info(extra_packages: Sequence[str] | None = None) -> dict[str, object]:
    """Interpreter, platform and package versions for the current run."""

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "packages": common.package_versions(extra_packages),
    }


def print_session_info(extra_packages: Sequence[str] | None = None) -> None:
    info = session_info(extra_packages)
    print("Session info:")
    print(
        common.indent_lines(
            common.format_bullet_summary(
                {
                    "Python": info["python"],
                    "Platform": info["platform"],
                    "Generated": info["generated_at"],
                }
            )
        )
    )
    print(common.indent_lines(common.format_bullet_summary(info["packages"]), spaces=4))


def plot_fits(
    dataset: common.Dataset,
    results: Sequence[common.FitResult],
    output_prefix: Path,
) -> None:
    """Scatter of the data with each method's fitted quantile line."""

    frame = dataset.to_frame()
    grid = np.linspace(frame["x"].min(), frame["x"].max(), 100)

    plt.figure(figsize=(8, 6))
    sns.scatterplot(data=frame, x="x", y="y", s=12, color="grey", alpha=0.5, linewidth=0)
    palette = sns.color_palette("viridis", n_colors=max(len(results), 1))
    for colour, result in zip(palette, results):
        estimates = result.estimates
        plt.plot(
            grid,
            estimates["alpha"] + estimates["beta"] * grid,
            color=colour,
            linewidth=1.5,
            label=METHOD_LABELS.get(result.method, result.method),
        )
    truth = data.theoretical_quantile_line(dataset.p)
    plt.plot(
        grid,
        truth["alpha"] + truth["beta"] * grid,
        color="black",
        linestyle="--",
        linewidth=1,
        label="True quantile",
    )
    plt.xlabel("x")
    plt.ylabel("y")
    plt.title(f"Fitted {dataset.p:g} quantile lines")
    plt.legend(frameon=False)
    plt.tight_layout()
    plt.savefig(f"{output_prefix}.png", dpi=300)
    plt.savefig(f"{output_prefix}.pdf")
    plt.close()


def write_artefacts(
    out_dir: Path,
    dataset: common.Dataset,
    results: Sequence[common.FitResult],
    table: pd.DataFrame,
) -> Path:
    """Persist tables, draws, figure and session info under ``out_dir``."""

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    table.to_csv(out_dir / "comparison.csv", index=False)

    draw_frames = [
        result.draws.assign(method=result.method)
        for result in results
        if result.draws is not None
    ]
    if draw_frames:
        pd.concat(draw_frames, ignore_index=True).to_parquet(
            out_dir / "posterior_draws.parquet", index=False
        )

    payload = {
        "quantile": dataset.p,
        "n_obs": dataset.n_obs,
        "methods": {
            result.method: {
                "summary": result.summary.reset_index().to_dict(orient="records"),
                "diagnostics": dict(result.diagnostics),
            }
            for result in results
        },
    }
    common.write_json(out_dir / "fit_summaries.json", payload)

    if results:
        plot_fits(dataset, results, out_dir / "fig_quantile_lines")

    summary_lines = [
        f"Quantile regression comparison at p={dataset.p:g} ({dataset.n_obs} observations).",
        *[
            f"• {METHOD_LABELS.get(r.method, r.method)}: alpha={r.estimates['alpha']:.3f}, beta={r.estimates['beta']:.3f}"
            for r in results
        ],
    ]
    common.write_summary(out_dir, summary_lines)
    common.write_session_info(out_dir)

    logger.info(f"Saved artefacts to {out_dir}")
    return out_dir
