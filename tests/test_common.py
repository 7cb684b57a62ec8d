import numpy as np
import pandas as pd
import pytest

from quantile_tasks import common


def _fake_draws(n_chains=2, n_draws=400, seed=1):
    rng = np.random.default_rng(seed)
    return common.draws_frame(
        {
            "alpha": rng.normal(1.0, 0.1, size=(n_draws, n_chains)),
            "beta": rng.normal(3.0, 0.05, size=(n_draws, n_chains)),
            "sigma": rng.gamma(2.0, 0.5, size=(n_draws, n_chains)),
        }
    )


@pytest.mark.parametrize("p", [0.01, 0.5, 0.95])
def test_validate_quantile_accepts_open_interval(p):
    assert common.validate_quantile(p) == p


@pytest.mark.parametrize("p", [0, 1, -1, 2, "high", None])
def test_validate_quantile_rejects_out_of_range(p):
    with pytest.raises(ValueError):
        common.validate_quantile(p)


def test_draws_frame_lays_out_chains_in_long_format():
    draws = _fake_draws(n_chains=3, n_draws=5)

    assert list(draws.columns) == ["chain", "iteration", "alpha", "beta", "sigma"]
    assert len(draws) == 15
    assert draws["chain"].tolist() == [1] * 5 + [2] * 5 + [3] * 5
    assert draws["iteration"].tolist()[:5] == [1, 2, 3, 4, 5]


def test_draws_frame_rejects_mismatched_shapes():
    with pytest.raises(ValueError):
        common.draws_frame({"alpha": np.zeros((4, 2)), "beta": np.zeros((3, 2))})


def test_summarise_draws_reports_requested_quantile_levels():
    summary = common.summarise_draws(_fake_draws(), common.PARAMETERS)

    assert list(summary.index) == ["alpha", "beta", "sigma"]
    for level in (0.005, 0.25, 0.5, 0.75, 0.95):
        column = common.quantile_label(level)
        assert column in summary.columns
        assert summary[column].notna().all()
    assert summary.loc["alpha", "estimate"] == pytest.approx(1.0, abs=0.02)
    assert (summary["q0.005"] <= summary["q0.5"]).all()
    assert (summary["q0.5"] <= summary["q0.95"]).all()
    assert (summary["conf_low"] < summary["q0.5"]).all()
    assert (summary["q0.95"] < summary["conf_high"]).all()


def test_summarise_draws_flags_missing_parameter():
    draws = _fake_draws().drop(columns=["sigma"])

    with pytest.raises(KeyError):
        common.summarise_draws(draws, common.PARAMETERS)


def test_rhat_close_to_one_for_mixed_chains_and_large_for_stuck_chains():
    summary = common.summarise_draws(_fake_draws(n_chains=4, n_draws=1000))
    assert summary["rhat"].max() < 1.02

    stuck = np.vstack([np.random.default_rng(0).normal(0, 1, 500), np.random.default_rng(1).normal(5, 1, 500)])
    assert common.gelman_rubin(stuck) > 1.5


def test_single_chain_has_no_rhat():
    draws = _fake_draws(n_chains=1)
    summary = common.summarise_draws(draws)

    assert summary["rhat"].isna().all()


def test_sampler_settings_validation():
    with pytest.raises(ValueError):
        common.SamplerSettings(draws=0)
    with pytest.raises(ValueError):
        common.SamplerSettings(chains=0)
    with pytest.raises(ValueError):
        common.SamplerSettings(thin=0)
    with pytest.raises(ValueError):
        common.SamplerSettings(burnin=-1)


def test_fit_result_exposes_estimates():
    summary = pd.DataFrame(
        {"estimate": [1.0, 2.9], "spread": [0.1, 0.1]},
        index=pd.Index(["alpha", "beta"], name="parameter"),
    )
    result = common.FitResult(method="frequentist", quantile=0.95, summary=summary)

    assert result.estimates == {"alpha": 1.0, "beta": 2.9}
    assert result.parameters == ["alpha", "beta"]


def test_write_helpers_and_session_info(tmp_path):
    common.write_json(tmp_path / "payload.json", {"b": 1, "a": 2})
    assert (tmp_path / "payload.json").read_text(encoding="utf-8").startswith("{")

    path = common.write_summary(tmp_path, [f"line {i}" for i in range(20)], max_lines=3)
    assert path.read_text(encoding="utf-8").splitlines() == ["line 0", "line 1", "line 2"]

    info_path = common.write_session_info(tmp_path)
    content = info_path.read_text(encoding="utf-8")
    assert "numpy" in content
    assert "statsmodels" in content
