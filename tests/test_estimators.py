import numpy as np
import pytest

from quantile_tasks import bayes_qr, common, data, frequentist

EXPECTED_ALPHA = 1.0
EXPECTED_BETA = 2.9
TOLERANCE = 0.5


@pytest.fixture(scope="module")
def dataset():
    return data.generate_dataset(seed=666, n_obs=500, p=0.95)


def test_frequentist_recovers_upper_quantile_line(dataset):
    result = frequentist.run_frequentist(dataset)

    assert result.method == "frequentist"
    assert result.quantile == 0.95
    assert result.estimates["alpha"] == pytest.approx(EXPECTED_ALPHA, abs=TOLERANCE)
    assert result.estimates["beta"] == pytest.approx(EXPECTED_BETA, abs=TOLERANCE)
    assert (result.summary["spread"] > 0).all()
    assert (result.summary["conf_low"] < result.summary["conf_high"]).all()


def test_frequentist_median_slope_matches_generator(dataset):
    result = frequentist.run_frequentist(dataset, p=0.5, vcov="iid")

    assert result.quantile == 0.5
    assert result.estimates["beta"] == pytest.approx(2.0, abs=0.3)


def test_frequentist_validates_quantile_before_solving(dataset, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("solver must not be called")

    monkeypatch.setattr(frequentist, "QuantReg", _fail)
    with pytest.raises(ValueError):
        frequentist.run_frequentist(dataset, p=1.0)


def test_mixture_constants_for_upper_quantile():
    theta, tau2 = bayes_qr.mixture_constants(0.95)

    assert theta == pytest.approx(-0.9 / 0.0475)
    assert tau2 == pytest.approx(2 / 0.0475)
    assert bayes_qr.mixture_constants(0.5)[0] == pytest.approx(0.0)


def test_latent_weights_are_positive():
    rng = np.random.default_rng(0)
    residual = np.array([-2.0, 0.0, 0.5, 3.0])
    theta, tau2 = bayes_qr.mixture_constants(0.9)

    weights = bayes_qr.draw_latent(rng, residual, 1.0, theta, tau2)

    assert weights.shape == residual.shape
    assert np.all(weights > 0)
    assert np.all(np.isfinite(weights))


@pytest.fixture(scope="module")
def gibbs_result(dataset):
    settings = common.SamplerSettings(draws=3000, burnin=500, seed=666)
    return bayes_qr.run_bayes_qr(dataset, settings=settings)


def test_gibbs_sampler_recovers_upper_quantile_line(gibbs_result):
    assert gibbs_result.method == "bayes_qr"
    assert gibbs_result.estimates["alpha"] == pytest.approx(EXPECTED_ALPHA, abs=TOLERANCE)
    assert gibbs_result.estimates["beta"] == pytest.approx(EXPECTED_BETA, abs=TOLERANCE)
    assert gibbs_result.estimates["sigma"] > 0


def test_gibbs_summary_has_all_quantile_levels(gibbs_result):
    summary = gibbs_result.summary

    assert set(summary.index) == {"alpha", "beta", "sigma"}
    for level in common.SUMMARY_QUANTILES:
        assert summary[common.quantile_label(level)].notna().all()


def test_gibbs_burnin_is_discarded(gibbs_result):
    draws = gibbs_result.draws

    assert len(draws) == 2500
    assert draws["iteration"].min() == 501
    assert gibbs_result.diagnostics["retained"] == 2500


def test_gibbs_sampler_is_reproducible(dataset):
    settings = common.SamplerSettings(draws=200, burnin=50, seed=7)
    first = bayes_qr.run_bayes_qr(dataset, settings=settings)
    second = bayes_qr.run_bayes_qr(dataset, settings=settings)

    np.testing.assert_array_equal(first.draws["beta"], second.draws["beta"])


def test_gibbs_thinning_keeps_every_kth_draw(dataset):
    draws = bayes_qr.sample_posterior(dataset, 0.95, draws=100, thin=5, seed=1)

    assert len(draws) == 20


def test_gibbs_rejects_burnin_longer_than_chain(dataset):
    with pytest.raises(ValueError, match="burn-in"):
        bayes_qr.run_bayes_qr(dataset, settings=common.SamplerSettings(draws=100, burnin=100))


def test_gibbs_rejects_thinning_that_leaves_nothing_after_burnin(dataset):
    settings = common.SamplerSettings(draws=10, burnin=9, thin=3)

    with pytest.raises(ValueError, match="no retained draws"):
        bayes_qr.run_bayes_qr(dataset, settings=settings)


def test_gibbs_keeps_draws_past_burnin_with_thinning(dataset):
    settings = common.SamplerSettings(draws=10, burnin=5, thin=3, seed=1)

    result = bayes_qr.run_bayes_qr(dataset, settings=settings)

    assert result.draws["iteration"].tolist() == [2, 3]
    assert result.diagnostics["retained"] == 2


def test_gibbs_validates_quantile(dataset):
    with pytest.raises(ValueError):
        bayes_qr.run_bayes_qr(dataset, p=0.0, settings=common.SamplerSettings(draws=10, burnin=0))
