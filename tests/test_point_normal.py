import math

import numpy as np
import pytest
import torch

from ebnm_torch import Output, PointNormalPrior, ebnm_point_normal
from ebnm_torch.ebnm.mle_normal import OptimizationError
from ebnm_torch.utils.optimizer import OptimizeResult

torch.set_num_threads(1)


def simulate(n=1000, pi0=0.6, sd=2.0, seed=1):
    g = torch.Generator().manual_seed(seed)
    is_null = torch.rand(n, generator=g, dtype=torch.float64) < pi0
    theta = torch.where(is_null, torch.zeros(n, dtype=torch.float64), sd * torch.randn(n, generator=g, dtype=torch.float64))
    s = 0.5 + torch.rand(n, generator=g, dtype=torch.float64)
    x = theta + s * torch.randn(n, generator=g, dtype=torch.float64)
    return x, s


def test_default_output():
    x, s = simulate()
    res = ebnm_point_normal(x, s)
    assert set(res) == {Output.POSTERIOR, Output.FITTED_G, Output.LOG_LIKELIHOOD}
    assert isinstance(res.fitted_g, PointNormalPrior)
    assert math.isfinite(res.log_likelihood)
    assert res.posterior.post_mean.shape == x.shape
    assert torch.all(res.posterior.post_mean2 >= res.posterior.post_mean**2 - 1e-10)


def test_output_subsets():
    x, s = simulate(n=200)
    assert ebnm_point_normal(x, s, output=[]) == {}
    res = ebnm_point_normal(x, s, output=["log_likelihood"])
    assert list(res) == ["log_likelihood"]
    with pytest.raises(KeyError):
        res.posterior
    res = ebnm_point_normal(x, s, output=("loglik", "post_sampler"))
    assert set(res) == {Output.LOG_LIKELIHOOD, Output.POSTERIOR_SAMPLER}
    assert res["posterior_sampler"](5).shape == (5, 200)


def test_unknown_output_raises():
    with pytest.raises(ValueError, match="lfsr"):
        ebnm_point_normal(torch.zeros(3), 1.0, output=["lfsr"])


def test_fixed_g_without_g_raises():
    with pytest.raises(ValueError, match="must specify g"):
        ebnm_point_normal(torch.zeros(3), 1.0, fix_g=True)


def test_g_without_fix_g_raises():
    with pytest.raises(ValueError, match="not supported"):
        ebnm_point_normal(torch.zeros(3), 1.0, g=PointNormalPrior(pi0=0.5, a=1.0))


def test_unsupported_control_raises():
    with pytest.raises(ValueError, match="reltol"):
        ebnm_point_normal(torch.zeros(3), 1.0, control={"reltol": 1e-8})


@pytest.mark.parametrize("bad_s", [-1.0, [1.0, float("nan"), 1.0], [1.0, 1.0]])
def test_invalid_standard_errors_raise(bad_s):
    with pytest.raises(ValueError):
        ebnm_point_normal(torch.zeros(3), bad_s)


def test_scalar_s_is_broadcast():
    x, _ = simulate(n=300)
    res_scalar = ebnm_point_normal(x, 1.0)
    res_vector = ebnm_point_normal(x, torch.ones_like(x))
    assert res_scalar.log_likelihood == pytest.approx(res_vector.log_likelihood, rel=1e-12)


def test_optimizer_failure_propagates():
    class Failing:
        def __call__(self, fun, grad, x0, bounds, **control):
            return OptimizeResult(x=x0, fun=fun(x0), success=False, n_iter=1, message="diverged")

    x, s = simulate(n=100)
    with pytest.raises(OptimizationError, match="diverged"):
        ebnm_point_normal(x, s, optimizer=Failing())


@pytest.mark.parametrize("c", [1e-4, 3.0, 1e5])
def test_scale_invariance(c):
    x, s = simulate(seed=4)
    res = ebnm_point_normal(x, s)
    res_c = ebnm_point_normal(c * x, c * s)
    n = x.shape[0]

    np.testing.assert_allclose(res_c.posterior.post_mean.numpy(), c * res.posterior.post_mean.numpy(), rtol=1e-5, atol=1e-12 * c)
    np.testing.assert_allclose(res_c.posterior.post_mean2.numpy(), c**2 * res.posterior.post_mean2.numpy(), rtol=1e-5, atol=1e-12 * c**2)
    assert res_c.log_likelihood == pytest.approx(res.log_likelihood - n * math.log(c), rel=1e-10, abs=1e-6)
    assert res_c.fitted_g.pi0 == pytest.approx(res.fitted_g.pi0, rel=1e-5)
    assert res_c.fitted_g.a == pytest.approx(res.fitted_g.a / c**2, rel=1e-5)


@pytest.mark.parametrize("norm", [0.01, 1.0, 37.0])
def test_fixed_g_results_do_not_depend_on_norm(norm):
    x, s = simulate(n=300, seed=8)
    g = PointNormalPrior(pi0=0.4, a=0.3)
    ref = ebnm_point_normal(x, s, g=g, fix_g=True, norm=1.0)
    res = ebnm_point_normal(x, s, g=g, fix_g=True, norm=norm)
    np.testing.assert_allclose(res.posterior.post_mean.numpy(), ref.posterior.post_mean.numpy(), rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(res.posterior.post_mean2.numpy(), ref.posterior.post_mean2.numpy(), rtol=1e-10, atol=1e-12)
    assert res.log_likelihood == pytest.approx(ref.log_likelihood, rel=1e-10)
    assert res.fitted_g == g


@pytest.mark.parametrize("norm", [0.1, 1.0, 10.0])
def test_fitted_results_do_not_depend_on_norm(norm):
    x, s = simulate(n=500, seed=6)
    ref = ebnm_point_normal(x, s)
    res = ebnm_point_normal(x, s, norm=norm)
    assert res.fitted_g.pi0 == pytest.approx(ref.fitted_g.pi0, abs=1e-4)
    assert res.fitted_g.a == pytest.approx(ref.fitted_g.a, rel=1e-3)
    assert res.log_likelihood == pytest.approx(ref.log_likelihood, abs=1e-6)
    np.testing.assert_allclose(res.posterior.post_mean.numpy(), ref.posterior.post_mean.numpy(), atol=1e-3)


def test_fixed_g_loglik_matches_direct_computation():
    x = torch.tensor([0.5, -1.0, 2.5], dtype=torch.float64)
    s = torch.tensor([1.0, 0.5, 2.0], dtype=torch.float64)
    g = PointNormalPrior(pi0=0.3, a=0.5)
    null = torch.distributions.Normal(0.0, s).log_prob(x).exp()
    alt = torch.distributions.Normal(0.0, torch.sqrt(s**2 + 1 / g.a)).log_prob(x).exp()
    expected = float(torch.log(g.pi0 * null + g.w * alt).sum())
    res = ebnm_point_normal(x, s, g=g, fix_g=True, output="log_likelihood")
    assert res.log_likelihood == pytest.approx(expected, rel=1e-12)


def test_exact_observations_return_the_data():
    x, s = simulate(n=400, seed=10)
    x = torch.cat([x, torch.tensor([3.2, -0.7, 0.0], dtype=torch.float64)])
    s = torch.cat([s, torch.zeros(3, dtype=torch.float64)])
    res = ebnm_point_normal(x, s)
    pm, pm2 = res.posterior.post_mean, res.posterior.post_mean2
    torch.testing.assert_close(pm[-3:-1], x[-3:-1], rtol=1e-14, atol=0)
    torch.testing.assert_close(pm2[-3:-1], x[-3:-1] ** 2, rtol=1e-14, atol=0)
    assert pm[-1].item() == 0.0
    assert pm2[-1].item() == 0.0
    assert torch.isfinite(pm).all() and torch.isfinite(pm2).all()
    assert math.isfinite(res.log_likelihood)


def test_all_zero_data_has_no_signal():
    x = torch.zeros(50, dtype=torch.float64)
    s = torch.ones(50, dtype=torch.float64)
    res = ebnm_point_normal(x, s)
    assert res.fitted_g.w < 1e-2
    assert torch.all(res.posterior.post_mean.abs() < 1e-8)
    assert torch.all(res.posterior.post_mean2 <= s**2 * res.fitted_g.w + 1e-12)
    assert math.isfinite(res.log_likelihood)


@pytest.mark.parametrize("n", [10, 100])
def test_single_outlier_is_stable_under_rescaling(n):
    x = torch.zeros(n, dtype=torch.float64)
    x[0] = 5.0
    s = torch.ones(n, dtype=torch.float64)

    res = ebnm_point_normal(x, s)
    res_big = ebnm_point_normal(1e6 * x, 1e6 * s)

    for r in (res, res_big):
        assert 0.0 <= r.fitted_g.pi0 <= 1.0
        assert 0.0 < r.fitted_g.a < math.inf
        assert math.isfinite(r.log_likelihood)
        assert torch.isfinite(r.posterior.post_mean).all()
    assert res_big.fitted_g.pi0 == pytest.approx(res.fitted_g.pi0, rel=1e-6, abs=1e-9)
    assert res_big.fitted_g.a * 1e12 == pytest.approx(res.fitted_g.a, rel=1e-6)
    assert res_big.log_likelihood == pytest.approx(res.log_likelihood - n * math.log(1e6), rel=1e-10)
    assert res.posterior.post_mean[0].item() > 2.0


def test_fixed_prior_with_no_signal():
    x, s = simulate(n=50)
    res = ebnm_point_normal(x, s, g=PointNormalPrior(pi0=1.0, a=math.nan), fix_g=True, output=list(Output))
    assert torch.equal(res.posterior.post_mean, torch.zeros_like(x))
    assert torch.equal(res.posterior_sampler(10), torch.zeros(10, 50, dtype=torch.float64))
    expected = float(torch.distributions.Normal(0.0, s).log_prob(x).sum())
    assert res.log_likelihood == pytest.approx(expected, rel=1e-12)


def test_verbose_prints_progress(capsys):
    x, s = simulate(n=100)
    ebnm_point_normal(x, s, verbose=True, output=[])
    out = capsys.readouterr().out
    assert "[EBNM-PN]" in out
    assert "fitted pi0" in out


@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("pi0,sd", [(0.0, 0.3), (0.0, 0.1), (1.0, 1.0), (0.95, 0.5)])
def test_boundary_maximum_is_a_valid_fit(pi0, sd, seed):
    x, s = simulate(n=200, pi0=pi0, sd=sd, seed=seed)
    res = ebnm_point_normal(x, s)
    g = res.fitted_g
    assert 0.0 <= g.pi0 <= 1.0
    assert 0.0 < g.a < math.inf
    assert math.isfinite(res.log_likelihood)

    # no worse than the generating prior
    truth = PointNormalPrior(pi0=pi0, a=sd**-2)
    ref = ebnm_point_normal(x, s, g=truth, fix_g=True, output="log_likelihood")
    assert res.log_likelihood >= ref.log_likelihood - 1e-6 * len(x)


def test_prior_accessors():
    g = PointNormalPrior(pi0=0.25, a=4.0)
    assert g.w == 0.75
    assert g.sd == pytest.approx(0.5)
    assert g.rescale(2.0).sd == pytest.approx(1.0)
    with pytest.raises(ValueError):
        PointNormalPrior(pi0=1.5, a=1.0)
    with pytest.raises(ValueError):
        PointNormalPrior(pi0=0.5, a=0.0)
