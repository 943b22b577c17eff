"""Tests for MLE fitting, bootstrap intervals and sample summaries."""

import numpy as np
import pytest

from yield_voi.data_model import DistributionParams
from yield_voi.distribution_fit import (
    bootstrap_confidence_interval, fit_mle, summarize_sample,
)
from yield_voi.errors import InsufficientDataError, InvalidParameterError
from yield_voi.random_stream import RandomStream


class TestFitMle:

    def test_normal_uses_population_std(self):
        p = fit_mle([1.0, 2.0, 3.0, 4.0])
        assert p.mean == pytest.approx(2.5)
        assert p.std == pytest.approx(np.sqrt(1.25))
        assert p.family == "normal"
        assert dict(p.extra) == {}

    @pytest.mark.parametrize("seed", range(5))
    def test_normal_mean_is_arithmetic_mean(self, seed):
        x = RandomStream(seed).normal(300.0, 30.0, size=2 + 3 * seed)
        assert fit_mle(x).mean == pytest.approx(float(np.mean(x)), rel=1e-12)

    def test_family_name_is_case_insensitive(self):
        assert fit_mle([1.0, 3.0], "Normal").mean == pytest.approx(2.0)

    def test_single_value_is_insufficient(self):
        with pytest.raises(InsufficientDataError) as exc:
            fit_mle([300.0])
        assert exc.value.n_available == 1
        assert exc.value.n_required == 2

    def test_empty_sample_is_insufficient(self):
        with pytest.raises(InsufficientDataError):
            fit_mle([])

    def test_zero_spread_is_invalid(self):
        with pytest.raises(InvalidParameterError):
            fit_mle([310.0, 310.0, 310.0])

    def test_unknown_family(self):
        with pytest.raises(InvalidParameterError):
            fit_mle([1.0, 2.0], "gumbel")

    def test_non_finite_values_rejected(self):
        with pytest.raises(InvalidParameterError):
            fit_mle([1.0, np.nan, 2.0])

    def test_lognormal_recovers_moments(self):
        x = RandomStream(3).generator.lognormal(np.log(320.0), 0.08, size=400)
        p = fit_mle(x, "lognormal")
        assert p.mean == pytest.approx(np.mean(x), rel=0.02)
        assert set(p.extra) == {'s', 'scale'}

    def test_weibull_exposes_shape_and_scale(self):
        x = RandomStream(4).generator.weibull(12.0, size=400) * 330.0
        p = fit_mle(x, "weibull")
        assert p.extra['k'] == pytest.approx(12.0, rel=0.2)
        assert p.extra['lambda'] == pytest.approx(330.0, rel=0.05)

    def test_positive_families_reject_non_positive_values(self):
        with pytest.raises(InvalidParameterError):
            fit_mle([-1.0, 2.0, 3.0], "weibull")


class TestBootstrap:

    sample = [301.2, 318.5, 296.4, 333.0, 325.7, 310.9, 289.3, 341.8]

    @pytest.mark.parametrize("seed", range(5))
    def test_low_never_exceeds_high(self, seed):
        x = RandomStream(seed).normal(320.0, 25.0, size=6)
        for lo, hi in bootstrap_confidence_interval(
                x, n_resamples=200, seed=seed, skip_invalid=True).values():
            assert lo <= hi

    def test_interval_narrows_with_sample_size(self):
        rng = RandomStream(8)
        small = bootstrap_confidence_interval(rng.normal(320.0, 25.0, size=10),
                                              n_resamples=500, seed=1)
        large = bootstrap_confidence_interval(rng.normal(320.0, 25.0, size=400),
                                              n_resamples=500, seed=1)
        width = lambda ci: ci["mean"][1] - ci["mean"][0]
        assert width(large) < width(small)

    def test_interval_brackets_the_estimate(self):
        ci = bootstrap_confidence_interval(self.sample, n_resamples=500, seed=1)
        est = fit_mle(self.sample)
        assert set(ci) == {'mean', 'std'}
        lo, hi = ci['mean']
        assert lo < est.mean < hi
        assert ci['std'][0] < ci['std'][1]

    def test_is_reproducible_for_a_seed(self):
        a = bootstrap_confidence_interval(self.sample, n_resamples=200, seed=5)
        b = bootstrap_confidence_interval(self.sample, n_resamples=200, seed=5)
        assert a == b

    def test_wider_level_gives_wider_interval(self):
        narrow = bootstrap_confidence_interval(self.sample, n_resamples=400,
                                               confidence_level=0.5, seed=2)
        wide = bootstrap_confidence_interval(self.sample, n_resamples=400,
                                             confidence_level=0.99, seed=2)
        assert wide['mean'][0] <= narrow['mean'][0]
        assert wide['mean'][1] >= narrow['mean'][1]

    def test_accepts_mapping_estimators(self):
        ci = bootstrap_confidence_interval(
            self.sample, lambda x: {'median': float(np.median(x))},
            n_resamples=200, seed=0,
        )
        assert set(ci) == {'median'}

    def test_constant_sample_with_mean_estimator(self):
        ci = bootstrap_confidence_interval(
            [310.0] * 3, lambda x: {'mean': float(np.mean(x))},
            n_resamples=50, seed=0,
        )
        assert ci == {'mean': (310.0, 310.0)}

    def test_estimator_errors_propagate_by_default(self):
        # Two values: half of all resamples are constant
        with pytest.raises(InvalidParameterError):
            bootstrap_confidence_interval([300.0, 320.0], n_resamples=100, seed=0)

    def test_skip_invalid_redraws_and_reports_discards(self):
        with pytest.warns(UserWarning, match="discarded"):
            ci = bootstrap_confidence_interval([300.0, 320.0], n_resamples=100,
                                               seed=0, skip_invalid=True)
        assert ci['std'][0] > 0

    def test_skip_invalid_gives_up_on_always_invalid_estimator(self):
        def _never(x):
            raise InvalidParameterError("undefined")
        with pytest.raises(InsufficientDataError):
            bootstrap_confidence_interval(self.sample, _never, n_resamples=5,
                                          skip_invalid=True)

    @pytest.mark.parametrize("level", [0.0, 1.0, 1.5])
    def test_rejects_bad_confidence_level(self, level):
        with pytest.raises(InvalidParameterError):
            bootstrap_confidence_interval(self.sample, confidence_level=level)

    def test_rejects_too_small_sample(self):
        with pytest.raises(InsufficientDataError):
            bootstrap_confidence_interval([300.0])


class TestSummarize:

    def test_summary_fields(self):
        s = summarize_sample([1.0, 2.0, 3.0, 4.0])
        assert s.n == 4
        assert s.mean == pytest.approx(2.5)
        assert s.std == pytest.approx(np.std([1, 2, 3, 4], ddof=1))
        assert (s.min_val, s.max_val) == (1.0, 4.0)
        assert 0.0 <= s.normality_shapiro_p <= 1.0

    def test_single_value(self):
        s = summarize_sample([300.0])
        assert s.std == 0.0
        assert s.normality_shapiro_p is None

    def test_params_validate_std(self):
        with pytest.raises(InvalidParameterError):
            DistributionParams(mean=300.0, std=0.0)
