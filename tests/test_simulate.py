"""Tests for Gaussian HMM sequence simulation."""

import jax
import numpy as np
import pytest

from hornshark.config import (
    DEFAULT_COVARIANCES,
    DEFAULT_INIT_PROBS,
    DEFAULT_MEANS,
    DEFAULT_TRANS,
)
from hornshark.data.simulate import generate_autoregressive_sample, generate_sample
from hornshark.errors import ShapeError
from hornshark.hmm.likelihood import negative_log_likelihood
from hornshark.types import AutoregressiveHMMParams, GaussianHMMParams


def _default_params():
    return GaussianHMMParams(
        init=np.array(DEFAULT_INIT_PROBS),
        trans=np.array(DEFAULT_TRANS),
        means=np.array(DEFAULT_MEANS),
        covariances=np.array(DEFAULT_COVARIANCES),
    )


class TestGenerateSample:
    def test_output_shapes(self):
        result = generate_sample(jax.random.PRNGKey(0), 50, _default_params())
        assert result.states.shape == (50,)
        assert result.obs.shape == (50, 2)

    def test_states_valid_range(self):
        result = generate_sample(jax.random.PRNGKey(1), 200, _default_params())
        states = np.asarray(result.states)
        assert np.all((states >= 0) & (states < 2))

    def test_deterministic_given_key(self):
        a = generate_sample(jax.random.PRNGKey(7), 30, _default_params())
        b = generate_sample(jax.random.PRNGKey(7), 30, _default_params())
        np.testing.assert_array_equal(np.asarray(a.states), np.asarray(b.states))
        np.testing.assert_array_equal(np.asarray(a.obs), np.asarray(b.obs))

    def test_absorbing_state_is_kept(self):
        params = _default_params()._replace(
            init=np.array([0.0, 1.0]),
            trans=np.array([[0.5, 0.5], [0.0, 1.0]]),
        )
        result = generate_sample(jax.random.PRNGKey(2), 25, params)
        assert np.all(np.asarray(result.states) == 1)

    def test_single_step(self):
        result = generate_sample(jax.random.PRNGKey(3), 1, _default_params())
        assert result.states.shape == (1,)
        assert result.obs.shape == (1, 2)

    def test_empty(self):
        result = generate_sample(jax.random.PRNGKey(0), 0, _default_params())
        assert result.states.shape == (0,)
        assert result.obs.shape == (0, 2)

    def test_sample_likelihood_finite(self):
        params = _default_params()
        result = generate_sample(jax.random.PRNGKey(4), 500, params)
        nll = negative_log_likelihood(result.obs, params)
        assert np.isfinite(nll)

    def test_covariance_shape_mismatch(self):
        params = _default_params()._replace(covariances=np.stack([np.eye(3)] * 2))
        with pytest.raises(ShapeError):
            generate_sample(jax.random.PRNGKey(0), 5, params)


def _ar_params(q=2, noise=1.0):
    rng = np.random.default_rng(21)
    return AutoregressiveHMMParams(
        init=np.array(DEFAULT_INIT_PROBS),
        trans=np.array(DEFAULT_TRANS),
        means=np.array(DEFAULT_MEANS),
        covariances=noise * np.array(DEFAULT_COVARIANCES),
        phi=0.2 * rng.standard_normal((2, 2, 2 * q)),
    )


class TestGenerateAutoregressiveSample:
    def test_output_shapes(self):
        result = generate_autoregressive_sample(jax.random.PRNGKey(0), 40, _ar_params())
        assert result.states.shape == (40,)
        assert result.obs.shape == (40, 2)

    def test_follows_recursion_without_noise(self):
        """With negligible noise each row equals mu + phi @ lags."""
        q = 2
        params = _ar_params(q=q, noise=1e-16)
        result = generate_autoregressive_sample(jax.random.PRNGKey(1), 30, params)
        states = np.asarray(result.states)
        obs = np.asarray(result.obs)

        history = np.zeros((q, 2))
        for t in range(30):
            k = states[t]
            expected = params.means[k] + params.phi[k] @ history.reshape(-1)
            np.testing.assert_allclose(obs[t], expected, atol=1e-6)
            history = np.vstack([obs[t][None, :], history[:-1]])

    def test_deterministic_given_key(self):
        a = generate_autoregressive_sample(jax.random.PRNGKey(3), 20, _ar_params())
        b = generate_autoregressive_sample(jax.random.PRNGKey(3), 20, _ar_params())
        np.testing.assert_array_equal(np.asarray(a.obs), np.asarray(b.obs))

    def test_empty(self):
        result = generate_autoregressive_sample(jax.random.PRNGKey(0), 0, _ar_params())
        assert result.obs.shape == (0, 2)

    def test_sample_likelihood_finite(self):
        from hornshark.hmm.likelihood import autoregressive_negative_log_likelihood

        params = _ar_params(q=1)
        result = generate_autoregressive_sample(jax.random.PRNGKey(4), 300, params)
        assert np.isfinite(autoregressive_negative_log_likelihood(result.obs, params))

    def test_phi_shape_mismatch(self):
        params = _ar_params()._replace(phi=np.zeros((2, 2, 3)))
        with pytest.raises(ShapeError):
            generate_autoregressive_sample(jax.random.PRNGKey(0), 5, params)
