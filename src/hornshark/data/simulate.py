"""Sequence simulation from Gaussian and autoregressive HMMs."""

import jax
import jax.numpy as jnp
from jax import lax

from hornshark.emissions.gaussian import cholesky_factor
from hornshark.errors import ShapeError
from hornshark.transitions.static import validate_row_stochastic
from hornshark.types import (
    Array,
    AutoregressiveHMMParams,
    GaussianHMMParams,
    SampleResult,
)


def _validate_params(params) -> tuple[Array, Array, Array, Array]:
    init = jnp.asarray(params.init, dtype=jnp.float64)
    trans = jnp.asarray(params.trans, dtype=jnp.float64)
    means = jnp.asarray(params.means, dtype=jnp.float64)
    covs = jnp.asarray(params.covariances, dtype=jnp.float64)

    K = init.shape[0]
    validate_row_stochastic(trans)
    if trans.shape[0] != K or means.ndim != 2 or means.shape[0] != K:
        raise ShapeError("init, trans and means disagree on the number of states")
    D = means.shape[1]
    if covs.shape != (K, D, D):
        raise ShapeError(f"Covariances have shape {covs.shape}, expected ({K}, {D}, {D})")
    return init, trans, means, covs


def _sample_states(key, n: int, init: Array, trans: Array) -> Array:
    """Markov chain path of length n >= 1."""
    key_init, key_trans = jax.random.split(key)
    log_trans = jnp.log(trans)

    first = jax.random.categorical(key_init, jnp.log(init))

    def scan_fn(state, k):
        nxt = jax.random.categorical(k, log_trans[state])
        return nxt, nxt

    # One key per transition, t = 2, ..., n
    _, rest = lax.scan(scan_fn, first, jax.random.split(key_trans, n)[1:])
    return jnp.concatenate([first[None], rest]).astype(jnp.int32)


def _empty_sample(D: int) -> SampleResult:
    return SampleResult(
        states=jnp.zeros((0,), dtype=jnp.int32),
        obs=jnp.zeros((0, D), dtype=jnp.float64),
    )


def generate_sample(key, n: int, params: GaussianHMMParams) -> SampleResult:
    """Draw a hidden state path and observations of length n.

    Args:
        key: jax.random key.
        n: Sequence length.
        params: Model parameters.

    Returns:
        SampleResult with states (n,) and obs (n, D).
    """
    init, trans, means, covs = _validate_params(params)
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    if n == 0:
        return _empty_sample(means.shape[1])

    key_states, key_obs = jax.random.split(key)
    states = _sample_states(key_states, n, init, trans)

    obs = jax.random.multivariate_normal(
        key_obs, means[states], covs[states], method="cholesky",
    )
    return SampleResult(states=states, obs=obs)


def generate_autoregressive_sample(
    key,
    n: int,
    params: AutoregressiveHMMParams,
) -> SampleResult:
    """Draw a state path and an autoregressive series of length n.

    Each observation is drawn from its state's Gaussian with mean
    ``mu + phi @ [x_{t-1}, ..., x_{t-q}]``, lags before the start being zero.

    Args:
        key: jax.random key.
        n: Sequence length.
        params: Model parameters.

    Returns:
        SampleResult with states (n,) and obs (n, D).
    """
    init, trans, means, covs = _validate_params(params)
    K, D = means.shape
    phi = jnp.asarray(params.phi, dtype=jnp.float64)
    if phi.ndim != 3 or phi.shape[:2] != (K, D) or phi.shape[2] % D != 0:
        raise ShapeError(f"phi has shape {phi.shape}, expected ({K}, {D}, {D} * q)")
    q = phi.shape[2] // D
    if q < 1:
        raise ValueError("Autoregressive order must be >= 1")

    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    if n == 0:
        return _empty_sample(D)

    chols = jnp.stack([cholesky_factor(covs[k]) for k in range(K)])

    key_states, key_obs = jax.random.split(key)
    states = _sample_states(key_states, n, init, trans)
    noise = jax.random.normal(key_obs, (n, D), dtype=jnp.float64)

    def scan_fn(history, inputs):
        # history: (q, D), most recent observation first
        state, z = inputs
        mean = means[state] + phi[state] @ history.reshape(-1)
        x = mean + chols[state] @ z
        history = jnp.concatenate([x[None, :], history[:-1]], axis=0)
        return history, x

    _, obs = lax.scan(scan_fn, jnp.zeros((q, D), dtype=jnp.float64), (states, noise))
    return SampleResult(states=states, obs=obs)
