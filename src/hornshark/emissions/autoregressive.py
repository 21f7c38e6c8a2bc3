"""Multivariate autoregressive (VAR(q)) Gaussian emissions.

Under state k the observation at time t is Gaussian with mean

    mu_k + phi_k @ [x_{t-1}, x_{t-2}, ..., x_{t-q}]

Lags before the start of the series are taken as zero, so the first q
means only use the observations that exist.
"""

import jax.numpy as jnp

from hornshark.config import DensityConfig
from hornshark.emissions.gaussian import state_densities
from hornshark.errors import ShapeError
from hornshark.types import Array


def lag_matrix(observations, q: int) -> Array:
    """Stack the q previous observations of every row.

    Args:
        observations: (T, D) observations.
        q: Autoregressive order (>= 1).

    Returns:
        (T, D * q) matrix; columns [(i-1)D, iD) of row t hold x_{t-i},
        or zeros when t - i falls before the start.
    """
    obs = jnp.asarray(observations, dtype=jnp.float64)
    if obs.ndim != 2:
        raise ShapeError(f"Observations must be a 2D (T, D) matrix, got shape {obs.shape}")
    if q < 1:
        raise ValueError(f"Autoregressive order must be >= 1, got {q}")
    T, D = obs.shape

    lags = []
    for i in range(1, q + 1):
        n_pad = min(i, T)
        lags.append(jnp.concatenate(
            [jnp.zeros((n_pad, D), dtype=obs.dtype), obs[:T - n_pad]], axis=0,
        ))
    return jnp.concatenate(lags, axis=1)


def autoregressive_means(observations, mu, phi, q: int) -> Array:
    """Per-time-step mean of every state.

    Args:
        observations: (T, D) observations.
        mu: (K, D) white-noise means.
        phi: (K, D, D * q) AR coefficients.
        q: Autoregressive order.

    Returns:
        (K, T, D) means.
    """
    mu = jnp.asarray(mu, dtype=jnp.float64)
    phi = jnp.asarray(phi, dtype=jnp.float64)
    lags = lag_matrix(observations, q)  # (T, D*q)
    T, Dq = lags.shape
    D = Dq // q

    if mu.ndim != 2 or mu.shape[1] != D:
        raise ShapeError(f"mu has shape {mu.shape}, expected (K, {D})")
    K = mu.shape[0]
    if phi.shape != (K, D, Dq):
        raise ShapeError(f"phi has shape {phi.shape}, expected ({K}, {D}, {Dq})")

    return mu[:, None, :] + jnp.einsum("tj,kdj->ktd", lags, phi)


def autoregressive_state_densities(
    observations,
    mu,
    phi,
    covariances,
    q: int,
    log_space: bool = False,
    parallelism: int | None = None,
    config: DensityConfig | None = None,
) -> Array:
    """Emission probability matrix for a multivariate autoregressive HMM.

    Returns:
        (T, K) matrix; entry [t, k] is the density of row t under state k
        given the q preceding rows.
    """
    means = autoregressive_means(observations, mu, phi, q)
    return state_densities(
        observations, means, covariances,
        log_space=log_space, parallelism=parallelism, config=config,
    )
