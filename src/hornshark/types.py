"""Type aliases and named tuples for hornshark."""

from typing import NamedTuple

import jax
import jax.numpy as jnp

# Densities and likelihoods are double precision end to end.
jax.config.update("jax_enable_x64", True)

# Array type alias (JAX arrays)
Array = jnp.ndarray


class GaussianHMMParams(NamedTuple):
    """Gaussian HMM parameter set.

    init: (K,) initial state probabilities
    trans: (K, K) row-stochastic transition matrix
    means: (K, D) state means
    covariances: (K, D, D) state covariance matrices
    """
    init: Array
    trans: Array
    means: Array
    covariances: Array


class SampleResult(NamedTuple):
    """Simulated sequence from a Gaussian HMM.

    states: (T,) int32 hidden state sequence
    obs: (T, D) observations, one row per time step
    """
    states: Array
    obs: Array


class AutoregressiveHMMParams(NamedTuple):
    """Multivariate autoregressive HMM parameter set.

    init: (K,) initial state probabilities
    trans: (K, K) row-stochastic transition matrix
    means: (K, D) white-noise means
    covariances: (K, D, D) white-noise covariance matrices
    phi: (K, D, D * q) AR coefficients; columns [(i-1)D, iD) act on lag i
    """
    init: Array
    trans: Array
    means: Array
    covariances: Array
    phi: Array

    @property
    def order(self) -> int:
        return self.phi.shape[2] // self.means.shape[1]
