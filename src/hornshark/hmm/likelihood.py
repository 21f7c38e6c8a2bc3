"""Gaussian HMM likelihood evaluation.

Composes the density evaluator and the forward recursion into the
objective a fitting driver minimizes, plus the information criteria
reported alongside a fitted model.
"""

import logging
import math

import jax.numpy as jnp

from hornshark.config import HMMConfig
from hornshark.emissions.autoregressive import autoregressive_state_densities
from hornshark.emissions.gaussian import state_densities
from hornshark.hmm.forward_backward import forward_loglikelihood
from hornshark.transitions.static import stationary_distribution
from hornshark.types import Array, AutoregressiveHMMParams, GaussianHMMParams

log = logging.getLogger(__name__)


def _resolve_options(
    stationary: bool | None,
    config: HMMConfig | None,
) -> tuple[bool, HMMConfig]:
    # An explicit stationary flag takes precedence over the config
    if config is None:
        config = HMMConfig()
    if stationary is None:
        stationary = config.stationary
    return stationary, config


def _initial_distribution(params, stationary: bool) -> Array:
    if stationary:
        return stationary_distribution(params.trans)
    return params.init


def negative_log_likelihood(
    observations,
    params: GaussianHMMParams,
    stationary: bool | None = None,
    parallelism: int | None = None,
    config: HMMConfig | None = None,
) -> float:
    """Negative log-likelihood of a sequence under a Gaussian HMM.

    Args:
        observations: (T, D) observations, one time step per row.
        params: Model parameters.
        stationary: Use the stationary distribution of ``params.trans``
            instead of ``params.init``. None defers to ``config.stationary``
            (False by default).
        parallelism: Density worker count. None defers to ``config.density``.
        config: Evaluation configuration.

    Returns:
        -log P(observations | params).
    """
    stationary, config = _resolve_options(stationary, config)
    init = _initial_distribution(params, stationary)

    emission = state_densities(
        observations, params.means, params.covariances,
        parallelism=parallelism, config=config.density,
    )
    T, K = emission.shape
    log.debug(f"Evaluating likelihood: T={T}, K={K}, stationary={stationary}")

    return -forward_loglikelihood(T, K, init, params.trans, emission)


def autoregressive_negative_log_likelihood(
    observations,
    params: AutoregressiveHMMParams,
    stationary: bool | None = None,
    parallelism: int | None = None,
    config: HMMConfig | None = None,
) -> float:
    """Negative log-likelihood of a sequence under an autoregressive HMM.

    Arguments are as for ``negative_log_likelihood``; the emission at each
    step is conditioned on the ``params.order`` preceding observations.
    """
    stationary, config = _resolve_options(stationary, config)
    init = _initial_distribution(params, stationary)

    emission = autoregressive_state_densities(
        observations, params.means, params.phi, params.covariances, params.order,
        parallelism=parallelism, config=config.density,
    )
    T, K = emission.shape
    log.debug(
        f"Evaluating AR({params.order}) likelihood: T={T}, K={K}, stationary={stationary}"
    )

    return -forward_loglikelihood(T, K, init, params.trans, emission)


def marginal_density(
    observations,
    params: GaussianHMMParams,
    stationary: bool | None = None,
    parallelism: int | None = None,
    config: HMMConfig | None = None,
) -> Array:
    """Marginal density of each row: the state densities weighted by delta.

    delta is ``params.init``, or the stationary distribution when
    ``stationary`` is set.

    Returns:
        (R,) mixture densities.
    """
    stationary, config = _resolve_options(stationary, config)
    delta = jnp.asarray(_initial_distribution(params, stationary), dtype=jnp.float64)

    densities = state_densities(
        observations, params.means, params.covariances,
        parallelism=parallelism, config=config.density,
    )
    return densities @ delta


def n_free_parameters(
    n_states: int,
    n_dims: int,
    stationary: bool = False,
    order: int = 0,
) -> int:
    """Number of free parameters in a K-state, D-dimensional Gaussian HMM.

    ``order`` > 0 counts the coefficients of an AR(order) emission model.
    """
    K, D = n_states, n_dims
    n_means = K * D
    n_cov = K * D * (D + 1) // 2  # symmetric: lower triangle only
    n_trans = K * (K - 1)
    n_phi = K * D * D * order
    n_init = 0 if stationary else K - 1
    return n_means + n_cov + n_trans + n_phi + n_init


def information_criteria(nll: float, n_params: int, n_obs: int) -> tuple[float, float]:
    """AIC and BIC from a negative log-likelihood.

    Args:
        nll: Negative log-likelihood.
        n_params: Number of free parameters.
        n_obs: Number of observed values.

    Returns:
        (aic, bic)
    """
    if n_obs < 1:
        raise ValueError(f"n_obs must be >= 1, got {n_obs}")
    aic = 2.0 * (nll + n_params)
    bic = 2.0 * nll + n_params * math.log(n_obs)
    return aic, bic
