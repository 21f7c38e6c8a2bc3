"""Scaled forward and backward recursions using jax.lax.scan.

The forward vector is renormalized to sum to one at every time step and
the log of each normalizer is accumulated, so long sequences never
underflow. The total log-likelihood is the sum of those log normalizers.

Shapes follow the convention used throughout hornshark:
    emission: (T, K) probability of the observation at t under each state
    init: (K,) initial state distribution
    trans: (K, K) row-stochastic transition matrix
"""

import logging

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax

from hornshark.errors import NumericalError, ShapeError
from hornshark.types import Array

log = logging.getLogger(__name__)


@jax.jit
def _scaled_forward(init: Array, trans: Array, emission: Array) -> tuple[Array, Array]:
    """Scaled forward pass for a sequence of length T >= 1.

    Returns:
        phi: (T, K) normalized forward probabilities.
        scales: (T,) per-step normalizers.
    """
    # Initialize: v_1 = init * emission_1
    v_0 = init * emission[0]
    s_0 = jnp.sum(v_0)
    phi_0 = v_0 / s_0

    def scan_fn(phi_prev, emit):
        v = (phi_prev @ trans) * emit
        s = jnp.sum(v)
        phi = v / s
        return phi, (phi, s)

    # Scan over t = 2, ..., T
    _, (phi_rest, scales_rest) = lax.scan(scan_fn, phi_0, emission[1:])

    phi = jnp.concatenate([phi_0[None, :], phi_rest], axis=0)
    scales = jnp.concatenate([s_0[None], scales_rest])
    return phi, scales


@jax.jit
def _scaled_backward(trans: Array, emission: Array) -> tuple[Array, Array]:
    """Scaled backward pass for a sequence of length T >= 1.

    Returns:
        log_beta: (T, K) backward log-probabilities, log_beta[T-1] = 0.
        scales: (T-1,) per-step normalizers in chronological order.
    """
    K = trans.shape[0]

    # beta_T = 1, held as a uniform vector with log-scale log(K)
    phi_T = jnp.full((K,), 1.0 / K, dtype=emission.dtype)
    lscale_T = jnp.log(jnp.asarray(K, dtype=emission.dtype))

    def scan_fn(carry, emit_next):
        phi_next, lscale = carry
        v = trans @ (emit_next * phi_next)
        log_beta_t = jnp.log(v) + lscale
        s = jnp.sum(v)
        return (v / s, lscale + jnp.log(s)), (log_beta_t, s)

    # Scan over t = T-1, ..., 1 (reversed)
    _, (log_betas_rest, scales) = lax.scan(
        scan_fn, (phi_T, lscale_T), emission[1:][::-1]
    )

    log_beta = jnp.concatenate(
        [log_betas_rest[::-1], jnp.zeros((1, K), dtype=emission.dtype)], axis=0
    )
    return log_beta, scales[::-1]


def _check_scales(scales: Array, first_step: int = 1, reverse: bool = False) -> None:
    """Raise NumericalError at the first step with zero or non-finite mass.

    Once a step fails every later step is NaN, so for a backward pass
    (``reverse``) the failing step is the last bad one in time order.
    """
    scales_np = np.asarray(scales)
    bad = ~(np.isfinite(scales_np) & (scales_np > 0))
    if bad.any():
        if reverse:
            idx = len(bad) - 1 - int(np.argmax(bad[::-1]))
        else:
            idx = int(np.argmax(bad))
        step = idx + first_step
        log.warning(f"Probability mass {scales_np[idx]} at time step {step}")
        raise NumericalError(
            f"Zero total probability mass at time step {step}; "
            "the observed sequence has zero likelihood under these parameters"
        )


def _validate_inputs(
    initial_distribution,
    transition_matrix,
    emission_matrix,
    n: int | None = None,
    N: int | None = None,
) -> tuple[Array, Array, Array]:
    init = jnp.asarray(initial_distribution, dtype=jnp.float64)
    trans = jnp.asarray(transition_matrix, dtype=jnp.float64)
    emission = jnp.asarray(emission_matrix, dtype=jnp.float64)

    # Accept a (1, K) row for the initial distribution
    if init.ndim == 2 and init.shape[0] == 1:
        init = init[0]
    if init.ndim != 1:
        raise ShapeError(f"Initial distribution must be a vector, got shape {init.shape}")
    K = init.shape[0]

    if N is not None and N != K:
        raise ShapeError(f"N={N} but initial distribution has length {K}")
    if trans.shape != (K, K):
        raise ShapeError(f"Transition matrix has shape {trans.shape}, expected ({K}, {K})")

    # An empty sequence may arrive without a column dimension
    if emission.ndim == 1 and emission.shape[0] == 0:
        emission = emission.reshape(0, K)
    if emission.ndim != 2 or emission.shape[1] != K:
        raise ShapeError(
            f"Emission matrix has shape {emission.shape}, expected (T, {K})"
        )
    if n is not None and n != emission.shape[0]:
        raise ShapeError(f"n={n} but emission matrix has {emission.shape[0]} rows")

    return init, trans, emission


def forward_loglikelihood(
    n: int,
    N: int,
    initial_distribution,
    transition_matrix,
    emission_matrix,
) -> float:
    """Log-likelihood of an observed sequence by the scaled forward algorithm.

    Args:
        n: Number of time steps (rows of emission_matrix).
        N: Number of hidden states.
        initial_distribution: (N,) state probabilities at the first step.
        transition_matrix: (N, N) row-stochastic transition matrix.
        emission_matrix: (n, N) observation probabilities per state.

    Returns:
        Total log-likelihood. 0.0 for an empty sequence.

    Raises:
        ShapeError: any dimension disagrees with n or N.
        NumericalError: total probability mass is zero at some step.
    """
    if n < 0 or N < 0:
        raise ShapeError(f"n and N must be non-negative, got n={n}, N={N}")
    init, trans, emission = _validate_inputs(
        initial_distribution, transition_matrix, emission_matrix, n=n, N=N,
    )

    if n == 0:
        return 0.0

    log.debug(f"Forward recursion over {n} steps, {N} states")
    _, scales = _scaled_forward(init, trans, emission)
    _check_scales(scales)

    return float(jnp.sum(jnp.log(scales)))


def log_forward(initial_distribution, transition_matrix, emission_matrix) -> Array:
    """Log forward probabilities log P(x_1..x_t, z_t = k).

    Args:
        initial_distribution: (K,) initial state distribution.
        transition_matrix: (K, K) transition matrix.
        emission_matrix: (T, K) observation probabilities per state.

    Returns:
        (T, K) log forward probabilities. Entries for states with zero
        forward probability are -inf.
    """
    init, trans, emission = _validate_inputs(
        initial_distribution, transition_matrix, emission_matrix,
    )
    T, K = emission.shape
    if T == 0:
        return jnp.zeros((0, K), dtype=jnp.float64)

    phi, scales = _scaled_forward(init, trans, emission)
    _check_scales(scales)

    lscale = jnp.cumsum(jnp.log(scales))
    return jnp.log(phi) + lscale[:, None]


def log_backward(transition_matrix, emission_matrix) -> Array:
    """Log backward probabilities log P(x_{t+1}..x_T | z_t = k).

    Args:
        transition_matrix: (K, K) transition matrix.
        emission_matrix: (T, K) observation probabilities per state.

    Returns:
        (T, K) log backward probabilities; the last row is zero.
    """
    trans = jnp.asarray(transition_matrix, dtype=jnp.float64)
    if trans.ndim != 2:
        raise ShapeError(f"Transition matrix must be 2D, got shape {trans.shape}")
    K = trans.shape[0]
    _, trans, emission = _validate_inputs(
        jnp.full((K,), 1.0 / max(K, 1)), trans, emission_matrix,
    )
    T = emission.shape[0]
    if T == 0:
        return jnp.zeros((0, K), dtype=jnp.float64)

    log_beta, scales = _scaled_backward(trans, emission)
    # scales[t] normalizes the step that consumes the observation at t + 2
    _check_scales(scales, first_step=2, reverse=True)

    return log_beta
