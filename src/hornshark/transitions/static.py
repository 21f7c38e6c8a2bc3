"""Static (fixed) transition matrix and its stationary distribution."""

import logging

import jax.numpy as jnp
import numpy as np

from hornshark.errors import NumericalError, ShapeError
from hornshark.types import Array

log = logging.getLogger(__name__)


def validate_row_stochastic(trans, atol: float = 1e-6) -> None:
    """Check that a matrix is square, non-negative and row-stochastic."""
    trans_np = np.asarray(trans, dtype=np.float64)
    if trans_np.ndim != 2 or trans_np.shape[0] != trans_np.shape[1]:
        raise ShapeError(f"Transition matrix must be square, got shape {trans_np.shape}")
    if np.any(trans_np < 0):
        raise ValueError("Transition matrix has negative entries")
    row_sums = trans_np.sum(axis=1)
    if not np.allclose(row_sums, 1.0, atol=atol):
        raise ValueError(f"Transition matrix rows must sum to 1, got {row_sums}")


def make_static_trans(trans_probs: list[list[float]] | None = None) -> Array:
    """Create a static transition matrix.

    Args:
        trans_probs: K x K transition probability matrix.
            If None, uses the default 2-state example model.

    Returns:
        (K, K) transition matrix.
    """
    if trans_probs is None:
        from hornshark.config import DEFAULT_TRANS
        trans_probs = DEFAULT_TRANS

    trans = jnp.array(trans_probs, dtype=jnp.float64)
    validate_row_stochastic(trans)
    return trans


def stationary_distribution(trans) -> Array:
    """Stationary distribution delta of a transition matrix.

    Solves delta (I - trans + U) = 1, where U is the all-ones matrix.

    Raises:
        ShapeError: trans is not square.
        NumericalError: the chain has no unique stationary distribution.
    """
    trans = jnp.asarray(trans, dtype=jnp.float64)
    if trans.ndim != 2 or trans.shape[0] != trans.shape[1]:
        raise ShapeError(f"Transition matrix must be square, got shape {trans.shape}")
    K = trans.shape[0]

    system = (jnp.eye(K) - trans + jnp.ones((K, K))).T
    cond = float(jnp.linalg.cond(system))
    if not np.isfinite(cond) or cond > 1e12:
        log.warning(f"Stationary system is singular (cond={cond:.3e})")
        raise NumericalError("Transition matrix has no unique stationary distribution")

    return jnp.linalg.solve(system, jnp.ones(K))
