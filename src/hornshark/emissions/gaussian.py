"""Multivariate Gaussian density evaluation.

The covariance matrix is factored once (Cholesky) and the factor is shared
read-only across a pool of worker threads, each evaluating a contiguous
block of observation rows. Log-densities use the factor directly:

    log N(x | mu, S) = -D/2 log(2 pi) - sum(log diag(L)) - |L^-1 (x - mu)|^2 / 2

so no explicit inverse or determinant is ever formed.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import jax
import jax.numpy as jnp
import numpy as np
from jax.scipy.linalg import solve_triangular

from hornshark.config import DensityConfig
from hornshark.data.chunking import generate_row_blocks
from hornshark.errors import NumericalError, ShapeError
from hornshark.types import Array

log = logging.getLogger(__name__)

_LOG_2PI = math.log(2.0 * math.pi)


@jax.jit
def _mvn_log_density_block(obs: Array, mean: Array, chol: Array) -> Array:
    """Log-density for a block of rows.

    Args:
        obs: (R, D) observations.
        mean: (D,) shared mean, or (R, D) one mean per row.
        chol: (D, D) lower Cholesky factor of the covariance.

    Returns:
        (R,) log-densities.
    """
    D = obs.shape[1]
    diff = obs - mean  # (R, D), broadcasts a shared (D,) mean
    z = solve_triangular(chol, diff.T, lower=True)  # (D, R)
    maha = jnp.sum(z ** 2, axis=0)
    half_log_det = jnp.sum(jnp.log(jnp.diag(chol)))
    return -0.5 * D * _LOG_2PI - half_log_det - 0.5 * maha


def _evaluate_block(obs: Array, mean: Array, chol: Array) -> Array:
    # Wait on the device result so the worker owns the whole computation.
    return _mvn_log_density_block(obs, mean, chol).block_until_ready()




def cholesky_factor(covariance) -> Array:
    """Lower Cholesky factor of a symmetric positive-definite matrix.

    Raises:
        ShapeError: covariance is not a square matrix.
        NumericalError: covariance is not symmetric positive-definite.
    """
    cov = jnp.asarray(covariance, dtype=jnp.float64)
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ShapeError(f"Covariance must be square, got shape {cov.shape}")

    cov_np = np.asarray(cov)
    if not np.all(np.isfinite(cov_np)):
        log.warning(f"Non-finite entries in {cov.shape} covariance")
        raise NumericalError("Covariance contains non-finite entries")
    if not np.allclose(cov_np, cov_np.T, rtol=1e-10, atol=1e-12):
        log.warning(
            f"Asymmetric {cov.shape} covariance "
            f"(max |S - S^T| = {np.max(np.abs(cov_np - cov_np.T)):.3e})"
        )
        raise NumericalError("Covariance is not symmetric")

    chol = jnp.linalg.cholesky(cov)
    diag = np.diag(np.asarray(chol))
    if not (np.all(np.isfinite(diag)) and np.all(diag > 0)):
        log.warning(f"Cholesky decomposition failed for {cov.shape} covariance")
        raise NumericalError("Covariance is not positive-definite")
    return chol


def _validate_inputs(observations, mean, covariance) -> tuple[Array, Array, Array]:
    obs = jnp.asarray(observations, dtype=jnp.float64)
    mu = jnp.asarray(mean, dtype=jnp.float64)
    cov = jnp.asarray(covariance, dtype=jnp.float64)

    if obs.ndim != 2:
        raise ShapeError(f"Observations must be a 2D (R, D) matrix, got shape {obs.shape}")
    D = obs.shape[1]
    if D < 1:
        raise ShapeError("Observations must have at least one column")

    # Accept a (1, D) row as well as a flat (D,) vector
    if mu.ndim == 2 and mu.shape[0] == 1:
        mu = mu[0]
    if mu.shape != (D,):
        raise ShapeError(f"Mean has shape {mu.shape}, expected ({D},)")
    if cov.shape != (D, D):
        raise ShapeError(f"Covariance has shape {cov.shape}, expected ({D}, {D})")

    return obs, mu, cov


def _resolve_parallelism(parallelism: int | None, config: DensityConfig) -> int:
    if parallelism is None:
        parallelism = config.effective_n_workers
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1, got {parallelism}")
    return parallelism


def _evaluate_components(
    obs: Array,
    means: list[Array],
    chols: list[Array],
    parallelism: int,
    config: DensityConfig,
) -> list[Array]:
    """Log-densities of every row under each (mean, factor) pair.

    All pairs share one worker pool and one row partition. A mean may be
    a shared (D,) vector or an (R, D) matrix sliced along with the rows.

    Returns:
        One (R,) array per pair, in input order.
    """
    R = obs.shape[0]
    if R == 0:
        return [jnp.zeros((0,), dtype=jnp.float64) for _ in means]

    blocks = generate_row_blocks(R, parallelism, config.min_rows_per_block)
    log.debug(
        f"Evaluating {R} rows (D={obs.shape[1]}) under {len(means)} component(s) "
        f"in {len(blocks)} block(s)"
    )

    if len(blocks) == 1:
        return [_evaluate_block(obs, mean, chol) for mean, chol in zip(means, chols)]

    with ThreadPoolExecutor(max_workers=len(blocks)) as pool:
        futures = [
            [
                pool.submit(
                    _evaluate_block,
                    obs[block.slice],
                    mean[block.slice] if mean.ndim == 2 else mean,
                    chol,
                )
                for block in blocks
            ]
            for mean, chol in zip(means, chols)
        ]
        # Collect in submission order to keep row alignment
        return [jnp.concatenate([f.result() for f in group]) for group in futures]


def dmvnrm(
    observations,
    mean,
    covariance,
    log_space: bool = False,
    parallelism: int | None = None,
    config: DensityConfig | None = None,
) -> Array:
    """Multivariate normal density for each row of an observation matrix.

    Args:
        observations: (R, D) observations, one per row. R may be zero.
        mean: (D,) mean vector shared by all rows.
        covariance: (D, D) symmetric positive-definite covariance.
        log_space: Return log-densities instead of densities.
        parallelism: Worker count. 1 evaluates sequentially in the calling
            thread. None uses ``config.effective_n_workers``.
        config: Worker pool configuration (defaults to DensityConfig()).

    Returns:
        (R,) densities (or log-densities), aligned with the input rows.

    Raises:
        ShapeError: mean, covariance and row width disagree.
        NumericalError: covariance is not symmetric positive-definite.
    """
    if config is None:
        config = DensityConfig()
    obs, mu, cov = _validate_inputs(observations, mean, covariance)
    parallelism = _resolve_parallelism(parallelism, config)

    chol = cholesky_factor(cov)
    (log_dens,) = _evaluate_components(obs, [mu], [chol], parallelism, config)

    if log_space:
        return log_dens
    return jnp.exp(log_dens)


def state_densities(
    observations,
    means,
    covariances,
    log_space: bool = False,
    parallelism: int | None = None,
    config: DensityConfig | None = None,
) -> Array:
    """Emission probability matrix for a Gaussian HMM.

    Every state is evaluated on the same worker pool.

    Args:
        observations: (T, D) observations, one time step per row.
        means: (K, D) state means, or (K, T, D) with a separate mean for
            every time step (autoregressive emissions).
        covariances: (K, D, D) state covariances.
        log_space: Return log-densities.
        parallelism: Worker count, as for ``dmvnrm``.
        config: Worker pool configuration.

    Returns:
        (T, K) matrix; entry [t, k] is the density of row t under state k.
    """
    if config is None:
        config = DensityConfig()
    obs = jnp.asarray(observations, dtype=jnp.float64)
    means = jnp.asarray(means, dtype=jnp.float64)
    covariances = jnp.asarray(covariances, dtype=jnp.float64)

    if obs.ndim != 2:
        raise ShapeError(f"Observations must be a 2D (T, D) matrix, got shape {obs.shape}")
    T, D = obs.shape
    if means.ndim == 2:
        expected = (means.shape[0], D)
    elif means.ndim == 3:
        expected = (means.shape[0], T, D)
    else:
        raise ShapeError(f"Means must be (K, D) or (K, T, D), got shape {means.shape}")
    K = means.shape[0]
    if K == 0:
        raise ShapeError("At least one state is required")
    if means.shape != expected:
        raise ShapeError(f"Means have shape {means.shape}, expected {expected}")
    if covariances.shape != (K, D, D):
        raise ShapeError(
            f"Covariances have shape {covariances.shape}, expected ({K}, {D}, {D})"
        )
    parallelism = _resolve_parallelism(parallelism, config)

    chols = [cholesky_factor(covariances[k]) for k in range(K)]
    columns = _evaluate_components(
        obs, [means[k] for k in range(K)], chols, parallelism, config,
    )

    log_dens = jnp.stack(columns, axis=1)
    if log_space:
        return log_dens
    return jnp.exp(log_dens)
