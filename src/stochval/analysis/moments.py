# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Moment & Covariance Estimator

Turns a realization batch (2d, N) into the statistics compared against
theory. With y the original-process block, z the linearized block and w
the deterministic terminal state:

    z_ε            = (y - w) / ε                     scaled deviation
    Γ_y^(r)        = mean ‖y - w - ε·z‖^r            y-error moment
    Γ_z^(r)        = mean ‖z_ε - z‖^r                z-error moment
    S²_empirical   = λ_max(cov(z_ε))                 stochastic sensitivity

Norms are p-norms taken column-wise (one value per sample).

Covariances use the outer-product form with (N - 1) normalization, so
they are symmetric positive semi-definite by construction. The largest
eigenvalue is computed with ``numpy.linalg.eigvalsh`` and stays
well-defined when the covariance is singular (N <= d).
"""

from typing import Sequence, Tuple

import numpy as np

from stochval.types import MomentEstimate, RealizationBatch


def pnorm(A: np.ndarray, p: float = 2, axis: int = 0) -> np.ndarray:
    """
    p-norm of every column (axis=0) or row (axis=1) of A.

    Parameters
    ----------
    A : np.ndarray
        (d, N) array
    p : float
        Norm order (>= 1, np.inf allowed)
    axis : int
        Axis the norm reduces over

    Returns
    -------
    np.ndarray
        Norms, shape (N,) for axis=0

    Examples
    --------
    >>> pnorm(np.array([[3.0, 0.0], [4.0, 1.0]]))
    array([5., 1.])
    """
    return np.linalg.norm(A, ord=p, axis=axis)


def sample_mean_covariance(samples: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample mean and (N - 1)-normalized covariance.

    Parameters
    ----------
    samples : np.ndarray
        (d, N) array, one sample per column, N >= 2

    Returns
    -------
    mean : np.ndarray
        (d,)
    covariance : np.ndarray
        (d, d), symmetric PSD
    """
    samples = np.asarray(samples, dtype=float)
    if samples.ndim != 2:
        raise ValueError(f"samples must be 2-D (d, N), got shape {samples.shape}")
    n = samples.shape[1]
    if n < 2:
        raise ValueError(f"At least 2 samples are needed for a covariance, got {n}")

    mean = samples.mean(axis=1)
    centred = samples - mean[:, None]
    covariance = centred @ centred.T / (n - 1)
    # Outer-product form is symmetric up to round-off; make it exact
    covariance = 0.5 * (covariance + covariance.T)
    return mean, covariance


def largest_eigenvalue(S: np.ndarray) -> float:
    """
    Largest eigenvalue of a symmetric matrix.

    Singular matrices are fine; only non-finite entries are rejected.
    """
    S = np.atleast_2d(np.asarray(S, dtype=float))
    if S.shape[0] != S.shape[1]:
        raise ValueError(f"Matrix must be square, got shape {S.shape}")
    if not np.all(np.isfinite(S)):
        raise ValueError("Matrix has non-finite entries")
    return float(np.linalg.eigvalsh(S)[-1])


def split_batch(batch: RealizationBatch, d: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Views of the y-block and linearized block of a (2d, N) batch.

    Raises
    ------
    ValueError
        If the batch does not have 2d rows
    """
    batch = np.asarray(batch)
    if batch.ndim != 2 or batch.shape[0] != 2 * d:
        raise ValueError(f"Batch must have shape (2*{d}, N), got {batch.shape}")
    return batch[:d], batch[d:]


def estimate(
    batch: RealizationBatch,
    w: np.ndarray,
    epsilon: float,
    rs: Sequence[float],
    p: float = 2,
) -> MomentEstimate:
    """
    All per-ε statistics of one realization batch.

    Parameters
    ----------
    batch : np.ndarray
        Terminal augmented states (2d, N)
    w : np.ndarray
        Deterministic terminal state (d,)
    epsilon : float
        Noise intensity the batch was simulated with (> 0)
    rs : Sequence[float]
        Moment exponents (non-empty)
    p : float
        Norm order for the column-wise norms

    Returns
    -------
    MomentEstimate

    Raises
    ------
    ValueError
        On malformed shapes, empty rs, non-positive ε or non-finite samples
    """
    w = np.atleast_1d(np.asarray(w, dtype=float))
    d = w.shape[0]
    y, z_limit = split_batch(batch, d)
    if not epsilon > 0:
        raise ValueError(f"epsilon must be positive, got {epsilon}")
    rs = [float(r) for r in rs]
    if not rs:
        raise ValueError("At least one moment exponent r is required")
    if not (np.all(np.isfinite(y)) and np.all(np.isfinite(z_limit))):
        raise ValueError("Realization batch contains non-finite samples")

    deviation = y - w[:, None]
    z_eps = deviation / epsilon

    w_norms = pnorm(deviation, p)
    y_norms = pnorm(deviation - epsilon * z_limit, p)
    z_norms = pnorm(z_eps - z_limit, p)

    y_mean, y_cov = sample_mean_covariance(y)
    z_mean, z_cov = sample_mean_covariance(z_eps)

    return MomentEstimate(
        epsilon=float(epsilon),
        rs=rs,
        w_abs_diff=float(np.mean(w_norms)),
        z_mean_diff=float(np.mean(pnorm(z_eps, p))),
        w_moments=np.array([np.mean(w_norms**r) for r in rs]),
        y_moments=np.array([np.mean(y_norms**r) for r in rs]),
        z_moments=np.array([np.mean(z_norms**r) for r in rs]),
        y_mean=y_mean,
        y_covariance=y_cov,
        z_mean=z_mean,
        z_covariance=z_cov,
        sensitivity=largest_eigenvalue(z_cov),
    )


def scaled_deviation(batch: RealizationBatch, w: np.ndarray, epsilon: float) -> np.ndarray:
    """z_ε = (y - w) / ε for every sample, shape (d, N)."""
    w = np.atleast_1d(np.asarray(w, dtype=float))
    y, _ = split_batch(batch, w.shape[0])
    return (y - w[:, None]) / epsilon


def second_moment(samples: np.ndarray) -> np.ndarray:
    """Uncentred second-moment matrix (1/M) Σ s sᵀ of a (d, M) pool."""
    samples = np.asarray(samples, dtype=float)
    if samples.ndim != 2 or samples.shape[1] == 0:
        raise ValueError(f"samples must be a non-empty (d, M) array, got shape {samples.shape}")
    return samples @ samples.T / samples.shape[1]
