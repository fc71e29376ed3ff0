"""
LMS (Lambda-Mu-Sigma) transformations for WHO growth standards.

Converts between a measurement and its z-score using the Box-Cox power
transformation published with the WHO Child Growth Standards (Cole, 1990).

For L != 0: X = M * (1 + L*S*Z)^(1/L)   and   Z = ((X/M)^L - 1) / (L*S)
For L ~= 0: X = M * exp(S*Z)            and   Z = ln(X/M) / S

Undefined real powers produce NaN. NaN is propagated, never coerced, so that
callers can skip a point (charts) or fail explicitly (require_finite).

References:
- Cole, T.J. (1990). "The LMS method for constructing normalized growth standards."
  European Journal of Clinical Nutrition, 44(1), 45-60.
- WHO Multicentre Growth Reference Study Group (2006). WHO Child Growth Standards.
"""

import math
from typing import Union

import numpy as np
from numba import jit
from scipy import stats

from .config import L_ZERO_THRESHOLD
from .errors import InvalidNumericError
from .types import ReferenceDataset

ArrayLike = Union[float, np.ndarray]


@jit(nopython=True, cache=True, error_model="numpy")
def _measurement_kernel(
    L: np.ndarray, M: np.ndarray, S: np.ndarray, Z: np.ndarray
) -> np.ndarray:
    out = np.full(M.shape[0], np.nan)
    for i in range(M.size):
        if abs(L[i]) < L_ZERO_THRESHOLD:
            out[i] = M[i] * np.exp(S[i] * Z[i])
        else:
            base = 1.0 + L[i] * S[i] * Z[i]
            # Negative base to a fractional power has no real value
            if base > 0.0:
                out[i] = M[i] * base ** (1.0 / L[i])
    return out


@jit(nopython=True, cache=True, error_model="numpy")
def _zscore_kernel(
    L: np.ndarray, M: np.ndarray, S: np.ndarray, X: np.ndarray
) -> np.ndarray:
    out = np.full(X.shape[0], np.nan)
    for i in range(X.size):
        ratio = X[i] / M[i]
        if not ratio > 0.0:
            continue
        if abs(L[i]) < L_ZERO_THRESHOLD:
            out[i] = np.log(ratio) / S[i]
        else:
            out[i] = (ratio ** L[i] - 1.0) / (L[i] * S[i])
    return out


def _prepare(*values: ArrayLike):
    """Broadcast inputs to contiguous 1D float64 arrays, remembering the shape."""
    arrays = np.broadcast_arrays(*(np.asarray(v, dtype=np.float64) for v in values))
    shape = arrays[0].shape
    flat = [np.array(a.ravel(), dtype=np.float64) for a in arrays]
    return shape, flat


def _finish(result: np.ndarray, shape: tuple) -> ArrayLike:
    if shape == ():
        return float(result[0])
    return result.reshape(shape)


def measurement_from_zscore(l: ArrayLike, m: ArrayLike, s: ArrayLike, z: ArrayLike) -> ArrayLike:  # noqa: E741
    """
    Measurement value at a z-score.

    Args:
        l: Lambda (Box-Cox power)
        m: Mu (median)
        s: Sigma (coefficient of variation)
        z: Z-score

    Returns:
        Measurement in the table's unit (kg or cm); NaN when 1 + L*S*Z <= 0.
        A float for scalar inputs, an array of the broadcast shape otherwise.
    """
    shape, (L, M, S, Z) = _prepare(l, m, s, z)
    return _finish(_measurement_kernel(L, M, S, Z), shape)


def zscore_from_measurement(l: ArrayLike, m: ArrayLike, s: ArrayLike, x: ArrayLike) -> ArrayLike:  # noqa: E741
    """
    Z-score of an observed measurement.

    Returns NaN when X/M <= 0, for both the power and the log branch.
    """
    shape, (L, M, S, X) = _prepare(l, m, s, x)
    return _finish(_zscore_kernel(L, M, S, X), shape)


def percentile_from_zscore(z: ArrayLike) -> ArrayLike:
    """Percentile (0-100) of a z-score under the standard normal."""
    result = stats.norm.cdf(z) * 100.0
    if np.ndim(result) == 0:
        return float(result)
    return result


def require_finite(value: float, what: str = "value") -> float:
    """Return value, or raise InvalidNumericError if it is NaN or infinite."""
    if not math.isfinite(value):
        raise InvalidNumericError(f"LMS transform produced a non-finite {what}: {value}")
    return value


def lms_curve(dataset: ReferenceDataset, z: float) -> np.ndarray:
    """
    Measurement curve at a fixed z-score derived from a dataset's LMS columns.

    Points where the transform is undefined are NaN and should be skipped by
    the renderer.
    """
    return np.asarray(
        measurement_from_zscore(
            dataset.column("L"), dataset.column("M"), dataset.column("S"), z
        )
    )
