"""wgmesh.integration.cubature
Adaptive numerical integration of an arbitrary function over an axis-aligned box.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np
from scipy.integrate import quad

logger = logging.getLogger(__name__)

__all__ = ["IntegrationTolerances", "DEFAULT_TOLERANCES", "CubatureError", "hcubature"]

# smallest relative tolerance QUADPACK accepts when no absolute tolerance is given
_MIN_PURE_REL_ERR = max(50.0 * np.finfo(float).eps, 5e-29)


@dataclass(frozen=True)
class IntegrationTolerances:
    rel_err: float = 1e-9
    abs_err: float = 1e-9
    # maximum number of adaptive subintervals per axis
    limit: int = 50

    def __post_init__(self):
        if self.rel_err < 0 or self.abs_err < 0:
            raise ValueError(f"integration tolerances must be non-negative, got {self}")
        if self.abs_err <= 0 and self.rel_err < _MIN_PURE_REL_ERR:
            raise ValueError(f"with abs_err <= 0, rel_err must be at least {_MIN_PURE_REL_ERR:.3g}, got {self}")
        if self.limit < 1:
            raise ValueError(f"subdivision limit must be positive, got {self.limit}")


DEFAULT_TOLERANCES = IntegrationTolerances()


class CubatureError(RuntimeError):
    """The adaptive rule did not reach the requested tolerance."""


def hcubature(integrand: Callable[[np.ndarray], float],
              lower_bounds: Sequence[float],
              upper_bounds: Sequence[float],
              rel_err: float = DEFAULT_TOLERANCES.rel_err,
              abs_err: float = DEFAULT_TOLERANCES.abs_err,
              *, limit: int = DEFAULT_TOLERANCES.limit) -> Tuple[float, float]:
    """
    Integrate ``integrand`` over the box [lower_bounds, upper_bounds].

    The box is integrated as nested adaptive quadratures, the first axis
    innermost. The integrand is called with one float vector per evaluation
    point; the same array object is reused between calls, so it must not be
    retained.

    Returns:
        (estimate, error_bound), the bound being that of the outermost axis

    Raises:
        CubatureError: if the requested tolerance is not reached within
            ``limit`` subdivisions on some axis.
    """
    lower = np.asarray(lower_bounds, dtype=float)
    upper = np.asarray(upper_bounds, dtype=float)
    if lower.shape != upper.shape or lower.ndim != 1:
        raise ValueError(f"bounds must be matching vectors, got {lower.shape} and {upper.shape}")
    IntegrationTolerances(rel_err, abs_err, limit)
    ndim = lower.shape[0]
    if ndim == 0:
        # a point: the integral is the integrand's value there
        return float(integrand(np.empty(0))), 0.0

    x = np.empty(ndim)

    def _integrate(axis: int) -> Tuple[float, float]:
        def _f(t):
            x[axis] = t
            return _integrate(axis - 1)[0] if axis > 0 else integrand(x)

        # with full_output, a fourth item (the QUADPACK message) is present only on failure
        res = quad(_f, lower[axis], upper[axis], epsabs=abs_err, epsrel=rel_err,
                   limit=limit, full_output=1)
        if len(res) > 3:
            raise CubatureError(f"cubature over {ndim}-dimensional box did not converge "
                                f"on axis {axis + 1}: {res[3]}")
        return res[0], res[1]

    estimate, error = _integrate(ndim - 1)
    logger.debug(f"hcubature: ndim={ndim}, estimate={estimate:.6e}, error={error:.2e}")
    return float(estimate), float(error)
