'''Lambert boundary-value solver (Izzo, 2015)

Given two positions and a time of flight about a single attracting center,
find the departure and arrival velocities of the connecting conic.

Reference: D. Izzo, "Revisiting Lambert's problem", Celestial Mechanics and
Dynamical Astronomy 121 (2015), pp. 1-15.

All functions are pure; they hold no state between calls.
'''

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np
from scipy.special import hyp2f1

from .config import config
from .errors import ConvergenceError, DegenerateVectorError, GeometryError, InfeasibleTimeError
from .utils import validation_error
from .vector import Vector3

logger = logging.getLogger(__name__)


class LambertSolution(NamedTuple):
    """Departure and arrival velocities of a Lambert transfer."""
    v1: Vector3
    v2: Vector3


@dataclass(frozen=True)
class LambertProblem:
    """
    Inputs of one Lambert solve.

    Attributes
    ----------
    mu : float
        Gravitational parameter of the central body
    r1, r2 : Vector3
        Departure and arrival positions relative to the central body
    tof : float
        Time of flight, in units consistent with ``mu``
    M : int
        Number of complete revolutions
    prograde : bool
        Prograde (True) or retrograde (False) transfer
    low_path : bool
        For M > 0, which of the two solutions to return
    maxiter : int, optional
    atol, rtol : float, optional
        Defaults from config.LAMBERT_MAXITER / LAMBERT_ATOL / LAMBERT_RTOL
    """
    mu: float
    r1: Vector3
    r2: Vector3
    tof: float
    M: int = 0
    prograde: bool = True
    low_path: bool = True
    maxiter: Optional[int] = None
    atol: Optional[float] = None
    rtol: Optional[float] = None

    def solve(self) -> LambertSolution:
        return lambert_izzo(self.mu, self.r1, self.r2, self.tof, M=self.M,
                            prograde=self.prograde, low_path=self.low_path,
                            maxiter=self.maxiter, atol=self.atol, rtol=self.rtol)


def lambert_izzo(mu, r1, r2, tof, M=0, prograde=True, low_path=True,
                 maxiter=None, atol=None, rtol=None) -> LambertSolution:
    """
    Solve Lambert's problem with Izzo's algorithm.

    Parameters
    ----------
    mu : float
        Gravitational parameter of the central body
    r1 : Vector3 or array-like
        Initial position vector
    r2 : Vector3 or array-like
        Final position vector
    tof : float
        Time of flight
    M : int, optional
        Number of complete revolutions (default 0)
    prograde : bool, optional
        Direction of motion relative to +z (default True)
    low_path : bool, optional
        If two solutions exist for M > 0, choose the low-energy path
        (default True)
    maxiter : int, optional
        Iteration cap. Default: config.LAMBERT_MAXITER
    atol, rtol : float, optional
        Convergence tolerances on x. Defaults: config.LAMBERT_ATOL,
        config.LAMBERT_RTOL

    Returns
    -------
    LambertSolution
        ``(v1, v2)``, in the units of ``sqrt(mu / length)``

    Raises
    ------
    GeometryError
        If r1 or r2 is at the origin, the positions coincide, the transfer
        plane is undefined (collinear positions) or |lambda| >= 1
    InfeasibleTimeError
        If tof <= 0 or tof is below the minimum for M revolutions
    ConvergenceError
        If the root polishing does not converge within ``maxiter``

    Examples
    --------
    >>> v1, v2 = lambert_izzo(398600.4418, Vector3(15945.34, 0, 0),
    ...                       Vector3(12214.83899, 10249.46731, 0), 4560.0)
    """
    maxiter = config.LAMBERT_MAXITER if maxiter is None else maxiter
    atol = config.LAMBERT_ATOL if atol is None else atol
    rtol = config.LAMBERT_RTOL if rtol is None else rtol
    r1 = r1 if isinstance(r1, Vector3) else Vector3.from_array(r1)
    r2 = r2 if isinstance(r2, Vector3) else Vector3.from_array(r2)

    if not mu > 0:
        validation_error(f"Gravitational parameter must be positive, got {mu}")
    if M < 0:
        raise ValueError(f"Number of revolutions must be non-negative, got {M}")
    _validate_positions(r1, r2)
    if not tof > 0:
        raise InfeasibleTimeError(f"Time of flight must be positive, got {tof}")

    # Chord
    c = r2 - r1
    c_norm = c.length()
    r1_norm = r1.length()
    r2_norm = r2.length()

    # Semiperimeter
    s = 0.5 * (r1_norm + r2_norm + c_norm)

    # Versors
    i_r1 = r1.normalized()
    i_r2 = r2.normalized()
    try:
        i_h = i_r1.cross(i_r2).normalized()
    except DegenerateVectorError:
        raise GeometryError(
            "Positions are collinear with the central body; transfer plane is undefined"
        ) from None

    # Geometry of the problem
    ll = math.sqrt(1 - min(1.0, c_norm / s))

    # Fundamental tangential directions
    if i_h.z < 0:
        ll = -ll
        i_t1 = i_r1.cross(i_h)
        i_t2 = i_r2.cross(i_h)
    else:
        i_t1 = i_h.cross(i_r1)
        i_t2 = i_h.cross(i_r2)

    # Correct transfer angle and tangential vectors for retrograde motion
    if not prograde:
        ll = -ll
        i_t1 = -i_t1
        i_t2 = -i_t2

    # Non dimensional time of flight
    T = math.sqrt(2 * mu / s**3) * tof

    x, y = _find_xy(ll, T, M, maxiter, atol, rtol, low_path)

    # Reconstruct
    gamma = math.sqrt(mu * s / 2)
    rho = (r1_norm - r2_norm) / c_norm
    sigma = math.sqrt(1 - rho**2)

    V_r1, V_r2, V_t1, V_t2 = _reconstruct(x, y, r1_norm, r2_norm, ll, gamma, rho, sigma)

    v1 = i_r1 * V_r1 + i_t1 * V_t1
    v2 = i_r2 * V_r2 + i_t2 * V_t2
    if not (v1.is_finite() and v2.is_finite()):
        raise ConvergenceError("Lambert solution is not finite")
    return LambertSolution(v1, v2)


def _validate_positions(r1, r2):
    if r1.length() == 0.0 or r2.length() == 0.0:
        raise GeometryError("Position can not be at origin")
    if (r1 - r2).length() == 0.0:
        raise GeometryError("Initial and final positions can not be the same")


def _reconstruct(x, y, r1, r2, ll, gamma, rho, sigma):
    """Radial and tangential velocity components at both ends."""
    V_r1 = gamma * ((ll * y - x) - rho * (ll * y + x)) / r1
    V_r2 = -gamma * ((ll * y - x) + rho * (ll * y + x)) / r2
    V_t1 = gamma * sigma * (y + ll * x) / r1
    V_t2 = gamma * sigma * (y + ll * x) / r2
    return V_r1, V_r2, V_t1, V_t2


def _find_xy(ll, T, M, maxiter, atol, rtol, low_path):
    """Converge the free parameter x and return (x, y)."""
    # For abs(ll) == 1 the derivative is not continuous
    if abs(ll) >= 1:
        raise GeometryError(f"Degenerate transfer geometry (|lambda| = {abs(ll)})")

    M_max = math.floor(T / math.pi)
    T_00 = math.acos(ll) + ll * math.sqrt(1 - ll**2)  # T_xM

    # Refine maximum number of revolutions if necessary
    if T < T_00 + M_max * math.pi and M_max > 0:
        T_min = _compute_T_min(ll, M_max, maxiter, atol, rtol)
        if T < T_min:
            M_max -= 1

    # Check if a feasible solution exist for the given number of revolutions
    if M > M_max:
        raise InfeasibleTimeError(
            f"No feasible solution for M={M} revolutions (at most {M_max} possible)")

    x_0 = _initial_guess(T, ll, M, low_path)
    x = _householder(x_0, T, ll, M, atol, rtol, maxiter)
    y = _compute_y(x, ll)
    logger.debug("Lambert converged: x=%.12f, M=%d, lambda=%.6f", x, M, ll)
    return x, y


def _compute_y(x, ll):
    return math.sqrt(1 - ll**2 * (1 - x**2))


def _compute_psi(x, y, ll):
    """Auxiliary angle psi (Izzo eq. 17)."""
    if -1 <= x < 1:
        # Elliptic motion
        return math.acos(min(1.0, max(-1.0, x * y + ll * (1 - x**2))))
    elif x > 1:
        # Hyperbolic motion
        return math.asinh((y - x * ll) * math.sqrt(x**2 - 1))
    else:
        # Parabolic motion
        return 0.0


def _tof_equation(x, T0, ll, M):
    return _tof_equation_y(x, _compute_y(x, ll), T0, ll, M)


def _tof_equation_y(x, y, T0, ll, M):
    """Time of flight equation with externally computed y, minus T0."""
    if M == 0 and math.sqrt(0.6) < x < math.sqrt(1.4):
        # Near-parabolic: Battin's hypergeometric series form
        eta = y - ll * x
        S_1 = (1 - ll - x * eta) * 0.5
        Q = 4 / 3 * hyp2f1(3, 1, 5 / 2, S_1)
        T_ = (eta**3 * Q + 4 * ll * eta) * 0.5
    else:
        psi = _compute_psi(x, y, ll)
        T_ = ((psi + M * math.pi) / math.sqrt(abs(1 - x**2)) - x + ll * y) / (1 - x**2)
    return T_ - T0


def _tof_equation_p(x, y, T, ll):
    return (3 * T * x - 2 + 2 * ll**3 * x / y) / (1 - x**2)


def _tof_equation_p2(x, y, T, dT, ll):
    return (3 * T + 5 * x * dT + 2 * (1 - ll**2) * ll**3 / y**3) / (1 - x**2)


def _tof_equation_p3(x, y, _, dT, ddT, ll):
    return (7 * x * ddT + 8 * dT - 6 * (1 - ll**2) * ll**5 * x / y**5) / (1 - x**2)


def _compute_T_min(ll, M, maxiter, atol, rtol):
    """Minimum non-dimensional time of flight for M revolutions."""
    if ll == 1:
        x_T_min = 0.0
        T_min = _tof_equation(x_T_min, 0.0, ll, M)
    else:
        if M == 0:
            x_T_min = np.inf
            T_min = 0.0
        else:
            # Start away from x = 0 to avoid problems at ll = -1
            x_i = 0.1
            x_T_min = _halley(x_i, ll, M, atol, rtol, maxiter)
            T_min = _tof_equation(x_T_min, 0.0, ll, M)
    return T_min


def _initial_guess(T, ll, M, low_path):
    """Starting value of x (Izzo eqs. 30 and 31)."""
    if M == 0:
        # Single revolution
        T_0 = math.acos(ll) + ll * math.sqrt(1 - ll**2) + M * math.pi
        T_1 = 2 * (1 - ll**3) / 3
        if T >= T_0:
            x_0 = (T_0 / T) ** (2 / 3) - 1
        elif T < T_1:
            x_0 = 5 / 2 * T_1 / T * (T_1 - T) / (1 - ll**5) + 1
        else:
            # T_1 <= T < T_0: interpolates x = 1 at T_1 and x = 0 at T_0
            x_0 = math.exp(math.log(2) * math.log(T / T_0) / math.log(T_1 / T_0)) - 1
        return x_0
    else:
        # Multiple revolution
        x_0l = (((M * math.pi + math.pi) / (8 * T)) ** (2 / 3) - 1) / (
            ((M * math.pi + math.pi) / (8 * T)) ** (2 / 3) + 1)
        x_0r = (((8 * T) / (M * math.pi)) ** (2 / 3) - 1) / (
            ((8 * T) / (M * math.pi)) ** (2 / 3) + 1)
        # Select one of the two solutions according to desired type of path
        return max(x_0l, x_0r) if low_path else min(x_0l, x_0r)


def _halley(p0, ll, M, atol, rtol, maxiter):
    """
    Minimize the time of flight with respect to x (Halley's method).

    Solves dT/dx = 0; the time of flight is re-evaluated at every iterate.
    """
    for ii in range(1, maxiter + 1):
        y = _compute_y(p0, ll)
        T = _tof_equation_y(p0, y, 0.0, ll, M)
        fder = _tof_equation_p(p0, y, T, ll)
        fder2 = _tof_equation_p2(p0, y, T, fder, ll)
        if fder2 == 0:
            raise ConvergenceError("Derivative was zero", iterations=ii)
        fder3 = _tof_equation_p3(p0, y, T, fder, fder2, ll)

        # Halley step (cubic)
        p = p0 - 2 * fder * fder2 / (2 * fder2**2 - fder * fder3)

        if not math.isfinite(p):
            raise ConvergenceError("Halley iteration diverged", iterations=ii)
        if abs(p - p0) < rtol * abs(p0) + atol:
            return p
        p0 = p
    raise ConvergenceError(f"Failed to converge in {maxiter} iterations", iterations=maxiter)


def _householder(p0, T0, ll, M, atol, rtol, maxiter):
    """Find the x with T(x) = T0 (Householder's quartic method)."""
    for ii in range(1, maxiter + 1):
        y = _compute_y(p0, ll)
        fval = _tof_equation_y(p0, y, T0, ll, M)
        T = fval + T0
        fder = _tof_equation_p(p0, y, T, ll)
        fder2 = _tof_equation_p2(p0, y, T, fder, ll)
        fder3 = _tof_equation_p3(p0, y, T, fder, fder2, ll)

        # Householder step (quartic)
        p = p0 - fval * ((fder**2 - fval * fder2 / 2)
                         / (fder * (fder**2 - fval * fder2) + fder3 * fval**2 / 6))

        if not math.isfinite(p):
            raise ConvergenceError("Householder iteration diverged", iterations=ii)
        if abs(p - p0) < rtol * abs(p0) + atol:
            return p
        p0 = p
    raise ConvergenceError(f"Failed to converge in {maxiter} iterations", iterations=maxiter)
