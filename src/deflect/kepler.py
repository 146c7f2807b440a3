'''Analytic Keplerian propagation of massive bodies

Positions are pure functions of (elements, epoch). Nothing here reads a
global clock, the caller threads the epoch through every call.
'''

import math
import warnings

import numpy as np

from .config import config
from .constants import TWO_PI
from .orbital_elements import OrbitalElements
from .vector import Vector3


def solve_kepler(M, e, iterations=None, tolerance=None):
    """
    Solve Kepler's equation E - e sin(E) = M by Newton iteration.

    Without a tolerance this takes a fixed number of Newton steps from
    E = M with no convergence test. Five steps are accurate to well below a
    metre for the near-circular planetary orbits in the body table; above
    ``config.KEPLER_MAX_ECCENTRICITY`` the fixed count is not enough and a
    tolerance should be configured.

    With a tolerance the iteration starts from E = pi for e >= 0.8, stops
    once |dE| < tolerance, and is capped at
    ``config.KEPLER_TOLERANCE_MAX_ITERATIONS``. Reaching the cap without
    converging issues a UserWarning.

    Parameters
    ----------
    M : float
        Mean anomaly [rad]
    e : float
        Eccentricity, 0 <= e < 1
    iterations : int, optional
        Newton step count, or the cap when a tolerance is in effect.
        Default: config.KEPLER_ITERATIONS, or
        config.KEPLER_TOLERANCE_MAX_ITERATIONS with a tolerance
    tolerance : float, optional
        Stop as soon as |dE| < tolerance. Default: config.KEPLER_TOLERANCE

    Returns
    -------
    float
        Eccentric anomaly [rad]
    """
    tolerance = config.KEPLER_TOLERANCE if tolerance is None else tolerance
    if tolerance is None:
        iterations = config.KEPLER_ITERATIONS if iterations is None else iterations
        E = M
    else:
        iterations = (config.KEPLER_TOLERANCE_MAX_ITERATIONS if iterations is None
                      else iterations)
        E = math.pi if e >= 0.8 else M
    for _ in range(iterations):
        dE = (E - e * math.sin(E) - M) / (1.0 - e * math.cos(E))
        E -= dE
        if tolerance is not None and abs(dE) < tolerance:
            return E
    if tolerance is not None:
        warnings.warn(
            f"Kepler solve did not reach tolerance {tolerance:g} in {iterations} "
            f"iterations (M={M:.6f}, e={e:.4f})", UserWarning, stacklevel=2)
    return E


def mean_anomaly(elements: OrbitalElements, epoch: float, phase=None) -> float:
    """
    Mean anomaly at an absolute epoch, wrapped to [0, 2 pi).

    Parameters
    ----------
    elements : OrbitalElements
    epoch : float
        Absolute simulated time [s]
    phase : float, optional
        Overrides ``elements.phase`` [rad]
    """
    phase = elements.phase if phase is None else phase
    return (phase + elements.mean_motion() * epoch) % TWO_PI


def orbital_plane_position(a, e, E):
    """Orbital-plane coordinates (x', y') for eccentric anomaly E, periapsis on +x."""
    x_prime = a * (math.cos(E) - e)
    y_prime = a * math.sqrt(1.0 - e * e) * math.sin(E)
    return x_prime, y_prime


def _check_eccentricity(elements):
    if not elements.is_low_eccentricity() and config.KEPLER_TOLERANCE is None:
        warnings.warn(
            f"Eccentricity {elements.e:.3f} exceeds KEPLER_MAX_ECCENTRICITY="
            f"{config.KEPLER_MAX_ECCENTRICITY}; fixed-count Kepler solve may be inaccurate",
            UserWarning, stacklevel=3)


def position_at_epoch(elements: OrbitalElements, epoch: float, phase=None) -> Vector3:
    """
    Inertial position on the ellipse at an absolute epoch.

    Parameters
    ----------
    elements : OrbitalElements
    epoch : float
        Absolute simulated time [s]
    phase : float, optional
        Overrides ``elements.phase`` [rad]

    Returns
    -------
    Vector3
        Position relative to the focus [AU]
    """
    _check_eccentricity(elements)
    M = mean_anomaly(elements, epoch, phase)
    E = solve_kepler(M, elements.e)
    xp, yp = orbital_plane_position(elements.a, elements.e, E)
    return Vector3.from_array(elements.dcm() @ np.array([xp, yp, 0.0]))


def velocity_at_epoch(elements: OrbitalElements, epoch: float, phase=None) -> Vector3:
    """
    Inertial velocity on the ellipse at an absolute epoch [AU/s].

    Time derivative of :func:`position_at_epoch`, using
    dE/dt = n / (1 - e cos E).
    """
    _check_eccentricity(elements)
    a, e = elements.a, elements.e
    M = mean_anomaly(elements, epoch, phase)
    E = solve_kepler(M, e)
    E_dot = elements.mean_motion() / (1.0 - e * math.cos(E))
    vp = np.array([-a * math.sin(E) * E_dot,
                   a * math.sqrt(1.0 - e * e) * math.cos(E) * E_dot,
                   0.0])
    return Vector3.from_array(elements.dcm() @ vp)


def sample_orbit(elements: OrbitalElements, steps: int = 360) -> np.ndarray:
    """
    Sample the closed ellipse uniformly in eccentric anomaly.

    Parameters
    ----------
    elements : OrbitalElements
    steps : int, optional
        Number of segments; the first and last points coincide

    Returns
    -------
    np.ndarray
        Array of shape (steps + 1, 3) [AU]
    """
    if steps < 1:
        raise ValueError("steps must be at least 1")
    E = np.linspace(0.0, TWO_PI, steps + 1)
    a, e = elements.a, elements.e
    plane = np.stack([a * (np.cos(E) - e),
                      a * np.sqrt(1.0 - e * e) * np.sin(E),
                      np.zeros_like(E)])
    return (elements.dcm() @ plane).T
