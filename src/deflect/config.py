"""
Global Configuration for Deflect Package
========================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, solver iteration limits, the physics clock
and the recompute policy of path prediction.

Examples
--------
View current configuration:

>>> import deflect
>>> print(deflect.config)

Modify settings:

>>> deflect.config.KEPLER_ITERATIONS = 8   # More Newton steps
>>> deflect.config.MAX_SUBSTEP = 30.0      # Finer sub-stepping [s]

Reset to defaults:

>>> deflect.config.reset()

Temporarily modify settings:

>>> with deflect.temp_config(LAMBERT_MAXITER=100):
...     # More Householder iterations for this block only
...     lambert_izzo(mu, r1, r2, tof)

Notes
-----
These settings affect package-wide behavior. Components read their defaults
from this object when they are constructed, so changing a value does not
alter objects that already exist.
"""

from dataclasses import dataclass
from contextlib import contextmanager
from typing import Optional

from .constants import AU_M, SECONDS_PER_DAY


@dataclass
class DeflectConfig:
    """
    Global configuration for Deflect package.

    Attributes
    ----------
    EQUALITY_RTOL : float
        Relative tolerance for floating-point vector comparisons.
        Default: 1e-12
    EQUALITY_ATOL : float
        Absolute tolerance for floating-point vector comparisons [AU].
        Default: 1e-14
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Default: True
    KEPLER_ITERATIONS : int
        Number of Newton iterations used to solve Kepler's equation.
        Default: 5
    KEPLER_TOLERANCE : float or None
        If set, Newton iteration stops early once the eccentric anomaly
        update falls below this value [rad]. None keeps the fixed count.
        Default: None
    KEPLER_TOLERANCE_MAX_ITERATIONS : int
        Iteration cap used instead of KEPLER_ITERATIONS when a tolerance is
        set. A solve that reaches it without converging warns.
        Default: 50
    KEPLER_MAX_ECCENTRICITY : float
        Largest eccentricity for which the fixed-count Kepler solve is
        considered accurate. Larger values propagate with a warning.
        Default: 0.3
    GRAVITY_SOFTENING : float
        Softening length added in quadrature to every separation in the
        gravity sum [AU]. Default: 1e-9 (about 150 m)
    MAX_SUBSTEP : float
        Largest internal integration increment [s]. Larger caller steps
        are split. Default: 60.0
    PHYSICS_TICKS_PER_SECOND : int
        Fixed physics rate of the external loop [ticks per real second].
        Default: 300
    SIM_DAYS_PER_REAL_SECOND : float
        Simulation speed [simulated days per real second]. Default: 1.0
    LAMBERT_MAXITER : int
        Iteration cap of the Householder / Halley root polishing.
        Default: 35
    LAMBERT_ATOL, LAMBERT_RTOL : float
        Absolute and relative convergence tolerance on the Lambert free
        parameter x. Defaults: 1e-5, 1e-7
    EXHAUST_VELOCITY : float
        Assumed exhaust velocity of impactor propulsion [AU/s].
        Default: 1800 m/s
    PROXIMITY_THRESHOLD : float
        Capture radius used by the interceptor hit test [AU].
        Default: 1e-5 (about 1500 km)
    PREDICTION_HORIZON_DAYS : float
        Forward horizon of path prediction [days]. Default: 365
    PREDICTION_MIN_STEPS, PREDICTION_MAX_STEPS : int
        Clamp on the number of prediction samples. Defaults: 50, 20000
    RECOMPUTE_INTERVAL_SECONDS : float
        Simulated time after which a prediction is always rebuilt [s].
        Default: 4 days
    RECOMPUTE_EVERY_TICKS : int
        Tick count after which a prediction is rebuilt if state changed.
        Default: 120
    HEADING_EPSILON_DEG : float
        Heading change that forces a rebuild [deg]. Default: 2.0
    SPEED_REL_EPSILON : float
        Relative speed change that forces a rebuild. Default: 0.05
    MIN_FORCED_RECOMPUTE_TICKS : int
        Minimum ticks between drift-forced rebuilds. Default: 60
    IMPACT_HISTORY_LIMIT : int
        Maximum number of solutions kept by an ImpactStore. Default: 500
    """

    # Numerical tolerance for equality comparisons
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Kepler propagation
    KEPLER_ITERATIONS: int = 5
    KEPLER_TOLERANCE: Optional[float] = None
    KEPLER_TOLERANCE_MAX_ITERATIONS: int = 50
    KEPLER_MAX_ECCENTRICITY: float = 0.3

    # Gravity and integration
    GRAVITY_SOFTENING: float = 1e-9
    MAX_SUBSTEP: float = 60.0

    # Physics clock
    PHYSICS_TICKS_PER_SECOND: int = 300
    SIM_DAYS_PER_REAL_SECOND: float = 1.0

    # Lambert solver
    LAMBERT_MAXITER: int = 35
    LAMBERT_ATOL: float = 1e-5
    LAMBERT_RTOL: float = 1e-7

    # Trajectory search
    EXHAUST_VELOCITY: float = 1800.0 / AU_M
    PROXIMITY_THRESHOLD: float = 1e-5

    # Path prediction
    PREDICTION_HORIZON_DAYS: float = 365.0
    PREDICTION_MIN_STEPS: int = 50
    PREDICTION_MAX_STEPS: int = 20000
    RECOMPUTE_INTERVAL_SECONDS: float = 4 * SECONDS_PER_DAY
    RECOMPUTE_EVERY_TICKS: int = 120
    HEADING_EPSILON_DEG: float = 2.0
    SPEED_REL_EPSILON: float = 0.05
    MIN_FORCED_RECOMPUTE_TICKS: int = 60

    # Impact store
    IMPACT_HISTORY_LIMIT: int = 500

    @property
    def physics_step_seconds(self) -> float:
        """
        Simulated seconds covered by one physics tick.

        Path prediction and target propagation use this step so that they
        integrate exactly like the live simulation.

        Returns
        -------
        float
            SIM_DAYS_PER_REAL_SECOND / PHYSICS_TICKS_PER_SECOND in seconds
        """
        return (self.SIM_DAYS_PER_REAL_SECOND / self.PHYSICS_TICKS_PER_SECOND
                * SECONDS_PER_DAY)

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import deflect
        >>> deflect.config.MAX_SUBSTEP = 5.0  # Modify
        >>> deflect.config.reset()  # Back to defaults
        >>> deflect.config.MAX_SUBSTEP
        60.0
        """
        defaults = DeflectConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["DeflectConfig:"]
        lines.append("  Numerical Tolerances:")
        lines.append(f"    EQUALITY_RTOL = {self.EQUALITY_RTOL}")
        lines.append(f"    EQUALITY_ATOL = {self.EQUALITY_ATOL}")
        lines.append("  Kepler:")
        lines.append(f"    KEPLER_ITERATIONS = {self.KEPLER_ITERATIONS}")
        lines.append(f"    KEPLER_TOLERANCE = {self.KEPLER_TOLERANCE}")
        lines.append(f"    KEPLER_TOLERANCE_MAX_ITERATIONS = {self.KEPLER_TOLERANCE_MAX_ITERATIONS}")
        lines.append(f"    KEPLER_MAX_ECCENTRICITY = {self.KEPLER_MAX_ECCENTRICITY}")
        lines.append("  Integration:")
        lines.append(f"    GRAVITY_SOFTENING = {self.GRAVITY_SOFTENING}")
        lines.append(f"    MAX_SUBSTEP = {self.MAX_SUBSTEP}")
        lines.append(f"    PHYSICS_TICKS_PER_SECOND = {self.PHYSICS_TICKS_PER_SECOND}")
        lines.append(f"    SIM_DAYS_PER_REAL_SECOND = {self.SIM_DAYS_PER_REAL_SECOND}")
        lines.append("  Lambert:")
        lines.append(f"    LAMBERT_MAXITER = {self.LAMBERT_MAXITER}")
        lines.append(f"    LAMBERT_ATOL = {self.LAMBERT_ATOL}")
        lines.append(f"    LAMBERT_RTOL = {self.LAMBERT_RTOL}")
        lines.append("  Search:")
        lines.append(f"    EXHAUST_VELOCITY = {self.EXHAUST_VELOCITY}")
        lines.append(f"    PROXIMITY_THRESHOLD = {self.PROXIMITY_THRESHOLD}")
        lines.append("  Prediction:")
        lines.append(f"    PREDICTION_HORIZON_DAYS = {self.PREDICTION_HORIZON_DAYS}")
        lines.append(f"    PREDICTION_MIN_STEPS = {self.PREDICTION_MIN_STEPS}")
        lines.append(f"    PREDICTION_MAX_STEPS = {self.PREDICTION_MAX_STEPS}")
        lines.append(f"    RECOMPUTE_INTERVAL_SECONDS = {self.RECOMPUTE_INTERVAL_SECONDS}")
        lines.append(f"    RECOMPUTE_EVERY_TICKS = {self.RECOMPUTE_EVERY_TICKS}")
        lines.append(f"    HEADING_EPSILON_DEG = {self.HEADING_EPSILON_DEG}")
        lines.append(f"    SPEED_REL_EPSILON = {self.SPEED_REL_EPSILON}")
        lines.append(f"    MIN_FORCED_RECOMPUTE_TICKS = {self.MIN_FORCED_RECOMPUTE_TICKS}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append(f"    IMPACT_HISTORY_LIMIT = {self.IMPACT_HISTORY_LIMIT}")
        return "\n".join(lines)


# Global configuration instance
config = DeflectConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import deflect
    >>> with deflect.temp_config(KEPLER_ITERATIONS=20, STRICT_VALIDATION=False):
    ...     # Converge Kepler's equation harder for an eccentric comet
    ...     pos = deflect.kepler.position_at_epoch(comet_orbit, epoch)
    >>> # Original config restored here
    >>> deflect.config.KEPLER_ITERATIONS
    5

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"DeflectConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
