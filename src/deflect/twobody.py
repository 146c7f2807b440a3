'''High-accuracy two-body reference propagation
TwoBodyPropagator class definition

A Taylor-series integrator (heyoka) for point-mass motion about a fixed
center. It is the accuracy reference against which Lambert solutions and
committed intercept trajectories are checked; the live simulation itself
uses the explicit Euler integrator in ``deflect.nbody``.
'''

import logging
import warnings

import heyoka as hy
import numpy as np

from .freebody import BodyState
from .trajectory import Trajectory
from .utils import require_finite, validation_error

logger = logging.getLogger(__name__)


class TwoBodyPropagator:
    """
    Point-mass two-body propagator with dense output.

    Parameters
    ----------
    mu : float
        Gravitational parameter of the central body, in the length and time
        units of the states that will be propagated (AU^3/s^2 for the
        simulation, km^3/s^2 for textbook cases)
    compile : bool, optional
        Compile the Taylor integrator immediately (default True). Set to
        False to defer until the first propagation.

    Examples
    --------
    >>> ref = TwoBodyPropagator(398600.4418)
    >>> traj = ref.propagate([7000, 0, 0, 0, 7.546, 0], 0.0, 5400.0)
    >>> traj.state_at_raw(5400.0)
    """
    # Instance counting, each instance holds a compiled integrator
    _instance_count = 0
    _instance_warning_threshold = 10

    # ========== CONSTRUCTION ==========
    def __init__(self, mu: float, compile: bool = True):
        if not mu > 0:
            validation_error(f"Gravitational parameter must be positive, got {mu}")
        self._mu = float(mu)
        self._cached_integrator = None
        self._cached_eom = self._build_eom()

        if compile:
            self._compile_integrator()

        TwoBodyPropagator._instance_count += 1
        if TwoBodyPropagator._instance_count > TwoBodyPropagator._instance_warning_threshold:
            warnings.warn(
                f"Created {TwoBodyPropagator._instance_count} TwoBodyPropagator instances. "
                f"Each one caches a compiled Heyoka integrator, which can consume "
                f"significant memory. Consider reusing propagators when possible.",
                ResourceWarning,
                stacklevel=2
            )

    # ========== PROPAGATION ==========
    def propagate(self, initial_state, t_start: float, t_end: float) -> Trajectory:
        """
        Propagate from t_start to t_end with dense output.

        Uses Heyoka's continuous output to store Taylor series coefficients,
        enabling high-accuracy state evaluation at any time in [t_start, t_end]
        without re-integration. Backward propagation (t_end < t_start) is
        allowed.

        Parameters
        ----------
        initial_state : BodyState or array_like
            Initial state [x, y, z, vx, vy, vz]
        t_start : float
            Start time
        t_end : float
            End time

        Returns
        -------
        Trajectory

        Raises
        ------
        ValueError
            If the initial state is not finite or the integration fails
        """
        if not self.is_compiled:
            self._compile_integrator()
        ta = self._cached_integrator
        assert ta is not None, "Integrator should be compiled"

        # cast input times explicitly to floats (required by heyoka)
        t_start = float(t_start)
        t_end = float(t_end)

        if isinstance(initial_state, BodyState):
            state_array = np.concatenate([np.array(initial_state.position),
                                          np.array(initial_state.velocity)])
        else:
            state_array = np.asarray(initial_state, dtype=float)
        if state_array.shape != (6,):
            raise ValueError(f"Initial state must have 6 components, got shape {state_array.shape}")
        require_finite(state_array, "Initial state")

        # Set initial conditions
        ta.time = t_start
        ta.state[:] = state_array

        # Propagate until ending time
        traj = ta.propagate_until(t_end, c_output=True)[4]

        # Check for integration failure
        if not np.all(np.isfinite(ta.state)):
            raise ValueError(
                f"Integration failed: state became invalid during propagation.\n"
                f"Initial state: {state_array}\n"
                f"Final time: {ta.time}\n"
                f"Final state: {ta.state}\n"
                f"Likely causes:\n"
                f"  - Initial position too close to central body\n"
                f"  - Collision with central body during propagation"
            )

        if traj is None:
            raise ValueError(
                "Integration produced no continuous output (c_output is None).\n"
                "This may indicate a severe integration failure."
            )

        return Trajectory(self, traj, t_start, t_end)

    def final_state(self, initial_state, t_start: float, t_end: float) -> BodyState:
        """State at ``t_end`` of a propagation started at ``t_start``."""
        return self.propagate(initial_state, t_start, t_end).state_at(t_end)

    # ========== PROPERTY ACCESS ==========
    @property
    def mu(self) -> float:
        return self._mu

    @property
    def is_compiled(self) -> bool:
        """Check if integrator has been compiled."""
        return self._cached_integrator is not None

    @classmethod
    def get_instance_count(cls):
        return cls._instance_count

    @classmethod
    def reset_instance_count(cls):
        """Reset instance counter (useful for testing)."""
        cls._instance_count = 0

    # ========== UTILITY METHODS ==========
    def _build_eom(self):
        """Build symbolic Heyoka point-mass equations of motion."""
        x, y, z, vx, vy, vz = hy.make_vars("x", "y", "z", "vx", "vy", "vz")
        r = hy.sqrt(x**2 + y**2 + z**2)
        mu = self._mu
        return [
            (x, vx),
            (y, vy),
            (z, vz),
            (vx, -mu * x / r**3),
            (vy, -mu * y / r**3),
            (vz, -mu * z / r**3),
        ]

    def _compile_integrator(self):
        """
        Compile Heyoka integrator (expensive operation).

        This performs automatic differentiation and LLVM compilation,
        which takes a few seconds.
        """
        if self._cached_integrator is not None:
            return
        logger.info("Compiling two-body integrator (mu=%.6e)...", self._mu)
        self._cached_integrator = hy.taylor_adaptive(
            sys=self._cached_eom,
            state=[0.0] * 6,  # Dummy state
        )
        logger.info("Compilation complete")

    def compile(self):
        """
        Explicitly compile integrator if not already compiled.

        Returns
        -------
        self
            Returns self for method chaining
        """
        self._compile_integrator()
        return self

    # ========== SPECIAL METHODS ==========
    def __del__(self):
        if hasattr(self, "_mu"):
            TwoBodyPropagator._instance_count -= 1

    def __repr__(self):
        return f"TwoBodyPropagator(mu={self._mu:.6e}, compiled={self.is_compiled})"
