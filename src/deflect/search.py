'''Intercept trajectory search and committed interceptor flight

For each caller-supplied flight time the target is propagated forward with
the live integrator and step, Lambert's problem is solved from the launch
platform to the predicted target position, and the departure delta-v,
propellant and target velocity change are derived. Failed solves are dropped;
an empty result means no intercept is available.

A committed candidate flies ballistically under the central body alone, the
same single source the Lambert solve assumes. Over long flights this departs
from the full N-body motion of the target; it is kept so the committed
trajectory stays consistent with its Lambert solution.
'''

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import config
from .constants import AU_KM
from .errors import InfeasibleTimeError, LambertError
from .freebody import BodyState, FreeBody
from .lagrange import lagrange_point
from .lambert import lambert_izzo
from .nbody import GravitySource, NBodyIntegrator, fixed_sources
from .prediction import swept_sphere_intersection
from .system import System
from .twobody import TwoBodyPropagator
from .utils import Timer, validation_error
from .vector import Vector3

logger = logging.getLogger(__name__)


def propellant_mass(delta_v: float, payload_mass: float,
                    exhaust_velocity: Optional[float] = None) -> float:
    """
    Propellant needed for a delta-v (Tsiolkovsky rocket equation).

    m_prop = m_payload (exp(dv / ve) - 1)

    Parameters
    ----------
    delta_v : float
        Delta-v magnitude [AU/s]
    payload_mass : float
        Dry mass delivered [kg]
    exhaust_velocity : float, optional
        [AU/s]. Default: config.EXHAUST_VELOCITY

    Returns
    -------
    float
        Propellant mass [kg]
    """
    ve = config.EXHAUST_VELOCITY if exhaust_velocity is None else exhaust_velocity
    if ve <= 0:
        raise ValueError(f"Exhaust velocity must be positive, got {ve}")
    return payload_mass * math.expm1(abs(delta_v) / ve)


def _check_impactor_mass(impactor_mass: float):
    if not impactor_mass > 0:
        validation_error(f"Impactor mass must be positive, got {impactor_mass}")


class LaunchPlatform:
    """
    A launch site whose position is a function of epoch.

    The platform's velocity is observed, not modeled: it is the backward
    finite difference of its own positions over ``fd_step`` seconds.

    Parameters
    ----------
    position_fn : callable
        ``position_fn(epoch) -> Vector3`` [AU]
    name : str, optional
    fd_step : float, optional
        Finite-difference interval [s]. Default: config.physics_step_seconds
    """

    def __init__(self, position_fn: Callable[[float], Vector3], name: str = 'platform',
                 fd_step: Optional[float] = None):
        self._position_fn = position_fn
        self._name = name
        self._fd_step = config.physics_step_seconds if fd_step is None else fd_step
        if self._fd_step <= 0:
            raise ValueError(f"fd_step must be positive, got {self._fd_step}")

    @classmethod
    def at_body(cls, system: System, body_id: str, offset: Optional[Vector3] = None,
                fd_step: Optional[float] = None) -> 'LaunchPlatform':
        """Platform riding along with a massive body, optionally offset [AU]."""
        offset = Vector3.zero() if offset is None else offset
        return cls(lambda epoch: system.position_of(body_id, epoch) + offset,
                   name=body_id, fd_step=fd_step)

    @classmethod
    def at_lagrange_point(cls, system: System, primary: str, secondary: str, label: str,
                          fd_step: Optional[float] = None) -> 'LaunchPlatform':
        """Platform stationed at a Lagrange point of two bodies."""
        return cls(lambda epoch: lagrange_point(system, primary, secondary, label, epoch),
                   name=f"{primary}-{secondary} {label.upper()}", fd_step=fd_step)

    @property
    def name(self) -> str:
        return self._name

    def position_at(self, epoch: float) -> Vector3:
        return self._position_fn(epoch)

    def observe(self, epoch: float) -> BodyState:
        """Current position and finite-difference velocity."""
        pos = self._position_fn(epoch)
        prev = self._position_fn(epoch - self._fd_step)
        return BodyState(pos, (pos - prev) / self._fd_step)

    def __repr__(self):
        return f"LaunchPlatform(name='{self._name}', fd_step={self._fd_step})"


@dataclass(frozen=True)
class TrajectoryCandidate:
    """
    One viable intercept.

    Attributes
    ----------
    flight_time : float
        [s]
    departure_epoch : float
        [s]
    departure_position : Vector3
        Platform position at departure [AU]
    departure_velocity : Vector3
        Lambert departure velocity [AU/s]
    platform_velocity : Vector3
        Observed platform velocity [AU/s]
    arrival_position : Vector3
        Predicted target position at arrival [AU]
    arrival_velocity : Vector3
        Lambert arrival velocity [AU/s]
    target_velocity : Vector3
        Predicted target velocity at arrival [AU/s]
    delta_v : Vector3
        Departure delta-v relative to the platform [AU/s]
    target_delta_v : Vector3
        Velocity change imparted to the target on impact [AU/s]
    impactor_mass : float
        [kg]
    propellant_mass : float
        [kg]
    """
    flight_time: float
    departure_epoch: float
    departure_position: Vector3
    departure_velocity: Vector3
    platform_velocity: Vector3
    arrival_position: Vector3
    arrival_velocity: Vector3
    target_velocity: Vector3
    delta_v: Vector3
    target_delta_v: Vector3
    impactor_mass: float
    propellant_mass: float

    @property
    def arrival_epoch(self) -> float:
        return self.departure_epoch + self.flight_time

    @property
    def delta_v_magnitude(self) -> float:
        return self.delta_v.length()

    @property
    def departure_state(self) -> BodyState:
        return BodyState(self.departure_position, self.departure_velocity)


@dataclass
class SearchResult:
    """
    Outcome of a search over flight times.

    ``len(result)`` is the number of viable candidates; zero is a normal
    outcome. ``failures`` lists ``(flight_time, error type name)`` for every
    dropped candidate.
    """
    candidates: List[TrajectoryCandidate] = field(default_factory=list)
    attempted: List[float] = field(default_factory=list)
    failures: List[Tuple[float, str]] = field(default_factory=list)

    def __len__(self):
        return len(self.candidates)

    @property
    def best_index(self) -> Optional[int]:
        """Index of the candidate needing the least propellant."""
        if not self.candidates:
            return None
        return min(range(len(self.candidates)),
                   key=lambda i: self.candidates[i].propellant_mass)

    def failure_counts(self) -> Dict[str, int]:
        return dict(Counter(name for _, name in self.failures))

    def choose(self, index: Optional[int] = None) -> Optional[TrajectoryCandidate]:
        """The candidate at ``index``, or the best one; None if there are none."""
        if not self.candidates:
            return None
        return self.candidates[self.best_index if index is None else index]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per viable candidate, speeds in km/s."""
        rows = [{
            'flight_time_days': c.flight_time / 86400.0,
            'delta_v_kms': c.delta_v_magnitude * AU_KM,
            'target_delta_v_kms': c.target_delta_v.length() * AU_KM,
            'propellant_mass': c.propellant_mass,
            'arrival_epoch': c.arrival_epoch,
        } for c in self.candidates]
        return pd.DataFrame(rows, columns=['flight_time_days', 'delta_v_kms',
                                           'target_delta_v_kms', 'propellant_mass',
                                           'arrival_epoch'])


class InterceptEvent(NamedTuple):
    """Impact of a committed interceptor on its target."""
    epoch: float
    elapsed: float
    position: Vector3           # interceptor position at impact [AU]
    miss_distance: float        # [AU]
    target_delta_v: Vector3     # [AU/s]
    early: bool                 # fired by proximity before the flight time


class TrajectorySearch:
    """
    Lambert-based intercept search against a free-falling target.

    Parameters
    ----------
    system : System
        Provides the central gravitational parameter and, by default, the
        gravity sources used to predict the target
    integrator : NBodyIntegrator, optional
        Target propagation, the same integrator as the live simulation.
        Default: an integrator over ``system.gravity_sources``
    step : float, optional
        Target propagation step [s]. Default: config.physics_step_seconds
    exhaust_velocity : float, optional
        [AU/s]. Default: config.EXHAUST_VELOCITY
    mu : float, optional
        Lambert gravitational parameter [AU^3/s^2]. Default:
        ``system.central_mu``
    M, prograde, low_path, maxiter, atol, rtol
        Passed through to :func:`deflect.lambert.lambert_izzo`
    """

    def __init__(self, system: System, integrator: Optional[NBodyIntegrator] = None,
                 step: Optional[float] = None, exhaust_velocity: Optional[float] = None,
                 mu: Optional[float] = None, M: int = 0, prograde: bool = True,
                 low_path: bool = True, maxiter: Optional[int] = None,
                 atol: Optional[float] = None, rtol: Optional[float] = None):
        self._system = system
        self._integrator = integrator or NBodyIntegrator(system.gravity_sources)
        self._step = config.physics_step_seconds if step is None else step
        self._exhaust_velocity = (config.EXHAUST_VELOCITY if exhaust_velocity is None
                                  else exhaust_velocity)
        self._mu = system.central_mu if mu is None else mu
        self._lambert_options = dict(M=M, prograde=prograde, low_path=low_path,
                                     maxiter=maxiter, atol=atol, rtol=rtol)
        self._reference: Optional[TwoBodyPropagator] = None

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def step(self) -> float:
        return self._step

    # ========== SEARCH ==========
    def evaluate(self, platform_state: BodyState, target: FreeBody, flight_time: float,
                 impactor_mass: float, epoch: float) -> TrajectoryCandidate:
        """
        Build one candidate for one flight time.

        Raises
        ------
        InfeasibleTimeError, GeometryError, ConvergenceError
            When the Lambert solve fails; a non-positive flight time is
            rejected before any propagation
        ValueError
            If the target has no positive mass to take the momentum transfer
        """
        if not flight_time > 0:
            raise InfeasibleTimeError(f"Flight time must be positive, got {flight_time}")
        if not target.mass > 0:
            raise ValueError(f"Target '{target.id}' mass must be positive to receive "
                             f"a momentum transfer, got {target.mass}")
        predicted = self._integrator.propagate(target.state, epoch, flight_time,
                                               step=self._step).state
        v1, v2 = lambert_izzo(self._mu, platform_state.position, predicted.position,
                              flight_time, **self._lambert_options)
        delta_v = v1 - platform_state.velocity
        target_dv = (v2 - predicted.velocity) * (impactor_mass / target.mass)
        return TrajectoryCandidate(
            flight_time=float(flight_time),
            departure_epoch=epoch,
            departure_position=platform_state.position,
            departure_velocity=v1,
            platform_velocity=platform_state.velocity,
            arrival_position=predicted.position,
            arrival_velocity=v2,
            target_velocity=predicted.velocity,
            delta_v=delta_v,
            target_delta_v=target_dv,
            impactor_mass=impactor_mass,
            propellant_mass=propellant_mass(delta_v.length(), impactor_mass,
                                            self._exhaust_velocity),
        )

    def search(self, platform: LaunchPlatform, target: FreeBody,
               flight_times: Sequence[float], impactor_mass: float,
               epoch: float) -> SearchResult:
        """
        Evaluate every flight time and keep the viable candidates.

        Parameters
        ----------
        platform : LaunchPlatform
        target : FreeBody
        flight_times : sequence of float
            Candidate flight times [s], evaluated in order
        impactor_mass : float
            [kg]
        epoch : float
            Departure epoch [s]

        Returns
        -------
        SearchResult
        """
        _check_impactor_mass(impactor_mass)
        platform_state = platform.observe(epoch)
        result = SearchResult()
        with Timer(f"Trajectory search ({len(flight_times)} flight times)"):
            for tof in flight_times:
                result.attempted.append(float(tof))
                try:
                    candidate = self.evaluate(platform_state, target, tof, impactor_mass, epoch)
                except LambertError as err:
                    logger.debug("Flight time %.1f s dropped: %s", tof, err)
                    result.failures.append((float(tof), type(err).__name__))
                    continue
                result.candidates.append(candidate)
        logger.info("Search from %s: %d of %d flight times viable",
                    platform.name, len(result), len(result.attempted))
        return result

    def first_viable(self, platform: LaunchPlatform, target: FreeBody,
                     flight_times: Sequence[float], impactor_mass: float,
                     epoch: float) -> Optional[TrajectoryCandidate]:
        """First flight time (in order) that yields a candidate, or None."""
        _check_impactor_mass(impactor_mass)
        platform_state = platform.observe(epoch)
        for tof in flight_times:
            try:
                return self.evaluate(platform_state, target, tof, impactor_mass, epoch)
            except LambertError as err:
                logger.debug("Flight time %.1f s dropped: %s", tof, err)
        return None

    # ========== COMMIT / VERIFY ==========
    def commit(self, candidate: TrajectoryCandidate, target: FreeBody,
               on_impact: Optional[Callable[[InterceptEvent], None]] = None,
               body_id: str = 'interceptor') -> 'InterceptorFlight':
        """Spawn the ballistic interceptor for a chosen candidate."""
        logger.info("Committed %s: flight time %.2f days, delta-v %.3f km/s",
                    body_id, candidate.flight_time / 86400.0,
                    candidate.delta_v_magnitude * AU_KM)
        return InterceptorFlight(candidate, target, self._mu, on_impact=on_impact,
                                 body_id=body_id)

    def verify(self, candidate: TrajectoryCandidate) -> float:
        """
        Arrival miss distance of a candidate under the two-body reference.

        Integrates the departure state with the heyoka propagator under the
        Lambert gravitational parameter and compares the arrival position
        with the predicted target position.

        Returns
        -------
        float
            Miss distance [AU]
        """
        if self._reference is None:
            self._reference = TwoBodyPropagator(self._mu)
        arrival = self._reference.final_state(candidate.departure_state, 0.0,
                                              candidate.flight_time)
        return arrival.position.distance_to(candidate.arrival_position)


class InterceptorFlight:
    """
    Ballistic flight of a committed interceptor.

    The interceptor is integrated under a single source of parameter ``mu``
    fixed at the origin. Impact fires when the elapsed time reaches the
    flight time, or earlier when a step's linear sweep relative to the
    target passes within ``proximity``. On impact the target receives the
    candidate's velocity change, the callback runs and the interceptor is
    destroyed.

    Parameters
    ----------
    candidate : TrajectoryCandidate
    target : FreeBody
    mu : float
        [AU^3/s^2]
    on_impact : callable, optional
        ``on_impact(InterceptEvent)``
    body_id : str, optional
    max_substep : float, optional
        Default: config.MAX_SUBSTEP
    proximity : float, optional
        [AU]. Default: config.PROXIMITY_THRESHOLD
    """

    def __init__(self, candidate: TrajectoryCandidate, target: FreeBody, mu: float,
                 on_impact: Optional[Callable[[InterceptEvent], None]] = None,
                 body_id: str = 'interceptor', max_substep: Optional[float] = None,
                 proximity: Optional[float] = None):
        self._candidate = candidate
        self._target = target
        self._on_impact = on_impact
        self._proximity = config.PROXIMITY_THRESHOLD if proximity is None else proximity
        self._body = FreeBody(body_id, candidate.departure_state,
                              mass=candidate.impactor_mass, flight_time=candidate.flight_time)
        self._integrator = NBodyIntegrator(
            fixed_sources([GravitySource(1.0, Vector3.zero(), 'central')]),
            g=mu, max_substep=max_substep)
        self._elapsed = 0.0
        self._last_target = target.position
        self._trace: List[Vector3] = [self._body.position]
        self._event: Optional[InterceptEvent] = None

    @property
    def body(self) -> FreeBody:
        return self._body

    @property
    def candidate(self) -> TrajectoryCandidate:
        return self._candidate

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def done(self) -> bool:
        return self._event is not None

    @property
    def event(self) -> Optional[InterceptEvent]:
        return self._event

    def trace(self) -> np.ndarray:
        """Positions flown so far, shape (n, 3) [AU]."""
        return np.array([np.array(p) for p in self._trace]).reshape(-1, 3)

    def _proximity_fraction(self, r0: Vector3, d: Vector3) -> Optional[float]:
        # Sweep cannot come within the threshold
        if r0.length() - d.length() > self._proximity:
            return None
        return swept_sphere_intersection(r0, d, self._proximity)

    def advance(self, epoch: float, dt: float) -> Optional[InterceptEvent]:
        """
        Fly for ``dt`` seconds starting at ``epoch``.

        The step is shortened so the flight never overruns its flight time.
        The target is expected to have already been advanced to
        ``epoch + dt``; on a shortened step its position is interpolated
        linearly to ``epoch + h`` so both ends of the sweep share an epoch.

        Returns
        -------
        InterceptEvent or None
            The impact, if it happened during this step
        """
        if self._event is not None:
            return None
        h = min(dt, self._candidate.flight_time - self._elapsed)
        prev = self._body.position
        if h > 0:
            self._body.set_state(self._integrator.step(self._body.state, epoch, h))
            self._elapsed += h
        target_end = self._target.position
        if 0 < h < dt:
            target_now = self._last_target + (target_end - self._last_target) * (h / dt)
        else:
            target_now = target_end
        self._trace.append(self._body.position)

        r0 = prev - self._last_target
        d = (self._body.position - target_now) - r0
        self._last_target = target_end
        s = self._proximity_fraction(r0, d)
        if s is not None:
            return self._impact(epoch + s * h,
                                early=self._elapsed < self._candidate.flight_time,
                                miss=(r0 + d * s).length())
        if self._elapsed >= self._candidate.flight_time:
            return self._impact(epoch + h, early=False,
                                miss=self._body.position.distance_to(target_now))
        return None

    def _impact(self, epoch: float, early: bool, miss: float) -> InterceptEvent:
        dv = self._candidate.target_delta_v
        self._target.apply_impulse(dv)
        self._body.destroy()
        self._event = InterceptEvent(epoch, self._elapsed, self._body.position, miss, dv, early)
        logger.info("Interceptor %s hit %s at epoch %.1f s (miss %.3e AU)",
                    self._body.id, self._target.id, epoch, miss)
        if self._on_impact is not None:
            self._on_impact(self._event)
        return self._event
