'''N-body gravity and explicit Euler integration of free bodies

Explicit Euler is not energy conserving: a circular orbit slowly spirals
outward, with drift that grows with the number of steps. Sub-stepping at
``MAX_SUBSTEP`` keeps that drift bounded for the step sizes the simulation
loop produces.
'''

import logging
import math
from typing import Callable, List, NamedTuple, Optional, Sequence

import numpy as np

from .config import config
from .constants import G_SCALED
from .freebody import BodyState
from .vector import Vector3

logger = logging.getLogger(__name__)


class GravitySource(NamedTuple):
    """Point mass attracting free bodies."""
    mass: float         # [Earth masses]
    position: Vector3   # [AU]
    id: str = ''


SourceProvider = Callable[[float], Sequence[GravitySource]]


def acceleration_at(point: Vector3, sources: Sequence[GravitySource],
                    g: float = G_SCALED, softening: Optional[float] = None) -> Vector3:
    """
    Summed softened inverse-square acceleration at a point.

    a = -sum_k g m_k r_k / (|r_k|^2 + eps^2)^(3/2),  r_k = point - source_k

    Parameters
    ----------
    point : Vector3
        Evaluation point [AU]
    sources : sequence of GravitySource
    g : float, optional
        Gravitational constant per unit source mass [AU^3 / (mass s^2)]
    softening : float, optional
        Softening length eps [AU]. Default: config.GRAVITY_SOFTENING

    Returns
    -------
    Vector3
        Acceleration [AU/s^2]
    """
    eps2 = (config.GRAVITY_SOFTENING if softening is None else softening) ** 2
    ax = ay = az = 0.0
    for src in sources:
        if src.mass == 0.0:
            continue
        dx = point.x - src.position.x
        dy = point.y - src.position.y
        dz = point.z - src.position.z
        d2 = dx * dx + dy * dy + dz * dz + eps2
        if d2 == 0.0:
            continue
        k = -g * src.mass / (d2 * math.sqrt(d2))
        ax += k * dx
        ay += k * dy
        az += k * dz
    return Vector3(ax, ay, az)


def fixed_sources(sources: Sequence[GravitySource]) -> SourceProvider:
    """Source provider returning the same sources at every epoch."""
    frozen = tuple(sources)
    return lambda epoch: frozen


class PropagationResult(NamedTuple):
    """Outcome of :meth:`NBodyIntegrator.propagate`."""
    state: BodyState
    epoch: float
    elapsed: np.ndarray     # [s] since the start, one entry per recorded sample
    positions: np.ndarray   # (n, 3) [AU]


class NBodyIntegrator:
    """
    Explicit Euler integrator for free bodies in a field of point masses.

    Parameters
    ----------
    sources : callable
        ``sources(epoch) -> sequence of GravitySource``, e.g.
        ``System.gravity_sources`` or :func:`fixed_sources`
    g : float, optional
        Gravitational constant per unit source mass. Default: G in
        AU^3 / (Earth mass s^2)
    max_substep : float, optional
        Largest internal increment [s]. Default: config.MAX_SUBSTEP
    softening : float, optional
        Softening length [AU]. Default: config.GRAVITY_SOFTENING

    Examples
    --------
    >>> integ = NBodyIntegrator(system.gravity_sources)
    >>> state = integ.step(meteor.state, epoch, 288.0)
    """

    def __init__(self, sources: SourceProvider, g: float = G_SCALED,
                 max_substep: Optional[float] = None, softening: Optional[float] = None):
        self._sources = sources
        self._g = g
        self._max_substep = config.MAX_SUBSTEP if max_substep is None else max_substep
        self._softening = config.GRAVITY_SOFTENING if softening is None else softening
        if self._max_substep <= 0:
            raise ValueError(f"max_substep must be positive, got {self._max_substep}")

    @property
    def max_substep(self) -> float:
        return self._max_substep

    def acceleration(self, point: Vector3, epoch: float) -> Vector3:
        """Acceleration at ``point`` from the sources at ``epoch`` [AU/s^2]."""
        return acceleration_at(point, self._sources(epoch), self._g, self._softening)

    def step(self, state: BodyState, epoch: float, dt: float) -> BodyState:
        """
        Advance a state from ``epoch`` by ``dt`` seconds.

        ``dt`` is split into equal sub-steps no longer than ``max_substep``.
        Each sub-step evaluates the sources at its end epoch, then updates
        velocity and position in that order (v += a h; p += v h).

        Parameters
        ----------
        state : BodyState
        epoch : float
            Epoch of ``state`` [s]
        dt : float
            Signed step [s]; zero returns the state unchanged

        Returns
        -------
        BodyState
        """
        if dt == 0.0:
            return state
        n = max(1, math.ceil(abs(dt) / self._max_substep))
        h = dt / n
        pos, vel = state.position, state.velocity
        for k in range(n):
            acc = acceleration_at(pos, self._sources(epoch + (k + 1) * h),
                                  self._g, self._softening)
            vel = vel + acc * h
            pos = pos + vel * h
        return BodyState(pos, vel)

    def propagate(self, state: BodyState, epoch: float, duration: float,
                  step: Optional[float] = None, record: bool = False) -> PropagationResult:
        """
        Integrate for a signed duration with a fixed caller step.

        Takes ``floor(|duration| / step)`` whole steps and one partial step,
        so the final epoch is exactly ``epoch + duration``.

        Parameters
        ----------
        state : BodyState
        epoch : float
            Start epoch [s]
        duration : float
            Signed duration [s]
        step : float, optional
            Caller step [s]. Default: config.physics_step_seconds, the step
            of the live simulation
        record : bool, optional
            Record the position after every step (and the start)

        Returns
        -------
        PropagationResult
        """
        step = config.physics_step_seconds if step is None else abs(step)
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        sign = 1.0 if duration >= 0 else -1.0
        n_whole = int(abs(duration) // step)
        remainder = abs(duration) - n_whole * step

        elapsed: List[float] = [0.0] if record else []
        positions: List[Vector3] = [state.position] if record else []
        t = epoch
        for _ in range(n_whole):
            state = self.step(state, t, sign * step)
            t += sign * step
            if record:
                elapsed.append(t - epoch)
                positions.append(state.position)
        if remainder > 0:
            state = self.step(state, t, sign * remainder)
            t = epoch + duration
            if record:
                elapsed.append(duration)
                positions.append(state.position)

        return PropagationResult(
            state=state,
            epoch=t,
            elapsed=np.array(elapsed),
            positions=np.array([np.array(p) for p in positions]).reshape(-1, 3),
        )
