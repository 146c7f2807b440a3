'''Free-flying bodies (meteors, interceptors) and explicit state updates

A FreeBody has exactly one writer per tick: either the integrator
(``set_state``) or an external effect (``apply_impulse``/``apply_thrust``).
All updates build a new immutable ``BodyState`` instead of mutating
vectors in place, so a solver holding an earlier state never observes a
half-applied change.
'''

import logging
from dataclasses import dataclass, replace
from typing import Optional

from .constants import AU_M
from .utils import validation_error
from .vector import Vector3

logger = logging.getLogger(__name__)

# Continuous push of a directed-energy source [AU/s^2]
DEFAULT_THRUST = 0.0002 / AU_M


@dataclass(frozen=True)
class BodyState:
    """
    Immutable inertial state of a free body.

    Attributes
    ----------
    position : Vector3
        Position [AU]
    velocity : Vector3
        Velocity [AU/s]
    """
    position: Vector3
    velocity: Vector3

    @classmethod
    def from_arrays(cls, position, velocity) -> 'BodyState':
        return cls(Vector3.from_array(position), Vector3.from_array(velocity))

    def speed(self) -> float:
        return self.velocity.length()


def apply_impulse(state: BodyState, dv: Vector3) -> BodyState:
    """Instantaneous velocity change; position is unchanged."""
    return replace(state, velocity=state.velocity + dv)


def apply_thrust(state: BodyState, accel: Vector3, dt: float) -> BodyState:
    """Velocity change of a constant acceleration held for ``dt`` seconds."""
    return replace(state, velocity=state.velocity + accel * dt)


def thrust_toward(source: Vector3, target: Vector3, magnitude: float = DEFAULT_THRUST) -> Vector3:
    """
    Acceleration pushing ``target`` directly away from ``source``.

    Parameters
    ----------
    source : Vector3
        Position of the emitter [AU]
    target : Vector3
        Position of the pushed body [AU]
    magnitude : float, optional
        Acceleration magnitude [AU/s^2], default 0.0002 m/s^2

    Returns
    -------
    Vector3
        Acceleration [AU/s^2]. Zero if source and target coincide.
    """
    offset = target - source
    if offset.length() == 0.0:
        return Vector3.zero()
    return offset.normalized() * magnitude


class FreeBody:
    """
    Meteor or projectile integrated by the simulation loop.

    Parameters
    ----------
    body_id : str
        Unique identifier
    state : BodyState
        Initial inertial state
    mass : float
        Mass [kg]
    flight_time : float, optional
        Fixed time-of-flight budget [s], for committed interceptors
    """

    def __init__(self, body_id: str, state: BodyState, mass: float = 1.0,
                 flight_time: Optional[float] = None):
        if mass <= 0:
            validation_error(f"Mass must be positive, got {mass}")
        if flight_time is not None and flight_time <= 0:
            validation_error(f"Flight time must be positive, got {flight_time}")
        self._id = body_id
        self._state = state
        self._mass = mass
        self._flight_time = flight_time
        self._discontinuity = False
        self._alive = True

    # ========== STATE ACCESS ==========
    @property
    def id(self) -> str:
        return self._id

    @property
    def state(self) -> BodyState:
        return self._state

    @property
    def position(self) -> Vector3:
        return self._state.position

    @property
    def velocity(self) -> Vector3:
        return self._state.velocity

    @property
    def mass(self) -> float:
        """Mass [kg]"""
        return self._mass

    @property
    def flight_time(self) -> Optional[float]:
        return self._flight_time

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def has_discontinuity(self) -> bool:
        """Whether velocity changed abruptly since the flag was last consumed."""
        return self._discontinuity

    # ========== SINGLE-WRITER UPDATES ==========
    def set_state(self, state: BodyState):
        """Replace the state after integration."""
        self._state = state

    def apply_impulse(self, dv: Vector3) -> BodyState:
        """
        Apply an instantaneous velocity change and flag the discontinuity.

        Returns
        -------
        BodyState
            The new state
        """
        self._state = apply_impulse(self._state, dv)
        self._discontinuity = True
        logger.info("Impulse of %.3e AU/s applied to %s", dv.length(), self._id)
        return self._state

    def apply_thrust(self, accel: Vector3, dt: float) -> BodyState:
        """Apply a continuous acceleration for one tick; no discontinuity flag."""
        self._state = apply_thrust(self._state, accel, dt)
        return self._state

    def consume_discontinuity(self) -> bool:
        """Return and clear the discontinuity flag."""
        flagged = self._discontinuity
        self._discontinuity = False
        return flagged

    def destroy(self):
        self._alive = False

    def __repr__(self):
        p, v = self.position, self.velocity
        return (f"FreeBody(id='{self._id}', position=({p.x:.6f}, {p.y:.6f}, {p.z:.6f}) AU, "
                f"speed={v.length():.3e} AU/s, mass={self._mass:.3e} kg)")
