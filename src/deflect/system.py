'''Orbital trajectory handling for the deflection simulation
MassiveBody and System class definitions'''

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .constants import G_SCALED, KM_TO_AU
from .kepler import position_at_epoch, velocity_at_epoch
from .nbody import GravitySource
from .orbital_elements import OrbitalElements
from .utils import validation_error
from .vector import Vector3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BodyParams:
    """
    Immutable physical parameters of a massive body.

    Attributes
    ----------
    mass : float
        Mass [Earth masses]; zero for fictitious points (barycenters)
    radius : float
        Mean radius [km]
    sidereal_period : float, optional
        Rotation period relative to inertial space [s]
    axial_tilt_deg : float, optional
        Obliquity of the spin axis to the ecliptic [deg]
    rotation_phase : float, optional
        Spin angle at epoch zero [rad]
    attracting : bool, optional
        Whether the body pulls on free bodies (default True)
    name : str, optional
    """
    mass: float
    radius: float
    sidereal_period: Optional[float] = None
    axial_tilt_deg: float = 0.0
    rotation_phase: float = 0.0
    attracting: bool = True
    name: Optional[str] = None

    def __post_init__(self):
        # Validate parameters
        if self.mass < 0:
            raise ValueError(f"Mass must be non-negative, got {self.mass}")
        if self.radius <= 0:
            raise ValueError(f"Radius must be positive, got {self.radius}")
        if self.sidereal_period is not None and self.sidereal_period == 0:
            raise ValueError("Sidereal period cannot be zero")

    @property
    def mu(self) -> float:
        """Gravitational parameter [AU^3/s^2]"""
        return G_SCALED * self.mass

    @property
    def radius_au(self) -> float:
        return self.radius * KM_TO_AU


class MassiveBody:
    """
    A body whose position is an analytic function of epoch.

    The inertial position is the sum of the parent's position, the body's
    own Keplerian orbit and an optional secondary "wobble" orbit, which is
    always evaluated with phase zero. A body without an orbit sits at its
    parent (or at the origin).

    Parameters
    ----------
    body_id : str
    params : BodyParams
    orbit : OrbitalElements, optional
    parent : MassiveBody, optional
    wobble : OrbitalElements, optional
    """

    def __init__(self, body_id: str, params: BodyParams,
                 orbit: Optional[OrbitalElements] = None,
                 parent: Optional['MassiveBody'] = None,
                 wobble: Optional[OrbitalElements] = None):
        self._id = body_id
        self._params = params
        self._orbit = orbit
        self._parent = parent
        self._wobble = wobble
        ancestor = parent
        while ancestor is not None:
            if ancestor is self:
                raise ValueError(f"Body '{body_id}' is its own ancestor")
            ancestor = ancestor.parent

    # ========== EVALUATION ==========
    def position_at(self, epoch: float) -> Vector3:
        """Inertial position at an absolute epoch [AU]."""
        pos = self._parent.position_at(epoch) if self._parent is not None else Vector3.zero()
        if self._orbit is not None:
            pos = pos + position_at_epoch(self._orbit, epoch)
        if self._wobble is not None:
            pos = pos + position_at_epoch(self._wobble, epoch, phase=0.0)
        return pos

    def velocity_at(self, epoch: float) -> Vector3:
        """Inertial velocity at an absolute epoch [AU/s]."""
        vel = self._parent.velocity_at(epoch) if self._parent is not None else Vector3.zero()
        if self._orbit is not None:
            vel = vel + velocity_at_epoch(self._orbit, epoch)
        if self._wobble is not None:
            vel = vel + velocity_at_epoch(self._wobble, epoch, phase=0.0)
        return vel

    # ========== PROPERTY ACCESS ==========
    @property
    def id(self) -> str:
        return self._id

    @property
    def params(self) -> BodyParams:
        return self._params

    @property
    def orbit(self) -> Optional[OrbitalElements]:
        return self._orbit

    @property
    def parent(self) -> Optional['MassiveBody']:
        return self._parent

    @property
    def wobble(self) -> Optional[OrbitalElements]:
        return self._wobble

    @property
    def mass(self) -> float:
        return self._params.mass

    @property
    def radius(self) -> float:
        """Mean radius [km]"""
        return self._params.radius

    @property
    def mu(self) -> float:
        return self._params.mu

    def __repr__(self):
        parent = f", parent='{self._parent.id}'" if self._parent is not None else ""
        return f"MassiveBody(id='{self._id}', mass={self.mass:.6g} M_E{parent})"


class System:
    """
    Immutable collection of massive bodies, supplied once per session.

    All evaluation methods take the epoch explicitly so every component of
    one tick sees the same planetary configuration.

    Parameters
    ----------
    bodies : iterable of MassiveBody
        Bodies with unique ids. Parents must be members of the system.
    central_id : str, optional
        Id of the dominant attractor used for Lambert transfers and
        committed interceptor flight (default 'sun')

    Examples
    --------
    >>> from deflect import solar_system
    >>> system = solar_system()
    >>> system.position_of('earth', 86400.0)
    Vector3(x=..., y=..., z=...)
    """

    def __init__(self, bodies: Iterable[MassiveBody], central_id: str = 'sun'):
        self._bodies: Dict[str, MassiveBody] = {}
        for body in bodies:
            if body.id in self._bodies:
                raise ValueError(f"Duplicate body id '{body.id}'")
            self._bodies[body.id] = body
        for body in self._bodies.values():
            if body.parent is not None and self._bodies.get(body.parent.id) is not body.parent:
                raise ValueError(
                    f"Parent '{body.parent.id}' of '{body.id}' is not part of the system")
        if central_id not in self._bodies:
            validation_error(f"Central body '{central_id}' not found in system")
        self._central_id = central_id
        logger.debug("System created with %d bodies", len(self._bodies))

    # ========== EVALUATION ==========
    def position_of(self, body_id: str, epoch: float) -> Vector3:
        return self[body_id].position_at(epoch)

    def velocity_of(self, body_id: str, epoch: float) -> Vector3:
        return self[body_id].velocity_at(epoch)

    def positions_at(self, epoch: float) -> Dict[str, Vector3]:
        """
        Positions of all bodies at one epoch.

        Each body's own orbit is evaluated once; parents are reused rather
        than recomputed down the hierarchy.
        """
        out: Dict[str, Vector3] = {}

        def resolve(body: MassiveBody) -> Vector3:
            if body.id in out:
                return out[body.id]
            pos = resolve(body.parent) if body.parent is not None else Vector3.zero()
            if body.orbit is not None:
                pos = pos + position_at_epoch(body.orbit, epoch)
            if body.wobble is not None:
                pos = pos + position_at_epoch(body.wobble, epoch, phase=0.0)
            out[body.id] = pos
            return pos

        for body in self._bodies.values():
            resolve(body)
        return out

    def gravity_sources(self, epoch: float) -> List[GravitySource]:
        """Attracting bodies with non-zero mass, positioned at ``epoch``."""
        positions = self.positions_at(epoch)
        return [GravitySource(b.mass, positions[b.id], b.id)
                for b in self._bodies.values()
                if b.params.attracting and b.mass > 0]

    def mu_of(self, body_id: str) -> float:
        """Gravitational parameter of one body [AU^3/s^2]"""
        return self[body_id].mu

    # ========== PROPERTY ACCESS ==========
    @property
    def central_id(self) -> str:
        return self._central_id

    @property
    def central_body(self) -> MassiveBody:
        return self._bodies[self._central_id]

    @property
    def central_mu(self) -> float:
        return self.central_body.mu

    @property
    def ids(self) -> List[str]:
        return list(self._bodies)

    def summary(self):
        """Print a table of the bodies in the system."""
        print(f"System: {len(self._bodies)} bodies, central body '{self._central_id}'")
        for body in self._bodies.values():
            parent = body.parent.id if body.parent is not None else '-'
            orbit = f"a = {body.orbit.a:.6f} AU" if body.orbit is not None else "fixed"
            flag = "" if body.params.attracting and body.mass > 0 else " (non-attracting)"
            print(f"  {body.id:<16} m = {body.mass:12.6g} M_E  R = {body.radius:10.1f} km  "
                  f"parent = {parent:<16} {orbit}{flag}")

    # ========== SPECIAL METHODS ==========
    def __getitem__(self, body_id: str) -> MassiveBody:
        try:
            return self._bodies[body_id]
        except KeyError:
            raise KeyError(f"Unknown body '{body_id}'. Known bodies: {self.ids}") from None

    def __contains__(self, body_id) -> bool:
        return body_id in self._bodies

    def __iter__(self):
        return iter(self._bodies.values())

    def __len__(self):
        return len(self._bodies)

    def __repr__(self):
        return f"System(bodies={self.ids}, central='{self._central_id}')"
