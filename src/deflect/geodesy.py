'''Impact geodesy on a rotating, axially tilted sphere

Converts an inertial impact point (relative to the body center) and epoch
into surface longitude/latitude and impact angle, tracks how a registered
solution drifts as predictions are refreshed, and keeps a bounded history of
published solutions for external consumers.

Frames: the inertial frame is the ecliptic frame of the simulation. The
body's spin axis is the inertial +z axis tilted by the axial tilt about +x,
k = (0, sin(tilt), cos(tilt)). Longitude is measured in the body-fixed
equatorial frame, whose x axis lies along the ascending node of the equator
at spin phase zero.
'''

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from .config import config
from .constants import AU_KM, DEG2RAD, RAD2DEG, TWO_PI
from .errors import DegenerateVectorError
from .system import BodyParams
from .vector import Vector3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImpactSolution:
    """
    Surface coordinates of a predicted impact.

    An invalid solution is a first-class state: the impact point has
    drifted off the body but the object (and its last coordinates) remain.

    Attributes
    ----------
    longitude, latitude : float
        Body-fixed coordinates [rad]; longitude in (-pi, pi]
    angle : float
        Angle between the incoming direction and the local vertical [rad];
        0 is a vertical impact
    velocity : float
        Relative impact speed [AU/s]
    mass : float
        Impactor mass [kg]
    epoch : float
        Epoch at which the solution is valid [s]
    valid : bool
        False once the impact point has drifted off the surface
    """
    longitude: float
    latitude: float
    angle: float
    velocity: float
    mass: float
    epoch: float
    valid: bool = True

    @property
    def longitude_deg(self) -> float:
        return self.longitude * RAD2DEG

    @property
    def latitude_deg(self) -> float:
        return self.latitude * RAD2DEG

    @property
    def angle_deg(self) -> float:
        return self.angle * RAD2DEG

    @property
    def velocity_kms(self) -> float:
        return self.velocity * AU_KM

    def invalidated(self) -> 'ImpactSolution':
        return replace(self, valid=False)


def rotate_around(v: Vector3, k: Vector3, angle: float) -> Vector3:
    """Rotate ``v`` about the unit axis ``k`` by ``angle`` (Rodrigues' formula)."""
    c = math.cos(angle)
    s = math.sin(angle)
    return v * c + k.cross(v) * s + k * (k.dot(v) * (1.0 - c))


class ImpactGeodesyConverter:
    """
    Absolute conversion from inertial impact geometry to surface coordinates.

    Parameters
    ----------
    body : BodyParams
        Radius, sidereal period, axial tilt and rotation phase of the
        impacted body. A body without a sidereal period does not rotate.
    """

    def __init__(self, body: BodyParams):
        self._body = body
        tilt = body.axial_tilt_deg * DEG2RAD
        self._tilt = tilt
        self._cos_tilt = math.cos(tilt)
        self._sin_tilt = math.sin(tilt)
        self._spin_axis = Vector3(0.0, self._sin_tilt, self._cos_tilt)

    @property
    def body(self) -> BodyParams:
        return self._body

    @property
    def radius(self) -> float:
        """Body radius [km]"""
        return self._body.radius

    @property
    def spin_axis(self) -> Vector3:
        """Unit spin axis in the inertial frame."""
        return self._spin_axis

    def spin_phase(self, epoch: float) -> float:
        """Rotation angle of the body about its spin axis at ``epoch`` [rad]."""
        period = self._body.sidereal_period
        if period is None:
            return self._body.rotation_phase % TWO_PI
        return (TWO_PI * epoch / period + self._body.rotation_phase) % TWO_PI

    def to_body_fixed(self, point: Vector3, epoch: float) -> Vector3:
        """
        Express an inertial body-centered vector in the body-fixed frame.

        Removes the spin phase about the inertial spin axis, then rotates
        the tilted equator onto the x-y plane.
        """
        p = rotate_around(point, self._spin_axis, -self.spin_phase(epoch))
        c, s = self._cos_tilt, self._sin_tilt
        return Vector3(p.x, p.y * c - p.z * s, p.y * s + p.z * c)

    def surface_coordinates(self, point: Vector3, epoch: float):
        """
        Longitude and latitude of the direction of ``point``.

        Parameters
        ----------
        point : Vector3
            Inertial vector from the body center (any length > 0)
        epoch : float
            Absolute simulated time [s]

        Returns
        -------
        tuple of float
            (longitude, latitude) [rad]

        Raises
        ------
        DegenerateVectorError
            If ``point`` is the body center
        """
        b = self.to_body_fixed(point, epoch)
        r = b.length()
        if r == 0.0:
            raise DegenerateVectorError("Impact point coincides with the body center")
        latitude = math.asin(max(-1.0, min(1.0, b.z / r)))
        # At the poles longitude is undefined; report 0
        if b.x == 0.0 and b.y == 0.0:
            return 0.0, latitude
        return math.atan2(b.y, b.x), latitude

    @staticmethod
    def impact_angle(point: Vector3, relative_velocity: Vector3) -> float:
        """
        Angle between the incoming direction and the local vertical [rad].

        0 for a vertical impact, pi/2 for a grazing one. A zero relative
        velocity is treated as vertical.
        """
        if relative_velocity.length() == 0.0:
            return 0.0
        n = point.normalized()
        v = relative_velocity.normalized()
        return math.acos(max(-1.0, min(1.0, -n.dot(v))))

    def solve(self, point: Vector3, relative_velocity: Vector3, epoch: float,
              mass: float) -> ImpactSolution:
        """
        Full impact solution for an inertial impact point.

        Parameters
        ----------
        point : Vector3
            Impact point relative to the body center [AU]
        relative_velocity : Vector3
            Impactor velocity relative to the body [AU/s]
        epoch : float
            Epoch of impact [s]
        mass : float
            Impactor mass [kg]
        """
        lon, lat = self.surface_coordinates(point, epoch)
        return ImpactSolution(
            longitude=lon,
            latitude=lat,
            angle=self.impact_angle(point, relative_velocity),
            velocity=relative_velocity.length(),
            mass=mass,
            epoch=epoch,
        )


class ImpactMonitor:
    """
    Incremental tracking of a registered impact as predictions drift.

    A tangent basis is built from the incoming velocity direction w:
    u = normalize(up x w), v = w x u, with up = +z unless w is nearly
    parallel to it. The registered point fixes base offsets on (u, v);
    later predictions shift those offsets by the drift of the predicted
    point. Once the shifted offset leaves the disc of the body radius the
    impactor misses and the solution becomes invalid.

    Parameters
    ----------
    converter : ImpactGeodesyConverter
    point : Vector3
        Registered impact point relative to the body center [AU]
    relative_velocity : Vector3
        Incoming velocity relative to the body [AU/s]
    epoch : float
        Epoch of the registered impact [s]
    mass : float
        Impactor mass [kg]
    """

    def __init__(self, converter: ImpactGeodesyConverter, point: Vector3,
                 relative_velocity: Vector3, epoch: float, mass: float):
        self._converter = converter
        self._point = point
        self._velocity = relative_velocity
        self._mass = mass
        # Without relative motion the approach is taken as radial inbound
        if relative_velocity.length() == 0.0:
            w = -point.normalized()
        else:
            w = relative_velocity.normalized()
        up = Vector3(1.0, 0.0, 0.0) if abs(w.z) > 0.9 else Vector3(0.0, 0.0, 1.0)
        self._w = w
        self._u = up.cross(w).normalized()
        self._v = w.cross(self._u).normalized()
        self._x0 = point.dot(self._u) * AU_KM
        self._y0 = point.dot(self._v) * AU_KM
        self._registered = converter.solve(point, relative_velocity, epoch, mass)
        self._current = self._registered

    @property
    def registered(self) -> ImpactSolution:
        return self._registered

    @property
    def current(self) -> ImpactSolution:
        return self._current

    def shifts(self, new_point: Vector3):
        """Offsets (x, y) [km] of a new predicted point on the tangent basis."""
        delta = new_point - self._point
        return (self._x0 + delta.dot(self._u) * AU_KM,
                self._y0 + delta.dot(self._v) * AU_KM)

    def update(self, new_point: Vector3, epoch: float) -> ImpactSolution:
        """
        Refresh the solution for a drifted impact point.

        Parameters
        ----------
        new_point : Vector3
            Newly predicted impact (or closest-approach) point relative to
            the body center [AU]
        epoch : float
            Epoch of the new prediction [s]

        Returns
        -------
        ImpactSolution
            Invalid (with the last coordinates) if the offset exceeds the
            body radius
        """
        R = self._converter.radius
        x, y = self.shifts(new_point)
        r2 = x * x + y * y
        if r2 > R * R:
            if self._current.valid:
                logger.info("Impact solution drifted off the surface (offset %.1f km)", math.sqrt(r2))
            self._current = replace(self._current, epoch=epoch, valid=False)
            return self._current
        depth = math.sqrt(max(0.0, R * R - r2))
        r_hat = self._u * (x / R) + self._v * (y / R) - self._w * (depth / R)
        lon, lat = self._converter.surface_coordinates(r_hat, epoch)
        self._current = ImpactSolution(
            longitude=lon,
            latitude=lat,
            angle=math.asin(min(1.0, math.sqrt(r2) / R)),
            velocity=self._velocity.length(),
            mass=self._mass,
            epoch=epoch,
        )
        return self._current


Listener = Callable[[ImpactSolution, bool], None]


class ImpactStore:
    """
    In-memory, newest-first history of published impact solutions.

    Listeners are called on every publish with the solution and whether its
    validity differs from the previously published one.

    Parameters
    ----------
    limit : int, optional
        Maximum number of retained solutions.
        Default: config.IMPACT_HISTORY_LIMIT
    """

    def __init__(self, limit: Optional[int] = None):
        self._limit = config.IMPACT_HISTORY_LIMIT if limit is None else limit
        if self._limit < 1:
            raise ValueError(f"limit must be at least 1, got {self._limit}")
        self._history: List[ImpactSolution] = []
        self._listeners: List[Listener] = []

    def publish(self, solution: ImpactSolution) -> bool:
        """
        Record a solution and notify listeners.

        Returns
        -------
        bool
            Whether validity changed relative to the previous solution (the
            first publish always counts as a change)
        """
        previous = self.latest
        changed = previous is None or previous.valid != solution.valid
        self._history.insert(0, solution)
        del self._history[self._limit:]
        logger.debug("Published impact solution (valid=%s, changed=%s)", solution.valid, changed)
        for listener in list(self._listeners):
            listener(solution, changed)
        return changed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def latest(self) -> Optional[ImpactSolution]:
        return self._history[0] if self._history else None

    @property
    def history(self) -> List[ImpactSolution]:
        """Newest-first copy of the retained solutions."""
        return list(self._history)

    def clear(self):
        self._history.clear()

    def __len__(self):
        return len(self._history)
