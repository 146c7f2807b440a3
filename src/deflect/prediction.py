'''Forward path prediction and swept collision detection

PathPredictor keeps a forward-simulated sample path for one free body and
tests every step of it against a moving target body as a continuous linear
sweep of the relative displacement. A hit found this way is held pending and
only returned by ``finalize`` once live simulated time reaches it.
'''

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from .config import config
from .constants import SECONDS_PER_DAY
from .freebody import FreeBody
from .geodesy import ImpactGeodesyConverter
from .nbody import NBodyIntegrator
from .system import System
from .trajectory import sphere_surface
from .vector import Vector3

logger = logging.getLogger(__name__)


def swept_sphere_intersection(r0: Vector3, d: Vector3, radius: float) -> Optional[float]:
    """
    Earliest fraction of a linear sweep at which a point meets a sphere.

    Solves |r0 + s d|^2 = radius^2 for s in [0, 1], where ``r0`` is the
    start of the sweep relative to the sphere center and ``d`` the relative
    displacement over the step.

    Parameters
    ----------
    r0 : Vector3
        Relative position at the start of the step
    d : Vector3
        Relative displacement over the step
    radius : float
        Sphere radius, same units as ``r0``

    Returns
    -------
    float or None
        0.0 if the sweep starts inside the sphere, the smallest root in
        [0, 1] otherwise, None if there is no contact during the step or
        the sweep has zero length
    """
    c = r0.length_squared() - radius * radius
    if c <= 0.0:
        return 0.0
    a = d.length_squared()
    if a == 0.0:
        return None
    b = 2.0 * r0.dot(d)
    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return None
    s = (-b - math.sqrt(disc)) / (2.0 * a)
    # c > 0 so both roots share a sign; the smaller is the entry
    if 0.0 <= s <= 1.0:
        return s
    return None


def closest_approach(r0: Vector3, d: Vector3) -> Tuple[float, float]:
    """
    Fraction and distance of closest approach along a linear sweep.

    Returns
    -------
    tuple of float
        (s, distance), with s clamped to [0, 1]
    """
    a = d.length_squared()
    s = 0.0 if a == 0.0 else min(1.0, max(0.0, -r0.dot(d) / a))
    return s, (r0 + d * s).length()


@dataclass(frozen=True)
class PendingImpact:
    """
    A predicted, not yet finalized, impact.

    Attributes
    ----------
    epoch : float
        Predicted epoch of contact [s]
    point : Vector3
        Contact point relative to the target body center [AU]
    relative_velocity : Vector3
        Free body velocity relative to the target body [AU/s]
    angle : float
        Angle between the incoming direction and the local vertical [rad]
    body_id : str
        Impacted body
    mass : float
        Impactor mass [kg]
    """
    epoch: float
    point: Vector3
    relative_velocity: Vector3
    angle: float
    body_id: str
    mass: float


@dataclass
class PredictedPath:
    """
    Sampled forward path of a free body.

    ``positions[k]`` is the inertial position at ``start_epoch + elapsed[k]``.
    ``closest_distance`` and ``closest_point`` describe the nearest sampled
    approach to the target body (relative to its center); they are
    diagnostics and do not affect hit detection.
    """
    start_epoch: float
    elapsed: np.ndarray
    positions: np.ndarray
    body_id: str
    closest_distance: float = math.inf
    closest_point: Optional[Vector3] = None
    closest_epoch: Optional[float] = None
    impact: Optional[PendingImpact] = None

    def __len__(self):
        return len(self.elapsed)

    @property
    def end_epoch(self) -> float:
        return self.start_epoch + (float(self.elapsed[-1]) if len(self.elapsed) else 0.0)

    def to_dataframe(self) -> pd.DataFrame:
        """Export samples with columns epoch, elapsed, x, y, z."""
        return pd.DataFrame({
            'epoch': self.start_epoch + self.elapsed,
            'elapsed': self.elapsed,
            'x': self.positions[:, 0],
            'y': self.positions[:, 1],
            'z': self.positions[:, 2],
        })

    def plot_3d(self, body_position: Optional[Vector3] = None,
                body_radius: Optional[float] = None,
                path_color: str = 'red', body_color: str = 'royalblue') -> go.Figure:
        """
        Quick-look figure of the predicted path.

        Parameters
        ----------
        body_position : Vector3, optional
            Where to draw the target body [AU]
        body_radius : float, optional
            Drawn radius [AU]; both position and radius are needed to draw
            the body

        Returns
        -------
        plotly.graph_objects.Figure
        """
        fig = go.Figure()
        if body_position is not None and body_radius is not None:
            fig.add_trace(sphere_surface(tuple(body_position), body_radius, body_color,
                                         0.6, self.body_id))
        fig.add_trace(go.Scatter3d(
            x=self.positions[:, 0],
            y=self.positions[:, 1],
            z=self.positions[:, 2],
            mode='lines',
            line=dict(color=path_color, width=3),
            name='Predicted path',
        ))
        if self.impact is not None:
            end = self.positions[-1]
            fig.add_trace(go.Scatter3d(
                x=[end[0]], y=[end[1]], z=[end[2]],
                mode='markers',
                marker=dict(size=5, color='black'),
                name='Predicted impact',
            ))
        fig.update_layout(
            scene=dict(xaxis_title='X [AU]', yaxis_title='Y [AU]', zaxis_title='Z [AU]',
                       aspectmode='data'),
            title='Predicted Path',
            showlegend=True
        )
        return fig


class PathPredictor:
    """
    Maintains a predicted path of a free body toward a target massive body.

    Recomputation is triggered by a flagged discontinuity of the free body,
    by an elapsed simulated-time interval, or by heading or speed drift
    since the last recompute beyond configurable thresholds, gated by a
    minimum number of ticks.

    Parameters
    ----------
    target : FreeBody
        Body whose path is predicted (e.g. the meteor)
    system : System
        Massive bodies providing gravity and the collision target
    body_id : str, optional
        Id of the body tested for collision (default 'earth')
    integrator : NBodyIntegrator, optional
        Default: an integrator over ``system.gravity_sources``
    step : float, optional
        Prediction step [s]. Default: config.physics_step_seconds
    horizon_days : float, optional
        Prediction horizon [days]. Default: config.PREDICTION_HORIZON_DAYS
    """

    def __init__(self, target: FreeBody, system: System, body_id: str = 'earth',
                 integrator: Optional[NBodyIntegrator] = None,
                 step: Optional[float] = None, horizon_days: Optional[float] = None,
                 min_steps: Optional[int] = None, max_steps: Optional[int] = None,
                 recompute_interval: Optional[float] = None,
                 recompute_every_ticks: Optional[int] = None,
                 heading_epsilon_deg: Optional[float] = None,
                 speed_rel_epsilon: Optional[float] = None,
                 min_forced_ticks: Optional[int] = None):
        if body_id not in system:
            raise KeyError(f"Body '{body_id}' not in system")
        self._target = target
        self._system = system
        self._body_id = body_id
        self._converter = ImpactGeodesyConverter(system[body_id].params)
        self._integrator = integrator or NBodyIntegrator(system.gravity_sources)
        self._step = config.physics_step_seconds if step is None else step
        if self._step <= 0:
            raise ValueError(f"step must be positive, got {self._step}")
        self._horizon = (config.PREDICTION_HORIZON_DAYS if horizon_days is None
                         else horizon_days) * SECONDS_PER_DAY
        self._min_steps = config.PREDICTION_MIN_STEPS if min_steps is None else min_steps
        self._max_steps = config.PREDICTION_MAX_STEPS if max_steps is None else max_steps
        self._interval = (config.RECOMPUTE_INTERVAL_SECONDS if recompute_interval is None
                          else recompute_interval)
        self._every_ticks = (config.RECOMPUTE_EVERY_TICKS if recompute_every_ticks is None
                             else recompute_every_ticks)
        self._heading_eps = math.radians(config.HEADING_EPSILON_DEG if heading_epsilon_deg is None
                                         else heading_epsilon_deg)
        self._speed_eps = config.SPEED_REL_EPSILON if speed_rel_epsilon is None else speed_rel_epsilon
        self._min_forced_ticks = (config.MIN_FORCED_RECOMPUTE_TICKS if min_forced_ticks is None
                                  else min_forced_ticks)

        self._path: Optional[PredictedPath] = None
        self._pending: Optional[PendingImpact] = None
        self._force_next = True
        self._ticks_since = 0
        self._time_since = 0.0
        self._last_velocity: Optional[Vector3] = None

    # ========== PROPERTY ACCESS ==========
    @property
    def target(self) -> FreeBody:
        return self._target

    @property
    def body_id(self) -> str:
        return self._body_id

    @property
    def converter(self) -> ImpactGeodesyConverter:
        return self._converter

    @property
    def path(self) -> Optional[PredictedPath]:
        return self._path

    @property
    def pending(self) -> Optional[PendingImpact]:
        return self._pending

    @property
    def n_steps(self) -> int:
        """Number of prediction steps per recompute."""
        n = int(self._horizon // self._step)
        return max(self._min_steps, min(self._max_steps, n))

    # ========== TRIGGERS ==========
    def mark_dirty(self):
        """Force a recompute on the next update."""
        self._force_next = True

    def _drifted(self) -> bool:
        """Heading (in the x-y plane) or relative speed drift since the last recompute."""
        if self._last_velocity is None:
            return True
        v_now = self._target.velocity
        v_then = self._last_velocity
        speed_then = v_then.length()
        if speed_then == 0.0:
            return v_now.length() > 0.0
        if abs(v_now.length() - speed_then) / speed_then > self._speed_eps:
            return True
        dh = math.atan2(v_now.y, v_now.x) - math.atan2(v_then.y, v_then.x)
        dh = (dh + math.pi) % (2.0 * math.pi) - math.pi
        return abs(dh) > self._heading_eps

    def update(self, epoch: float, dt: float) -> bool:
        """
        Account for one tick and recompute if a trigger fires.

        Parameters
        ----------
        epoch : float
            Current simulated epoch [s]
        dt : float
            Simulated time since the previous update [s]

        Returns
        -------
        bool
            Whether the path was recomputed
        """
        if self._target.consume_discontinuity():
            self._force_next = True
        self._ticks_since += 1
        self._time_since += dt

        drifted = self._drifted()
        state_changed = self._last_velocity is None or self._target.velocity != self._last_velocity
        if (self._force_next
                or self._time_since >= self._interval
                or (drifted and self._ticks_since >= self._min_forced_ticks)
                or (self._ticks_since >= self._every_ticks and state_changed)):
            self.recompute(epoch)
            return True
        return False

    # ========== PREDICTION ==========
    def recompute(self, epoch: float) -> PredictedPath:
        """
        Re-integrate the path from the free body's current state.

        Integrates step by step with the prediction step, sweeping each step
        against the moving target body, and stops after the first step that
        makes contact. A contact sets the pending impact; no contact clears
        it.

        Parameters
        ----------
        epoch : float
            Epoch of the free body's current state [s]

        Returns
        -------
        PredictedPath
        """
        self._force_next = False
        self._ticks_since = 0
        self._time_since = 0.0
        self._last_velocity = self._target.velocity

        radius = self._system[self._body_id].params.radius_au
        state = self._target.state
        t = epoch
        body_prev = self._system.position_of(self._body_id, t)

        elapsed = [0.0]
        positions = [np.array(state.position)]
        best_dist, best_point, best_epoch = math.inf, None, None
        impact = None

        for _ in range(self.n_steps):
            new_state = self._integrator.step(state, t, self._step)
            t_new = t + self._step
            body_new = self._system.position_of(self._body_id, t_new)

            r0 = state.position - body_prev
            d = (new_state.position - body_new) - r0

            s_min, dist = closest_approach(r0, d)
            if dist < best_dist:
                best_dist = dist
                best_point = r0 + d * s_min
                best_epoch = t + s_min * self._step

            s = swept_sphere_intersection(r0, d, radius)
            if s is not None:
                point = r0 + d * s
                rel_vel = d / self._step
                impact = PendingImpact(
                    epoch=t + s * self._step,
                    point=point,
                    relative_velocity=rel_vel,
                    angle=self._converter.impact_angle(point, rel_vel),
                    body_id=self._body_id,
                    mass=self._target.mass,
                )
                elapsed.append(t + s * self._step - epoch)
                positions.append(np.array(body_prev + (body_new - body_prev) * s + point))
                break

            state, t, body_prev = new_state, t_new, body_new
            elapsed.append(t - epoch)
            positions.append(np.array(state.position))

        self._pending = impact
        self._path = PredictedPath(
            start_epoch=epoch,
            elapsed=np.array(elapsed),
            positions=np.array(positions),
            body_id=self._body_id,
            closest_distance=best_dist,
            closest_point=best_point,
            closest_epoch=best_epoch,
            impact=impact,
        )
        if impact is not None:
            logger.info("Predicted impact on %s at epoch %.1f s (%.2f days ahead)",
                        self._body_id, impact.epoch, (impact.epoch - epoch) / SECONDS_PER_DAY)
        else:
            logger.debug("Path recomputed at epoch %.1f s: no impact, closest approach %.3e AU",
                         epoch, best_dist)
        return self._path

    def finalize(self, epoch: float) -> Optional[PendingImpact]:
        """
        Return the pending impact once live time has reached it.

        The pending impact is cleared when returned; before its epoch this
        returns None and leaves it pending.
        """
        impact = self._pending
        if impact is None or epoch < impact.epoch:
            return None
        self._pending = None
        logger.info("Impact on %s finalized at epoch %.1f s", impact.body_id, epoch)
        return impact
