'''Dense-output arc of the two-body reference propagator

Wraps heyoka's continuous output so a propagated arc can be queried at any
epoch inside its span, checked against a target point and exported.'''

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from typing import Optional, Sequence, Tuple, Union, TYPE_CHECKING

from .freebody import BodyState
from .vector import Vector3

if TYPE_CHECKING:
    from .twobody import TwoBodyPropagator

STATE_COLUMNS = ['x', 'y', 'z', 'vx', 'vy', 'vz']


class Trajectory:
    """
    Reference arc between two epochs with continuous state access.

    Attributes:
        propagator: TwoBodyPropagator that produced the arc
        t0: Start epoch
        tf: End epoch (may precede t0 for backward arcs)
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, propagator: "TwoBodyPropagator", output, t0: float, tf: float):
        self._propagator = propagator
        self._output = output  # heyoka continuous output
        self._t0 = t0
        self._tf = tf

    # ========== PROPERTY ACCESS ==========
    @property
    def propagator(self) -> "TwoBodyPropagator":
        return self._propagator

    @property
    def mu(self) -> float:
        return self._propagator.mu

    @property
    def t0(self):
        return self._t0

    @property
    def tf(self):
        return self._tf

    @property
    def duration(self):
        """Signed arc length in time."""
        return self._tf - self._t0

    @property
    def bounds(self) -> Tuple[float, float]:
        return min(self._t0, self._tf), max(self._t0, self._tf)

    # ========== QUERIES ==========
    def contains_time(self, t: float) -> bool:
        lo, hi = self.bounds
        return lo <= t <= hi

    def state_at_raw(self, t: float) -> np.ndarray:
        """Six-component state array at epoch ``t``."""
        if not self.contains_time(t):
            raise ValueError(f"Time {t} outside trajectory bounds [{self._t0}, {self._tf}]")
        return np.array(self._output(float(t)))

    def state_at(self, t: float) -> BodyState:
        raw = self.state_at_raw(t)
        return BodyState.from_arrays(raw[:3], raw[3:])

    def position_at(self, t: float) -> Vector3:
        return Vector3.from_array(self.state_at_raw(t)[:3])

    def __call__(self, t: float) -> BodyState:
        return self.state_at(t)

    def evaluate_raw(self, times: Union[float, Sequence[float], np.ndarray]) -> np.ndarray:
        """
        States at one or many epochs.

        Returns shape (6,) for a scalar epoch, (n, 6) otherwise.
        """
        if np.ndim(times) == 0:
            return self.state_at_raw(float(times))
        times = np.asarray(times, dtype=float)
        lo, hi = self.bounds
        if times.size and (times.min() < lo or times.max() > hi):
            raise ValueError(f"Times outside trajectory bounds [{self._t0}, {self._tf}]")
        return np.atleast_2d(self._output(times))

    def sample_times(self, n_points: int) -> np.ndarray:
        if n_points < 2:
            raise ValueError("n_points must be at least 2, use .state_at_raw()")
        return np.linspace(self._t0, self._tf, n_points)

    def sample_raw(self, n_points: int = 100) -> np.ndarray:
        """Uniform samples over the arc, shape (n_points, 6)."""
        return self.evaluate_raw(self.sample_times(n_points))

    # ========== MISS ANALYSIS ==========
    def distance_to(self, point: Vector3, t: float) -> float:
        """Distance from the arc at epoch ``t`` to a fixed point."""
        return self.position_at(t).distance_to(point)

    def closest_approach(self, point: Vector3, n_points: int = 1000) -> Tuple[float, float]:
        """
        Sampled closest approach of the arc to a fixed point.

        The best sample is refined once by treating its neighbouring
        segment as a straight line.

        Returns
        -------
        tuple of float
            (epoch, distance)
        """
        times = self.sample_times(n_points)
        pos = self.evaluate_raw(times)[:, :3]
        target = np.array(point)
        dist = np.linalg.norm(pos - target, axis=1)
        k = int(np.argmin(dist))
        best_t, best_d = float(times[k]), float(dist[k])
        for j in (k - 1, k + 1):
            if not 0 <= j < n_points:
                continue
            seg = pos[j] - pos[k]
            seg2 = float(seg @ seg)
            if seg2 == 0.0:
                continue
            s = min(1.0, max(0.0, float((target - pos[k]) @ seg) / seg2))
            d = float(np.linalg.norm(pos[k] + s * seg - target))
            if d < best_d:
                best_t, best_d = float(times[k] + s * (times[j] - times[k])), d
        return best_t, best_d

    # ========== EXPORT ==========
    def to_dataframe(self, times: Optional[np.ndarray] = None,
                     n_points: int = 1000) -> pd.DataFrame:
        """
        Tabulate the arc with columns time, x, y, z, vx, vy, vz.

        Uniformly sampled unless explicit ``times`` are given.
        """
        times = self.sample_times(n_points) if times is None else np.asarray(times, dtype=float)
        df = pd.DataFrame(self.evaluate_raw(times), columns=STATE_COLUMNS)
        df.insert(0, 'time', times)
        return df

    def plot_3d(self, n_points: int = 1000, central_radius: Optional[float] = None,
                target: Optional[Vector3] = None, traj_color: str = 'red',
                body_color: str = 'gold', body_opacity: float = 0.6) -> go.Figure:
        """
        Quick-look 3D figure of the arc.

        Parameters:
            n_points: Samples along the arc
            central_radius: Radius of the focus body to draw at the origin;
                None draws no body
            target: Point to mark, e.g. a predicted arrival position
            traj_color, body_color, body_opacity: Styling

        Returns:
            Plotly Figure (not shown)
        """
        pos = self.sample_raw(n_points)[:, :3]
        fig = go.Figure()
        if central_radius is not None:
            fig.add_trace(sphere_surface((0.0, 0.0, 0.0), central_radius, body_color,
                                         body_opacity, 'Central body'))
        fig.add_trace(go.Scatter3d(
            x=pos[:, 0], y=pos[:, 1], z=pos[:, 2],
            mode='lines',
            line=dict(color=traj_color, width=3),
            name='Reference arc',
        ))
        if target is not None:
            fig.add_trace(go.Scatter3d(
                x=[target.x], y=[target.y], z=[target.z],
                mode='markers',
                marker=dict(size=5, color='black'),
                name='Target',
            ))
        fig.update_layout(
            scene=dict(xaxis_title='X', yaxis_title='Y', zaxis_title='Z', aspectmode='data'),
            title='Two-Body Reference Arc',
        )
        return fig

    def __repr__(self):
        return (f"Trajectory(mu={self.mu:.6e}, t0={self._t0}, tf={self._tf}, "
                f"duration={self.duration})")


def sphere_surface(center, radius: float, color: str, opacity: float, name: str) -> go.Surface:
    """Single-colour sphere mesh for plotly figures."""
    u, v = np.meshgrid(np.linspace(0, 2 * np.pi, 30), np.linspace(0, np.pi, 20), indexing='ij')
    return go.Surface(
        x=center[0] + radius * np.cos(u) * np.sin(v),
        y=center[1] + radius * np.sin(u) * np.sin(v),
        z=center[2] + radius * np.cos(v),
        colorscale=[[0, color], [1, color]],
        showscale=False,
        opacity=opacity,
        name=name,
        hoverinfo='name',
    )
