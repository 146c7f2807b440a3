'''Reference fixed-step simulation loop

Owns the simulated epoch and threads it explicitly through every component:
free bodies are integrated first, committed interceptors fly against the
updated targets, predictors refresh and pending impacts are finalized once
the epoch reaches them.
'''

import logging
from typing import Callable, Dict, List, Optional

from .config import config
from .freebody import FreeBody
from .geodesy import ImpactMonitor, ImpactSolution, ImpactStore
from .nbody import NBodyIntegrator
from .prediction import PathPredictor, PendingImpact
from .search import InterceptEvent, InterceptorFlight, TrajectoryCandidate, TrajectorySearch
from .system import System
from .vector import Vector3

logger = logging.getLogger(__name__)


class Simulation:
    """
    Step-driven simulation of free bodies in a system of massive bodies.

    Parameters
    ----------
    system : System
    step : float, optional
        Physics step per tick [s]. Default: config.physics_step_seconds
    epoch : float, optional
        Starting epoch [s] (default 0)
    integrator : NBodyIntegrator, optional
        Default: an integrator over ``system.gravity_sources``
    store : ImpactStore, optional
        Receives impact solutions. Default: a new store

    Examples
    --------
    >>> sim = Simulation(solar_system())
    >>> meteor = sim.add_free_body(default_meteor())
    >>> sim.add_predictor('meteor')
    >>> sim.run(300)
    """

    def __init__(self, system: System, step: Optional[float] = None, epoch: float = 0.0,
                 integrator: Optional[NBodyIntegrator] = None,
                 store: Optional[ImpactStore] = None):
        self._system = system
        self._step = config.physics_step_seconds if step is None else step
        if self._step <= 0:
            raise ValueError(f"step must be positive, got {self._step}")
        self._epoch = float(epoch)
        self._integrator = integrator or NBodyIntegrator(system.gravity_sources)
        self._store = ImpactStore() if store is None else store
        self._bodies: Dict[str, FreeBody] = {}
        self._thrusts: Dict[str, Vector3] = {}
        self._flights: List[InterceptorFlight] = []
        self._predictors: Dict[str, PathPredictor] = {}
        self._monitors: Dict[str, ImpactMonitor] = {}
        self._impacts: List[PendingImpact] = []
        self._ticks = 0

    # ========== PROPERTY ACCESS ==========
    @property
    def system(self) -> System:
        return self._system

    @property
    def epoch(self) -> float:
        return self._epoch

    @property
    def step(self) -> float:
        return self._step

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def integrator(self) -> NBodyIntegrator:
        return self._integrator

    @property
    def store(self) -> ImpactStore:
        return self._store

    @property
    def impacts(self) -> List[PendingImpact]:
        """Finalized impacts, oldest first."""
        return list(self._impacts)

    @property
    def flights(self) -> List[InterceptorFlight]:
        """Interceptors still in flight."""
        return list(self._flights)

    def body(self, body_id: str) -> FreeBody:
        return self._bodies[body_id]

    def predictor(self, body_id: str) -> PathPredictor:
        return self._predictors[body_id]

    # ========== SETUP ==========
    def add_free_body(self, body: FreeBody) -> FreeBody:
        if body.id in self._bodies:
            raise ValueError(f"Free body '{body.id}' already exists")
        self._bodies[body.id] = body
        return body

    def add_predictor(self, body_id: str, target_body: str = 'earth', **kwargs) -> PathPredictor:
        """
        Predict the path of a free body toward a massive body.

        Keyword arguments are passed to :class:`PathPredictor`; the
        simulation's integrator and step are used unless overridden.
        """
        kwargs.setdefault('integrator', self._integrator)
        kwargs.setdefault('step', self._step)
        predictor = PathPredictor(self._bodies[body_id], self._system, target_body, **kwargs)
        self._predictors[body_id] = predictor
        return predictor

    def set_thrust(self, body_id: str, accel: Optional[Vector3]):
        """Continuous acceleration applied to a free body every tick; None clears it."""
        if accel is None:
            self._thrusts.pop(body_id, None)
        else:
            self._thrusts[body_id] = accel

    def launch(self, search: TrajectorySearch, candidate: TrajectoryCandidate, target_id: str,
               on_impact: Optional[Callable[[InterceptEvent], None]] = None,
               body_id: str = 'interceptor') -> InterceptorFlight:
        """Commit a candidate against a free body of this simulation."""
        flight = search.commit(candidate, self._bodies[target_id], on_impact=on_impact,
                               body_id=body_id)
        self._flights.append(flight)
        return flight

    # ========== STEPPING ==========
    def tick(self) -> float:
        """
        Advance the simulation by one physics step.

        Returns
        -------
        float
            The new epoch [s]
        """
        t0, dt = self._epoch, self._step
        for body in self._bodies.values():
            if not body.alive:
                continue
            body.set_state(self._integrator.step(body.state, t0, dt))
            accel = self._thrusts.get(body.id)
            if accel is not None:
                body.apply_thrust(accel, dt)
        self._epoch = t0 + dt
        self._ticks += 1

        for flight in self._flights:
            flight.advance(t0, dt)
        self._flights = [f for f in self._flights if not f.done]

        for body_id, predictor in self._predictors.items():
            target = self._bodies[body_id]
            if not target.alive:
                continue
            if predictor.update(self._epoch, dt):
                self._refresh_solution(body_id, predictor)
            impact = predictor.finalize(self._epoch)
            if impact is not None:
                self._finalize(body_id, predictor, impact)
        return self._epoch

    def run(self, n_ticks: int) -> float:
        for _ in range(n_ticks):
            self.tick()
        return self._epoch

    def run_until(self, epoch: float) -> float:
        """Tick until the epoch reaches or passes ``epoch``."""
        while self._epoch < epoch:
            self.tick()
        return self._epoch

    # ========== IMPACT SOLUTIONS ==========
    def _publish_if_needed(self, previous: Optional[ImpactSolution], current: ImpactSolution):
        if current.valid or previous is None or previous.valid:
            self._store.publish(current)

    def _refresh_solution(self, body_id: str, predictor: PathPredictor):
        pending = predictor.pending
        monitor = self._monitors.get(body_id)
        if pending is not None:
            if monitor is not None:
                previous = monitor.current
                solution = monitor.update(pending.point, pending.epoch)
                if solution.valid:
                    self._publish_if_needed(previous, solution)
                    return
            # New impact, or one no longer reachable from the registered point
            monitor = ImpactMonitor(predictor.converter, pending.point,
                                    pending.relative_velocity, pending.epoch, pending.mass)
            self._monitors[body_id] = monitor
            self._store.publish(monitor.registered)
            return
        path = predictor.path
        if monitor is not None and path is not None and path.closest_point is not None:
            previous = monitor.current
            solution = monitor.update(path.closest_point, path.closest_epoch)
            self._publish_if_needed(previous, solution)

    def _finalize(self, body_id: str, predictor: PathPredictor, impact: PendingImpact):
        solution = predictor.converter.solve(impact.point, impact.relative_velocity,
                                             impact.epoch, impact.mass)
        self._store.publish(solution)
        self._impacts.append(impact)
        self._monitors.pop(body_id, None)
        self._bodies[body_id].destroy()
        logger.info("%s impacted %s at lon %.2f deg, lat %.2f deg",
                    body_id, impact.body_id, solution.longitude_deg, solution.latitude_deg)

    def __repr__(self):
        return (f"Simulation(epoch={self._epoch:.1f} s, free_bodies={len(self._bodies)}, "
                f"in_flight={len(self._flights)}, predictors={len(self._predictors)})")
