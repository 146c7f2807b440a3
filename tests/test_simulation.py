"""
Test suite for the fixed-step simulation loop.

Tests cover:
- Tick ordering and epoch bookkeeping
- Impact prediction, publication and finalization
- Continuous thrust
- Committed interceptors against live targets
"""

import math

import pytest

from deflect import (BodyParams, BodyState, FreeBody, MassiveBody, NBodyIntegrator,
                     Simulation, System, TrajectoryCandidate, TrajectorySearch, Vector3)
from deflect.constants import KM_TO_AU

EARTH_RADIUS_KM = 6378.0
R_AU = EARTH_RADIUS_KM * KM_TO_AU
SPEED = 1e-6          # [AU/s]
START = 0.01          # [AU]
STEP = 600.0          # [s]


@pytest.fixture
def lone_earth():
    earth = MassiveBody('earth', BodyParams(mass=1.0, radius=EARTH_RADIUS_KM))
    return System([earth], central_id='earth')


def make_sim(system):
    integ = NBodyIntegrator(system.gravity_sources, max_substep=STEP)
    return Simulation(system, step=STEP, integrator=integ)


def incoming(offset_y=0.0):
    return FreeBody('meteor', BodyState(Vector3(-START, offset_y, 0.0),
                                        Vector3(SPEED, 0.0, 0.0)), mass=2e12)


def make_candidate(flight_time, target_dv):
    here = Vector3(1.0, 0.0, 0.0)
    return TrajectoryCandidate(
        flight_time=flight_time, departure_epoch=0.0,
        departure_position=here, departure_velocity=Vector3.zero(),
        platform_velocity=Vector3.zero(), arrival_position=Vector3.zero(),
        arrival_velocity=Vector3.zero(), target_velocity=Vector3.zero(),
        delta_v=Vector3.zero(), target_delta_v=target_dv,
        impactor_mass=1000.0, propellant_mass=0.0)


class TestSimulationSetup:
    """Test construction and registration."""

    def test_invalid_step(self, lone_earth):
        """The physics step must be positive."""
        with pytest.raises(ValueError):
            Simulation(lone_earth, step=0.0)

    def test_duplicate_body(self, lone_earth):
        """Free body ids are unique."""
        sim = make_sim(lone_earth)
        sim.add_free_body(incoming())
        with pytest.raises(ValueError):
            sim.add_free_body(incoming())

    def test_predictor_unknown_target(self, lone_earth):
        """A predictor needs a massive body to aim at."""
        sim = make_sim(lone_earth)
        sim.add_free_body(incoming())
        with pytest.raises(KeyError):
            sim.add_predictor('meteor', target_body='mars')

    def test_predictor_shares_step(self, lone_earth):
        """Predictors default to the simulation's integrator and step."""
        sim = make_sim(lone_earth)
        sim.add_free_body(incoming())
        predictor = sim.add_predictor('meteor', horizon_days=1.0)
        assert sim.predictor('meteor') is predictor
        assert predictor.n_steps == math.ceil(86400.0 / STEP)


class TestStepping:
    """Test epoch bookkeeping."""

    def test_run(self, lone_earth):
        """run advances a whole number of steps."""
        sim = make_sim(lone_earth)
        assert sim.run(5) == pytest.approx(5 * STEP)
        assert sim.ticks == 5

    def test_run_until(self, lone_earth):
        """run_until stops at or just past the requested epoch."""
        sim = make_sim(lone_earth)
        epoch = sim.run_until(1000.0)
        assert epoch == pytest.approx(1200.0)

    def test_body_moves(self, lone_earth):
        """Live bodies are integrated every tick."""
        sim = make_sim(lone_earth)
        meteor = sim.add_free_body(incoming(offset_y=1.0))
        sim.tick()
        assert meteor.position.x == pytest.approx(-START + SPEED * STEP, rel=1e-6)

    def test_thrust(self, lone_earth):
        """Thrust adds accel * dt on top of gravity; clearing it stops it."""
        plain, pushed = make_sim(lone_earth), make_sim(lone_earth)
        a = plain.add_free_body(incoming(offset_y=1.0))
        b = pushed.add_free_body(incoming(offset_y=1.0))
        accel = Vector3(0.0, 1e-12, 0.0)
        pushed.set_thrust('meteor', accel)
        plain.tick()
        pushed.tick()
        assert (b.velocity - a.velocity).isclose(accel * STEP, rtol=1e-6, atol=1e-20)
        assert not b.has_discontinuity
        pushed.set_thrust('meteor', None)
        plain.tick()
        pushed.tick()
        assert (b.velocity - a.velocity).isclose(accel * STEP, rtol=1e-6, atol=1e-20)


class TestImpacts:
    """Test prediction feeding the impact store."""

    def test_impact_finalized(self, lone_earth):
        """A predicted impact is published, then finalized at its epoch."""
        sim = make_sim(lone_earth)
        meteor = sim.add_free_body(incoming())
        sim.add_predictor('meteor', horizon_days=1.0)
        flags = []
        sim.store.subscribe(lambda solution, changed: flags.append(changed))
        sim.run(20)

        assert len(sim.impacts) == 1
        impact = sim.impacts[0]
        assert impact.epoch == pytest.approx((START - R_AU) / SPEED, abs=50.0)
        assert not meteor.alive
        assert len(sim.store) == 2
        latest = sim.store.latest
        assert latest.valid
        # Head-on along +x hits the -x side of a non-rotating, untilted body
        assert abs(latest.longitude) == pytest.approx(math.pi, abs=1e-6)
        assert latest.latitude == pytest.approx(0.0, abs=1e-6)
        assert latest.angle == pytest.approx(0.0, abs=1e-6)
        assert flags == [True, False]

    def test_dead_body_stops(self, lone_earth):
        """A destroyed body is neither integrated nor predicted."""
        sim = make_sim(lone_earth)
        meteor = sim.add_free_body(incoming())
        sim.add_predictor('meteor', horizon_days=1.0)
        sim.run(20)
        position = meteor.position
        sim.run(3)
        assert meteor.position == position
        assert len(sim.impacts) == 1

    def test_miss(self, lone_earth):
        """A path that passes the body publishes nothing."""
        sim = make_sim(lone_earth)
        meteor = sim.add_free_body(incoming(offset_y=3 * R_AU))
        sim.add_predictor('meteor', horizon_days=1.0)
        sim.run(20)
        assert sim.impacts == []
        assert len(sim.store) == 0
        assert meteor.alive


class TestLaunch:
    """Test interceptors flown by the simulation."""

    def test_interceptor_deflects_target(self, lone_earth):
        """The target receives the velocity change when the flight ends."""
        dv = Vector3(0.0, 1e-9, 0.0)
        plain, sim = make_sim(lone_earth), make_sim(lone_earth)
        a = plain.add_free_body(incoming(offset_y=1.0))
        b = sim.add_free_body(incoming(offset_y=1.0))
        search = TrajectorySearch(lone_earth, integrator=sim.integrator, step=STEP)
        events = []
        flight = sim.launch(search, make_candidate(2 * STEP, dv), 'meteor',
                            on_impact=events.append)
        assert sim.flights == [flight]

        plain.tick()
        sim.tick()
        assert not events
        plain.tick()
        sim.tick()
        assert len(events) == 1
        assert events[0].epoch == pytest.approx(2 * STEP)
        assert sim.flights == []
        assert b.has_discontinuity
        assert (b.velocity - a.velocity).isclose(dv, rtol=1e-6, atol=1e-20)
