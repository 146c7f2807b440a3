"""
Test suite for impact geodesy.

Tests cover:
- Absolute conversion on a rotating, tilted body
- Impact angle
- Incremental tracking and invalidation
- Impact store history and listeners
"""

import math

import pytest

from deflect import (BodyParams, Vector3, ImpactGeodesyConverter, ImpactMonitor,
                     ImpactSolution, ImpactStore)
from deflect.constants import AU_KM, KM_TO_AU, SIDEREAL_DAY_SECONDS
from deflect.defaults import EARTH
from deflect.geodesy import rotate_around

R_AU = EARTH.radius * KM_TO_AU


@pytest.fixture
def earth():
    return ImpactGeodesyConverter(EARTH)


@pytest.fixture
def untilted():
    return ImpactGeodesyConverter(BodyParams(mass=1.0, radius=6378.0,
                                             sidereal_period=SIDEREAL_DAY_SECONDS))


def solution(valid=True, epoch=0.0):
    return ImpactSolution(0.1, 0.2, 0.3, 1e-7, 1e12, epoch, valid)


class TestRotation:
    """Test Rodrigues rotation."""

    def test_quarter_turn(self):
        """x rotates onto y about z."""
        v = rotate_around(Vector3(1, 0, 0), Vector3(0, 0, 1), math.pi / 2)
        assert v.isclose(Vector3(0, 1, 0), atol=1e-15)

    def test_axis_fixed(self):
        """The axis is unchanged by any rotation."""
        k = Vector3(0, 0.6, 0.8)
        assert rotate_around(k, k, 1.234).isclose(k)


class TestAbsoluteConversion:
    """Test inertial to surface coordinates."""

    @pytest.mark.parametrize("epoch", [0.0, 1234.5, SIDEREAL_DAY_SECONDS / 3, 1.0e7])
    def test_north_pole(self, earth, epoch):
        """A point on the spin axis maps to +90 degrees latitude at any phase."""
        lon, lat = earth.surface_coordinates(earth.spin_axis * R_AU, epoch)
        assert lat == pytest.approx(math.pi / 2)

    @pytest.mark.parametrize("epoch", [0.0, 5000.0, 1.0e6])
    def test_south_pole(self, earth, epoch):
        """The opposite axis maps to -90 degrees latitude."""
        lon, lat = earth.surface_coordinates(-earth.spin_axis * R_AU, epoch)
        assert lat == pytest.approx(-math.pi / 2)

    def test_spin_axis_tilted(self, earth):
        """The spin axis leans toward +y by the axial tilt."""
        tilt = math.radians(EARTH.axial_tilt_deg)
        assert earth.spin_axis.isclose(Vector3(0, math.sin(tilt), math.cos(tilt)))

    def test_prime_meridian_at_epoch_zero(self, untilted):
        """With no tilt and zero phase, +x is longitude 0, latitude 0."""
        lon, lat = untilted.surface_coordinates(Vector3(R_AU, 0, 0), 0.0)
        assert lon == pytest.approx(0.0, abs=1e-12)
        assert lat == pytest.approx(0.0, abs=1e-12)

    def test_rotation_carries_surface(self, untilted):
        """A quarter sidereal day later, +y is under longitude 0."""
        t = SIDEREAL_DAY_SECONDS / 4
        lon, _ = untilted.surface_coordinates(Vector3(0, R_AU, 0), t)
        assert lon == pytest.approx(0.0, abs=1e-9)
        lon, _ = untilted.surface_coordinates(Vector3(R_AU, 0, 0), t)
        assert lon == pytest.approx(-math.pi / 2, abs=1e-9)

    def test_non_rotating_body(self):
        """A body without a sidereal period keeps its rotation phase."""
        conv = ImpactGeodesyConverter(BodyParams(mass=1.0, radius=100.0, rotation_phase=0.5))
        assert conv.spin_phase(0.0) == conv.spin_phase(1.0e9) == pytest.approx(0.5)

    def test_center_rejected(self, earth):
        """The body center has no direction."""
        with pytest.raises(ZeroDivisionError):
            earth.surface_coordinates(Vector3.zero(), 0.0)


class TestImpactAngle:
    """Test angle from the local vertical."""

    def test_vertical(self):
        """Head-on impact is 0."""
        angle = ImpactGeodesyConverter.impact_angle(Vector3(-R_AU, 0, 0), Vector3(1e-6, 0, 0))
        assert angle == pytest.approx(0.0, abs=1e-7)

    def test_grazing(self):
        """Tangent impact is 90 degrees."""
        angle = ImpactGeodesyConverter.impact_angle(Vector3(0, R_AU, 0), Vector3(1e-6, 0, 0))
        assert angle == pytest.approx(math.pi / 2)

    def test_zero_velocity_is_vertical(self):
        """No relative motion is reported as a vertical impact."""
        assert ImpactGeodesyConverter.impact_angle(Vector3(-R_AU, 0, 0), Vector3.zero()) == 0.0

    def test_solve(self, earth):
        """solve fills every field."""
        sol = earth.solve(Vector3(-R_AU, 0, 0), Vector3(1e-6, 0, 0), 100.0, 2e12)
        assert sol.valid
        assert sol.velocity == pytest.approx(1e-6)
        assert sol.velocity_kms == pytest.approx(1e-6 * AU_KM)
        assert sol.mass == 2e12
        assert sol.epoch == 100.0
        assert sol.angle_deg == pytest.approx(0.0, abs=1e-5)


class TestIncrementalConversion:
    """Test ImpactMonitor."""

    @pytest.fixture
    def geometry(self):
        point = Vector3(-1.0, 0.3, 0.2).normalized() * R_AU
        velocity = Vector3(2e-7, -1e-8, 0.0)
        return point, velocity

    def test_agrees_with_absolute_at_zero_drift(self, earth, geometry):
        """No drift reproduces the absolute solution."""
        point, velocity = geometry
        monitor = ImpactMonitor(earth, point, velocity, 5000.0, 1e12)
        refreshed = monitor.update(point, 5000.0)
        absolute = earth.solve(point, velocity, 5000.0, 1e12)
        assert refreshed.valid
        assert refreshed.longitude == pytest.approx(absolute.longitude, abs=1e-7)
        assert refreshed.latitude == pytest.approx(absolute.latitude, abs=1e-7)
        assert refreshed.angle == pytest.approx(absolute.angle, abs=1e-7)

    def test_small_drift_stays_valid(self, earth, geometry):
        """A small tangential drift moves the solution but keeps it valid."""
        point, velocity = geometry
        monitor = ImpactMonitor(earth, point, velocity, 0.0, 1e12)
        moved = monitor.update(point + Vector3(0, 0, 100.0 * KM_TO_AU), 0.0)
        assert moved.valid
        assert moved.latitude != pytest.approx(monitor.registered.latitude, abs=1e-6)

    def test_large_drift_invalidates(self, earth, geometry):
        """A drift beyond the body radius invalidates the solution."""
        point, velocity = geometry
        monitor = ImpactMonitor(earth, point, velocity, 0.0, 1e12)
        u_shift = Vector3(0, 0, 3 * R_AU)
        gone = monitor.update(point + u_shift, 10.0)
        assert not gone.valid
        assert gone.epoch == 10.0
        assert gone.longitude == monitor.registered.longitude
        assert monitor.current is gone

    def test_polar_incoming_direction(self, earth):
        """Incoming velocity along z uses the alternate up vector."""
        point = Vector3(0, 0, R_AU)
        monitor = ImpactMonitor(earth, point, Vector3(0, 0, -1e-6), 0.0, 1e12)
        assert monitor.update(point, 0.0).valid

    def test_zero_relative_velocity(self, earth):
        """A sweep with no relative motion is tracked as a radial approach."""
        point = Vector3(-R_AU, 0, 0)
        monitor = ImpactMonitor(earth, point, Vector3.zero(), 0.0, 1e12)
        assert monitor.registered.valid
        assert monitor.registered.angle == 0.0
        refreshed = monitor.update(point, 0.0)
        assert refreshed.valid
        assert refreshed.longitude == pytest.approx(monitor.registered.longitude, abs=1e-9)
        assert refreshed.angle == pytest.approx(0.0, abs=1e-9)


class TestImpactStore:
    """Test the published solution history."""

    def test_newest_first(self):
        """History is newest-first."""
        store = ImpactStore()
        store.publish(solution(epoch=1.0))
        store.publish(solution(epoch=2.0))
        assert [s.epoch for s in store.history] == [2.0, 1.0]
        assert store.latest.epoch == 2.0

    def test_limit(self):
        """History is bounded."""
        store = ImpactStore(limit=3)
        for k in range(5):
            store.publish(solution(epoch=float(k)))
        assert len(store) == 3
        assert [s.epoch for s in store.history] == [4.0, 3.0, 2.0]

    def test_default_limit(self):
        """The default limit comes from config."""
        store = ImpactStore()
        for k in range(510):
            store.publish(solution(epoch=float(k)))
        assert len(store) == 500

    def test_listener_receives_validity_change(self):
        """Listeners see whether validity changed."""
        store = ImpactStore()
        seen = []
        store.subscribe(lambda sol, changed: seen.append((sol.valid, changed)))
        store.publish(solution(valid=True))
        store.publish(solution(valid=True))
        store.publish(solution(valid=False))
        assert seen == [(True, True), (True, False), (False, True)]

    def test_unsubscribe(self):
        """The returned callable unsubscribes."""
        store = ImpactStore()
        seen = []
        unsubscribe = store.subscribe(lambda sol, changed: seen.append(sol))
        store.publish(solution())
        unsubscribe()
        store.publish(solution())
        assert len(seen) == 1

    def test_invalid_limit(self):
        """Limits below one are rejected."""
        with pytest.raises(ValueError):
            ImpactStore(limit=0)

    def test_invalidated_copy(self):
        """invalidated() keeps coordinates."""
        sol = solution()
        bad = sol.invalidated()
        assert not bad.valid
        assert bad.longitude == sol.longitude
