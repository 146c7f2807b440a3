"""
Test suite for MassiveBody, System, default bodies and Lagrange points.

Tests cover:
- Hierarchical position composition
- System construction errors
- Gravity source selection
- Default solar system geometry
- Lagrange point approximations
"""

import math

import pytest

from deflect import (BodyParams, MassiveBody, System, OE, Vector3,
                     solar_system, default_meteor)
from deflect.constants import G_SCALED, KM_TO_AU
from deflect.defaults import EARTH, SUN, METEOR_MASS
from deflect.lagrange import lagrange_points, lagrange_point, LAGRANGE_LABELS


@pytest.fixture
def simple_system():
    sun = MassiveBody('sun', BodyParams(mass=333000.0, radius=696000.0))
    planet = MassiveBody('planet', BodyParams(mass=1.0, radius=6378.0), OE(1.0, 0.0, 365.0))
    moon = MassiveBody('moon', BodyParams(mass=0.01, radius=1737.0, attracting=False),
                       OE(0.0025, 0.0, 27.0), parent=planet)
    return System([sun, planet, moon])


class TestBodyParams:
    """Test physical parameter validation."""

    def test_mu(self):
        """mu is the scaled gravitational constant times mass."""
        assert EARTH.mu == pytest.approx(G_SCALED)

    def test_radius_au(self):
        """Radius converts from km to AU."""
        assert EARTH.radius_au == pytest.approx(6378.0 * KM_TO_AU)

    def test_negative_mass_rejected(self):
        """Negative mass raises."""
        with pytest.raises(ValueError):
            BodyParams(mass=-1.0, radius=1.0)

    def test_zero_radius_rejected(self):
        """Radius must be positive."""
        with pytest.raises(ValueError):
            BodyParams(mass=1.0, radius=0.0)

    def test_zero_rotation_period_rejected(self):
        """A zero sidereal period is meaningless."""
        with pytest.raises(ValueError):
            BodyParams(mass=1.0, radius=1.0, sidereal_period=0.0)


class TestHierarchy:
    """Test parent/orbit/wobble composition."""

    def test_body_without_orbit_at_origin(self, simple_system):
        """The central body sits at the origin."""
        assert simple_system.position_of('sun', 1.0e6) == Vector3.zero()

    def test_child_adds_parent(self, simple_system):
        """A moon's position is its parent's plus its own orbit."""
        t = 3.0e6
        planet = simple_system.position_of('planet', t)
        moon = simple_system.position_of('moon', t)
        assert (moon - planet).length() == pytest.approx(0.0025)

    def test_positions_at_matches_position_of(self, simple_system):
        """Batch evaluation agrees with single-body evaluation."""
        t = 1.2345e7
        batch = simple_system.positions_at(t)
        for body_id in simple_system.ids:
            assert batch[body_id].isclose(simple_system.position_of(body_id, t))

    def test_wobble_evaluated_with_zero_phase(self):
        """The wobble orbit ignores its own phase."""
        wobble = OE(0.01, 0.0, 10.0, phase=2.0)
        body = MassiveBody('b', BodyParams(mass=1.0, radius=1.0), wobble=wobble)
        assert body.position_at(0.0).isclose(Vector3(0.01, 0.0, 0.0), atol=1e-15)

    def test_velocity_of_circular_orbit(self, simple_system):
        """Orbital speed of a circular orbit is 2 pi a / P."""
        v = simple_system.velocity_of('planet', 1.0e6)
        assert v.length() == pytest.approx(2 * math.pi / (365.0 * 86400.0))


class TestSystemConstruction:
    """Test System validation."""

    def test_duplicate_ids(self):
        """Duplicate ids raise."""
        a = MassiveBody('x', SUN)
        b = MassiveBody('x', EARTH)
        with pytest.raises(ValueError, match="Duplicate"):
            System([a, b], central_id='x')

    def test_missing_parent(self):
        """Parents must be members."""
        parent = MassiveBody('p', SUN)
        child = MassiveBody('c', EARTH, OE(1.0, 0.0, 365.0), parent=parent)
        with pytest.raises(ValueError, match="not part of the system"):
            System([child], central_id='c')

    def test_missing_central_body(self):
        """The central id must exist."""
        with pytest.raises(ValueError):
            System([MassiveBody('p', SUN)], central_id='sun')

    def test_unknown_body_lookup(self, simple_system):
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            simple_system['pluto']

    def test_container_protocol(self, simple_system):
        """len, in and iteration over bodies."""
        assert len(simple_system) == 3
        assert 'moon' in simple_system
        assert [b.id for b in simple_system] == ['sun', 'planet', 'moon']


class TestGravitySources:
    """Test selection of attracting bodies."""

    def test_non_attracting_excluded(self, simple_system):
        """Bodies flagged non-attracting do not pull."""
        ids = [s.id for s in simple_system.gravity_sources(0.0)]
        assert ids == ['sun', 'planet']

    def test_central_mu(self, simple_system):
        """central_mu is the central body's mu."""
        assert simple_system.central_mu == pytest.approx(333000.0 * G_SCALED)
        assert simple_system.mu_of('planet') == pytest.approx(G_SCALED)


class TestDefaultSolarSystem:
    """Test the default body table."""

    def test_bodies(self):
        """All eleven bodies are present."""
        system = solar_system()
        assert set(system.ids) == {'sun', 'mercury', 'venus', 'earth-moon-bary', 'earth',
                                   'mars', 'jupiter', 'saturn', 'uranus', 'neptune', 'moon'}

    def test_sources_exclude_barycenter_and_moon(self):
        """The barycenter and the Moon do not attract free bodies."""
        ids = {s.id for s in solar_system().gravity_sources(0.0)}
        assert 'earth-moon-bary' not in ids
        assert 'moon' not in ids
        assert 'earth' in ids

    def test_earth_distance(self):
        """Earth stays about 1 AU from the Sun."""
        system = solar_system()
        for t in [0.0, 1.0e7, 2.0e7]:
            d = system.position_of('earth', t).distance_to(system.position_of('sun', t))
            assert 0.97 < d < 1.03

    def test_earth_moon_distance(self):
        """The Moon stays near 384000 km from Earth."""
        system = solar_system()
        for t in [0.0, 5.0e5, 1.0e6]:
            d = system.position_of('earth', t).distance_to(system.position_of('moon', t))
            assert 0.0024 < d < 0.0028

    def test_summary(self, capsys):
        """summary prints one line per body after the header."""
        solar_system().summary()
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0].startswith("System: 11 bodies")
        assert len(lines) == 12
        assert any("moon" in line and "non-attracting" in line for line in lines)

    def test_default_meteor(self):
        """Default meteor starts 1.4 AU out."""
        meteor = default_meteor()
        assert meteor.position.length() == pytest.approx(1.4)
        assert meteor.mass == METEOR_MASS


class TestLagrangePoints:
    """Test first-order Lagrange point positions."""

    def test_sun_earth_l1_l2(self):
        """L1/L2 sit about 0.01 AU either side of Earth."""
        pts = lagrange_points(Vector3.zero(), Vector3(1, 0, 0), 333000.0, 1.0)
        d = (1.0 / (3.0 * 333001.0)) ** (1.0 / 3.0)
        assert pts['L1'].isclose(Vector3(1 - d, 0, 0), atol=1e-12)
        assert pts['L2'].isclose(Vector3(1 + d, 0, 0), atol=1e-12)
        assert 0.009 < d < 0.011

    def test_l3_opposite(self):
        """L3 is on the far side of the primary."""
        pts = lagrange_points(Vector3.zero(), Vector3(1, 0, 0), 333000.0, 1.0)
        assert pts['L3'].x < -1.0
        assert pts['L3'].y == 0.0

    def test_equilateral_points(self):
        """L4 leads and L5 trails by 60 degrees."""
        pts = lagrange_points(Vector3.zero(), Vector3(1, 0, 0), 333000.0, 1.0)
        s = math.sqrt(3) / 2
        assert pts['L4'].isclose(Vector3(0.5, s, 0), atol=1e-12)
        assert pts['L5'].isclose(Vector3(0.5, -s, 0), atol=1e-12)

    def test_offset_primary(self):
        """Points are relative to the primary's position."""
        base = Vector3(2, 3, 0)
        pts = lagrange_points(base, base + Vector3(1, 0, 0), 333000.0, 1.0)
        assert (pts['L4'] - base).length() == pytest.approx(1.0)

    def test_coincident_bodies(self):
        """Coincident bodies collapse every point to the primary."""
        pts = lagrange_points(Vector3(1, 1, 1), Vector3(1, 1, 1), 1.0, 1.0)
        assert all(p == Vector3(1, 1, 1) for p in pts.values())

    def test_bad_masses(self):
        """Non-positive primary mass raises."""
        with pytest.raises(ValueError):
            lagrange_points(Vector3.zero(), Vector3(1, 0, 0), 0.0, 1.0)

    def test_system_lookup(self, simple_system):
        """lagrange_point resolves bodies at an epoch."""
        p = lagrange_point(simple_system, 'sun', 'planet', 'l4', 0.0)
        assert p.isclose(Vector3(0.5, math.sqrt(3) / 2, 0.0), atol=1e-12)
        assert set(LAGRANGE_LABELS) == {'L1', 'L2', 'L3', 'L4', 'L5'}

    def test_unknown_label(self, simple_system):
        """Unknown labels raise."""
        with pytest.raises(ValueError, match="Unknown Lagrange point"):
            lagrange_point(simple_system, 'sun', 'planet', 'L6', 0.0)
