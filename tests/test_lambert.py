"""
Test suite for the Izzo Lambert solver.

Tests cover:
- Textbook reference cases (Vallado, Curtis, GMAT, Der)
- Geometry, time and revolution failure modes
- Purity of repeated calls
"""

import math

import numpy as np
import pytest

from deflect import (Vector3, lambert_izzo, LambertError, GeometryError,
                     InfeasibleTimeError, ConvergenceError)
from deflect.lambert import LambertProblem, LambertSolution

MU_EARTH = 398600.4418  # [km^3/s^2]
ABS_TOL = 1e-2
REL_TOL = 1e-3


def assert_vec(actual, expected):
    assert list(actual) == pytest.approx(expected, abs=ABS_TOL, rel=REL_TOL)


class TestReferenceCases:
    """Test solutions against published examples."""

    def test_vallado_5_7(self):
        """Vallado 5.7: short-way transfer in the equatorial plane."""
        v1, v2 = lambert_izzo(MU_EARTH, [15945.34, 0.0, 0.0],
                              [12214.83899, 10249.46731, 0.0], 76 * 60)
        assert_vec(v1, [2.058913, 2.915965, 0.0])
        assert_vec(v2, [-3.451565, 0.910315, 0.0])

    def test_curtis_5_2(self):
        """Curtis 5.2: inclined transfer."""
        v1, v2 = lambert_izzo(MU_EARTH, [5000.0, 10000.0, 2100.0],
                              [-14600.0, 2500.0, 7000.0], 3600)
        assert_vec(v1, [-5.9925, 1.9254, 3.2456])
        assert_vec(v2, [-3.3125, -4.1966, -0.38529])

    def test_gmat_orbit_1(self):
        """GMAT 2020a orbit 1: prograde transfer."""
        v1, v2 = lambert_izzo(MU_EARTH, [7100, 200, 1300],
                              [-38113.5870, 67274.1946, 29309.5799], 12000)
        assert_vec(v1, [0.0, 10.35, 5.5])
        assert_vec(v2, [-3.6379, 4.4932, 1.7735])

    def test_gmat_orbit_2_retrograde(self):
        """GMAT 2020a orbit 2: retrograde transfer."""
        v1, v2 = lambert_izzo(MU_EARTH, [7100, 200, 1300],
                              [-47332.7499, -54840.2027, -37100.17067], 12000,
                              prograde=False)
        assert_vec(v1, [0.0, -10.35, -5.5])
        assert_vec(v2, [-4.3016, -3.4314, -2.5467])

    def test_der_example_1(self):
        """Der, Astrodynamics 102, example 1: prograde and retrograde."""
        r1 = [2249.171260, 1898.007100, 5639.599193]
        r2 = [1744.495443, -4601.556054, 4043.864391]
        v1, v2 = lambert_izzo(MU_EARTH, r1, r2, 1618.5)
        assert_vec(v1, [-2.09572809, 3.92602196, -4.94516810])
        assert_vec(v2, [2.46309613, 0.84490197, 6.10890863])
        v1, v2 = lambert_izzo(MU_EARTH, r1, r2, 1618.5, prograde=False, low_path=False)
        assert_vec(v1, [1.94312182, -4.35300015, 4.54630439])
        assert_vec(v2, [-2.38885563, -1.42519647, -5.95772225])

    def test_der_example_2(self):
        """Der, Astrodynamics 102, example 2: prograde and retrograde."""
        r1 = [22592.145603, -1599.915239, -19783.950506]
        r2 = [1922.067697, 4054.157051, -8925.727465]
        v1, v2 = lambert_izzo(MU_EARTH, r1, r2, 36000, prograde=True, low_path=False)
        assert_vec(v1, [2.000652697, 0.387688615, -2.666947760])
        assert_vec(v2, [-3.79246619, -1.77707641, 6.856814395])
        v1, v2 = lambert_izzo(MU_EARTH, r1, r2, 36000, prograde=False, low_path=False)
        assert_vec(v1, [2.96616042, -1.27577231, -0.75545632])
        assert_vec(v2, [5.8437455, -0.20047673, -5.48615883])


class TestInputs:
    """Test accepted input forms."""

    def test_vector3_input(self):
        """Vector3 and array-like positions give the same answer."""
        a = lambert_izzo(MU_EARTH, Vector3(15945.34, 0, 0),
                         Vector3(12214.83899, 10249.46731, 0), 4560.0)
        b = lambert_izzo(MU_EARTH, np.array([15945.34, 0, 0]),
                         np.array([12214.83899, 10249.46731, 0]), 4560.0)
        assert a == b
        assert isinstance(a, LambertSolution)
        assert isinstance(a.v1, Vector3)

    def test_problem_object(self):
        """LambertProblem.solve matches the function."""
        problem = LambertProblem(MU_EARTH, Vector3(15945.34, 0, 0),
                                 Vector3(12214.83899, 10249.46731, 0), 4560.0)
        assert problem.solve() == lambert_izzo(problem.mu, problem.r1, problem.r2, problem.tof)

    def test_repeated_calls_identical(self):
        """No hidden state: repeated solves are bit-identical."""
        args = (MU_EARTH, [5000.0, 10000.0, 2100.0], [-14600.0, 2500.0, 7000.0], 3600)
        first = lambert_izzo(*args)
        for _ in range(3):
            assert lambert_izzo(*args) == first


class TestFailures:
    """Test rejection of degenerate and infeasible problems."""

    def test_coincident_positions(self):
        """Coincident endpoints are a geometry error."""
        with pytest.raises(GeometryError):
            lambert_izzo(MU_EARTH, [7000, 0, 0], [7000, 0, 0], 1000)

    def test_position_at_origin(self):
        """Endpoints at the central body are a geometry error."""
        with pytest.raises(GeometryError):
            lambert_izzo(MU_EARTH, [0, 0, 0], [7000, 0, 0], 1000)

    def test_collinear_positions(self):
        """A 180 degree transfer has no defined plane."""
        with pytest.raises(GeometryError):
            lambert_izzo(MU_EARTH, [7000, 0, 0], [-8000, 0, 0], 3000)

    def test_non_positive_time(self):
        """Zero and negative times of flight are infeasible."""
        with pytest.raises(InfeasibleTimeError):
            lambert_izzo(MU_EARTH, [15945.34, 0, 0], [12214.83899, 10249.46731, 0], 0.0)
        with pytest.raises(InfeasibleTimeError):
            lambert_izzo(MU_EARTH, [15945.34, 0, 0], [12214.83899, 10249.46731, 0], -10.0)

    def test_too_short_for_revolutions(self):
        """A time below the minimum for M revolutions is infeasible."""
        with pytest.raises(InfeasibleTimeError):
            lambert_izzo(MU_EARTH, [15945.34, 0, 0], [12214.83899, 10249.46731, 0],
                         4560.0, M=1)

    def test_negative_revolutions(self):
        """M must be non-negative."""
        with pytest.raises(ValueError):
            lambert_izzo(MU_EARTH, [15945.34, 0, 0], [12214.83899, 10249.46731, 0],
                         4560.0, M=-1)

    def test_non_positive_mu(self):
        """mu must be positive."""
        with pytest.raises(ValueError):
            lambert_izzo(0.0, [15945.34, 0, 0], [12214.83899, 10249.46731, 0], 4560.0)

    def test_iteration_cap(self):
        """Too few iterations is a convergence error."""
        with pytest.raises(ConvergenceError):
            lambert_izzo(MU_EARTH, [5000.0, 10000.0, 2100.0], [-14600.0, 2500.0, 7000.0],
                         3600, maxiter=1, atol=1e-15, rtol=1e-15)

    def test_error_hierarchy(self):
        """All solver failures share a base class and a builtin category."""
        assert issubclass(GeometryError, LambertError)
        assert issubclass(GeometryError, ValueError)
        assert issubclass(InfeasibleTimeError, LambertError)
        assert issubclass(ConvergenceError, LambertError)
        assert issubclass(ConvergenceError, RuntimeError)
