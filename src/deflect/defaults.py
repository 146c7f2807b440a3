"""
Default Body Table and Scenario Factories
=========================================

Physical parameters and heliocentric orbital elements of the Sun, the
planets and the Moon, plus factory functions that assemble them into a
``System`` and create the default meteor.

Orbital elements are J2000 mean elements (a in AU, angles in degrees).
The Sun carries a small barycentric orbit with Jupiter's period; Earth and
the Moon orbit the Earth-Moon barycenter, which follows Earth's classical
heliocentric elements.

Examples
--------
>>> from deflect import solar_system, default_meteor
>>> system = solar_system()
>>> meteor = default_meteor()
"""
from .constants import AU_KM, EARTH_AXIAL_TILT_DEG, SECONDS_PER_DAY, SIDEREAL_DAY_SECONDS, ms_to_aus
from .freebody import BodyState, FreeBody
from .orbital_elements import OrbitalElements
from .system import BodyParams, MassiveBody, System
from .vector import Vector3

"""
Predefined bodies
Masses in Earth masses, radii in km, rotation periods in seconds
"""
SUN = BodyParams(
    mass=332981.79,
    radius=696000.0,
    sidereal_period=25.38 * SECONDS_PER_DAY,
    axial_tilt_deg=7.25,
    name='Sun'
)

MERCURY = BodyParams(
    mass=0.055243,
    radius=2439.5,
    sidereal_period=58.646 * SECONDS_PER_DAY,
    axial_tilt_deg=0.034,
    name='Mercury'
)

VENUS = BodyParams(
    mass=0.815254,
    radius=6051.8,
    sidereal_period=-243.025 * SECONDS_PER_DAY,
    axial_tilt_deg=2.64,
    name='Venus'
)

EARTH_MOON_BARYCENTER = BodyParams(
    mass=0.0,
    radius=10.0,
    attracting=False,
    name='Earth-Moon barycenter'
)

EARTH = BodyParams(
    mass=1.0,
    radius=6378.0,
    sidereal_period=SIDEREAL_DAY_SECONDS,
    axial_tilt_deg=EARTH_AXIAL_TILT_DEG,
    name='Earth'
)

MOON = BodyParams(
    mass=0.01222,
    radius=1737.4,
    sidereal_period=27.321661 * SECONDS_PER_DAY,
    axial_tilt_deg=6.68,
    attracting=False,
    name='Moon'
)

MARS = BodyParams(
    mass=0.10747,
    radius=3396.0,
    sidereal_period=1.025957 * SECONDS_PER_DAY,
    axial_tilt_deg=25.19,
    name='Mars'
)

JUPITER = BodyParams(
    mass=317.73,
    radius=71492.0,
    sidereal_period=0.41354 * SECONDS_PER_DAY,
    axial_tilt_deg=3.13,
    name='Jupiter'
)

SATURN = BodyParams(
    mass=95.085,
    radius=60268.0,
    sidereal_period=0.44401 * SECONDS_PER_DAY,
    axial_tilt_deg=26.73,
    name='Saturn'
)

URANUS = BodyParams(
    mass=14.5306,
    radius=25559.0,
    sidereal_period=-0.71833 * SECONDS_PER_DAY,
    axial_tilt_deg=82.23,
    name='Uranus'
)

NEPTUNE = BodyParams(
    mass=17.075,
    radius=24764.0,
    sidereal_period=0.67125 * SECONDS_PER_DAY,
    axial_tilt_deg=28.32,
    name='Neptune'
)

"""
Predefined orbits
"""
SUN_ORBIT = OrbitalElements(0.005, 0.0, 4332.59, 1.304, 100.474, 274.255, phase=3.14)

MERCURY_ORBIT = OrbitalElements(
    0.38709927, 0.20563593, 87.969250, 7.00497902, 48.33076593, 29.12703035)

VENUS_ORBIT = OrbitalElements(
    0.72333566, 0.00677672, 224.702122, 3.39467605, 76.67984255, 54.92262463)

EARTH_MOON_ORBIT = OrbitalElements(
    1.00000261, 0.01671123, 365.257430, 0.0, 0.0, 102.93768193)

# Earth's motion about the Earth-Moon barycenter, opposite the Moon
EARTH_WOBBLE_ORBIT = OrbitalElements(
    4670.0 / AU_KM, 0.0, 27.321661, 5.145, 125.08, (318.15 + 180.0) % 360.0)

MOON_ORBIT = OrbitalElements(
    384400.0 / AU_KM, 0.0549, 27.321661, 5.145, 125.08, 318.15)

MARS_ORBIT = OrbitalElements(
    1.52371034, 0.09339410, 686.990894, 1.84969142, 49.55953891, 286.49683150)

JUPITER_ORBIT = OrbitalElements(
    5.20288700, 0.04838624, 4334.748942, 1.30439695, 100.47390909, 274.25457074)

SATURN_ORBIT = OrbitalElements(
    9.53667594, 0.05386179, 10757.042806, 2.48599187, 113.66242448, 338.93645383)

URANUS_ORBIT = OrbitalElements(
    19.18916464, 0.04725744, 30703.045933, 0.77263783, 74.01692503, 96.93735127)

NEPTUNE_ORBIT = OrbitalElements(
    30.06992276, 0.00859048, 60227.637467, 1.77004347, 131.78422574, 273.18053653)

# Default meteor initial state: 1.4 AU out, prograde at ~4 km/s
METEOR_START = BodyState(Vector3(-1.4, 0.0, 0.0), Vector3(0.0, ms_to_aus(24130.0 / 6.0), 0.0))
METEOR_MASS = 2.0e12    # [kg]


def solar_system():
    """
    Create the default Sun / planets / Moon system.

    Bodies, in order: sun, mercury, venus, earth-moon-bary, earth, mars,
    jupiter, saturn, uranus, neptune, moon. The barycenter and the Moon do
    not attract free bodies.

    Returns
    -------
    System
        System with central body 'sun'
    """
    sun = MassiveBody('sun', SUN, SUN_ORBIT)
    bary = MassiveBody('earth-moon-bary', EARTH_MOON_BARYCENTER, EARTH_MOON_ORBIT)
    bodies = [
        sun,
        MassiveBody('mercury', MERCURY, MERCURY_ORBIT),
        MassiveBody('venus', VENUS, VENUS_ORBIT),
        bary,
        MassiveBody('earth', EARTH, EARTH_WOBBLE_ORBIT, parent=bary),
        MassiveBody('mars', MARS, MARS_ORBIT),
        MassiveBody('jupiter', JUPITER, JUPITER_ORBIT),
        MassiveBody('saturn', SATURN, SATURN_ORBIT),
        MassiveBody('uranus', URANUS, URANUS_ORBIT),
        MassiveBody('neptune', NEPTUNE, NEPTUNE_ORBIT),
        MassiveBody('moon', MOON, MOON_ORBIT, parent=bary),
    ]
    return System(bodies, central_id='sun')


def default_meteor(body_id='meteor', mass=METEOR_MASS):
    """
    Create the default meteor on its initial heliocentric state.

    Parameters
    ----------
    body_id : str, optional
    mass : float, optional
        Meteor mass [kg]

    Returns
    -------
    FreeBody
    """
    return FreeBody(body_id, METEOR_START, mass=mass)
