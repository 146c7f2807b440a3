'''Physical constants and unit conversions

Simulation units: AU for length, seconds for time, Earth masses for the
mass of gravitating bodies. Body radii are kept in km.
'''

import math

# ========== LENGTH ==========
AU_M = 1.495978707e11            # astronomical unit [m]
AU_KM = 149_597_870.7            # astronomical unit [km]
KM_TO_AU = 1.0 / AU_KM

# ========== TIME ==========
SECONDS_PER_DAY = 86400.0
SIDEREAL_DAY_SECONDS = 86164.0905

# ========== MASS / GRAVITY ==========
G_SI = 6.67430e-11               # [m^3 kg^-1 s^-2]
M_EARTH_KG = 5.9722e24
M_SUN_KG = 1.989e30

# Gravitational constant in AU^3 / (Earth mass * s^2)
G_SCALED = G_SI * M_EARTH_KG / AU_M**3

# ========== ANGLES ==========
TWO_PI = 2.0 * math.pi
DEG2RAD = math.pi / 180.0
RAD2DEG = 180.0 / math.pi

EARTH_AXIAL_TILT_DEG = 23.439281


def ms_to_aus(speed_ms: float) -> float:
    """Convert a speed in m/s to AU/s."""
    return speed_ms / AU_M
