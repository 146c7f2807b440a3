'''Lagrange points of a primary/secondary pair

First-order small mass-ratio approximations, adequate for Sun-Earth and
Earth-Moon. L4 and L5 are the equilateral points obtained by rotating the
primary-to-secondary offset by +/-60 degrees about the ecliptic normal.
'''

import math
from typing import Dict

from .system import System
from .vector import Vector3

LAGRANGE_LABELS = ('L1', 'L2', 'L3', 'L4', 'L5')


def lagrange_points(primary_pos: Vector3, secondary_pos: Vector3,
                    m1: float, m2: float) -> Dict[str, Vector3]:
    """
    Inertial positions of L1..L5.

    Parameters
    ----------
    primary_pos, secondary_pos : Vector3
        Instantaneous inertial positions [AU]
    m1, m2 : float
        Primary and secondary masses (any consistent unit), m1 >> m2

    Returns
    -------
    dict
        ``{'L1': Vector3, ..., 'L5': Vector3}``. If the two positions
        coincide every point is the primary position.
    """
    if m1 <= 0 or m2 < 0:
        raise ValueError(f"Masses must satisfy m1 > 0, m2 >= 0; got {m1}, {m2}")
    mu = m2 / (m1 + m2)
    r_vec = secondary_pos - primary_pos
    R = r_vec.length()
    if R == 0.0:
        return {label: primary_pos for label in LAGRANGE_LABELS}
    r_hat = r_vec / R

    # Hill-sphere distance of L1/L2 from the secondary
    d = R * (mu / 3.0) ** (1.0 / 3.0)
    r_L3 = R * (1.0 + 5.0 * mu / 12.0)

    cos60, sin60 = 0.5, math.sqrt(3.0) / 2.0
    rx, ry, rz = r_vec
    return {
        'L1': primary_pos + r_hat * (R - d),
        'L2': primary_pos + r_hat * (R + d),
        'L3': primary_pos - r_hat * r_L3,
        'L4': primary_pos + Vector3(rx * cos60 - ry * sin60, rx * sin60 + ry * cos60, rz),
        'L5': primary_pos + Vector3(rx * cos60 + ry * sin60, -rx * sin60 + ry * cos60, rz),
    }


def lagrange_point(system: System, primary: str, secondary: str, label: str,
                   epoch: float) -> Vector3:
    """
    One Lagrange point of two bodies of a system at an epoch.

    Parameters
    ----------
    system : System
    primary, secondary : str
        Body ids
    label : str
        One of 'L1'..'L5'
    epoch : float
        Absolute simulated time [s]
    """
    label = label.upper()
    if label not in LAGRANGE_LABELS:
        raise ValueError(f"Unknown Lagrange point '{label}'. Use one of {LAGRANGE_LABELS}")
    points = lagrange_points(system.position_of(primary, epoch),
                             system.position_of(secondary, epoch),
                             system[primary].mass, system[secondary].mass)
    return points[label]
