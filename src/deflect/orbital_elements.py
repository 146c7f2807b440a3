'''Orbital trajectory handling for the deflection simulation
OrbitalElements class definition'''

import numpy as np

from .config import config
from .constants import DEG2RAD, RAD2DEG, SECONDS_PER_DAY, TWO_PI
from .utils import validation_error


class OrbitalElements:
    """
    Elliptical orbit of a massive body, as stored in the body table.

    Elements are held as a read-only array
    ``[a, e, period_days, inclination_deg, lan_deg, arg_periapsis_deg, phase]``.
    The period is carried explicitly rather than derived from a
    gravitational parameter, so hierarchical orbits (a moon around a
    barycenter) can be described with the same type as heliocentric ones.
    OrbitalElements is immutable, create a new instance to change.

    Parameters
    ----------
    a : float
        Semi-major axis [AU]
    e : float
        Eccentricity, 0 <= e < 1
    period_days : float
        Orbital period [days]
    inclination_deg : float, optional
        Inclination [deg]
    lan_deg : float, optional
        Longitude of the ascending node [deg]
    arg_periapsis_deg : float, optional
        Argument of periapsis [deg]
    phase : float, optional
        Mean anomaly at epoch zero [rad]
    validate : bool, optional
        Whether to validate elements (default True)

    Examples
    --------
    >>> mars = OrbitalElements(1.52371034, 0.09339410, 686.990894,
    ...                        1.84969142, 49.55953891, 286.49683150)
    >>> mars.period
    59356011.2...
    """
    # ========== CLASS CONSTANTS ==========
    _HASH_DECIMALS = 10     # Rounding for consistent hashing
    _COLUMNS = ('a', 'e', 'period_days', 'inclination_deg', 'lan_deg',
                'arg_periapsis_deg', 'phase')

    # ========== CONSTRUCTION ==========
    def __init__(self, a, e, period_days, inclination_deg=0.0, lan_deg=0.0,
                 arg_periapsis_deg=0.0, phase=0.0, validate=True):
        self.elements = np.array([a, e, period_days, inclination_deg, lan_deg,
                                  arg_periapsis_deg, phase], dtype=float)
        # Ensure immutability of elements array
        self.elements.flags.writeable = False
        if validate:
            self._validate()

    # ========== VALIDATION ==========
    def _validate(self):
        """Check that the elements describe a closed, finite ellipse."""
        if not np.all(np.isfinite(self.elements)):
            validation_error("Elements contain NaN or Inf")
        a, e, period_days = self.elements[:3]
        if a <= 0:
            validation_error(f"Semi-major axis must be positive, got a={a}")
        if e < 0 or e >= 1:
            validation_error(
                f"Only elliptical orbits are supported (0 <= e < 1), got e={e}")
        if period_days <= 0:
            validation_error(f"Orbital period must be positive, got {period_days} days")

    # ========== FACTORY METHODS ==========
    @classmethod
    def from_numpy(cls, array, validate=True):
        """
        Create list of OrbitalElements from NumPy array.

        Parameters
        ----------
        array : np.ndarray
            Array of shape (n_orbits, 6) or (n_orbits, 7). A missing phase
            column means phase 0.
        validate : bool, optional, defaults to True

        Returns
        -------
        list of OrbitalElements
        """
        array = np.asarray(array, dtype=float)
        if array.ndim != 2 or array.shape[1] not in (6, 7):
            raise ValueError(f"Array must have shape (n, 6) or (n, 7), got {array.shape}")
        return [cls(*row, validate=validate) for row in array]

    @classmethod
    def from_dataframe(cls, df, validate=True):
        """
        Create list of OrbitalElements from pandas DataFrame.

        Parameters
        ----------
        df : pd.DataFrame
            Columns ``a, e, period_days, inclination_deg, lan_deg,
            arg_periapsis_deg`` and optionally ``phase``
        validate : bool, optional, defaults to True

        Returns
        -------
        list of OrbitalElements
        """
        missing = set(cls._COLUMNS[:6]) - set(df.columns)
        if missing:
            raise ValueError(f"DataFrame is missing element columns: {sorted(missing)}")
        out = []
        for _, row in df.iterrows():
            phase = row['phase'] if 'phase' in df.columns else 0.0
            out.append(cls(row['a'], row['e'], row['period_days'],
                           row['inclination_deg'], row['lan_deg'],
                           row['arg_periapsis_deg'], phase, validate=validate))
        return out

    @classmethod
    def from_state(cls, position, velocity, mu, epoch=0.0):
        """
        Osculating elements of a Cartesian state.

        Uses the algorithm from Flores & Fantino, Advances in Space
        Research, v.75, pp.4910. The phase is chosen so that Kepler
        propagation of the result returns ``position`` at ``epoch``.

        Parameters
        ----------
        position : array-like
            Position [AU]
        velocity : array-like
            Velocity [AU/s]
        mu : float
            Gravitational parameter [AU^3/s^2]
        epoch : float, optional
            Epoch of the state [s]

        Raises
        ------
        ValueError
            If the state is not bound (e >= 1)
        """
        rvec = np.asarray(position, dtype=float)
        vvec = np.asarray(velocity, dtype=float)
        r = np.linalg.norm(rvec)
        # calculate angular momentum vector h = r x v
        hvec = np.cross(rvec, vvec)
        i = np.arctan2(np.sqrt(hvec[0]**2 + hvec[1]**2), hvec[2])
        # longitude of ascending node, defaults to 0 for equatorial orbits
        if np.hypot(hvec[0], hvec[1]) == 0.0:
            omega = 0.0
        else:
            omega = np.arctan2(hvec[0], -hvec[1])
        nhat = np.array([np.cos(omega), np.sin(omega), 0.0])
        bhat = np.cross(hvec / np.linalg.norm(hvec), nhat)
        # semimajor axis from energy equation
        a = ((2 / r) - (np.dot(vvec, vvec) / mu))**(-1)
        evec = np.cross(vvec, hvec) / mu - rvec / r
        e = np.linalg.norm(evec)
        if e >= 1:
            raise ValueError(f"State is not on a closed orbit (e={e:.4f})")
        if e > 0:
            w = np.arctan2(np.dot(evec, bhat), np.dot(evec, nhat))
        else:
            w = 0.0
        nu = np.arctan2(np.dot(rvec, bhat), np.dot(rvec, nhat)) - w
        # true -> eccentric -> mean anomaly
        E = 2 * np.arctan2(np.sqrt(1 - e) * np.sin(nu / 2), np.sqrt(1 + e) * np.cos(nu / 2))
        M = E - e * np.sin(E)
        period = TWO_PI * np.sqrt(a**3 / mu)
        phase = (M - TWO_PI * epoch / period) % TWO_PI
        return cls(a, e, period / SECONDS_PER_DAY, i * RAD2DEG,
                   (omega % TWO_PI) * RAD2DEG, (w % TWO_PI) * RAD2DEG, phase)

    def with_phase(self, phase):
        """Copy of these elements with a different phase offset."""
        a, e, p, i, lan, argp, _ = self.elements
        return OrbitalElements(a, e, p, i, lan, argp, phase, validate=False)

    # ========== ELEMENT ACCESS ==========
    @property
    def a(self):
        """Semi-major axis [AU]"""
        return self.elements[0]

    @property
    def e(self):
        """Eccentricity"""
        return self.elements[1]

    @property
    def period_days(self):
        return self.elements[2]

    @property
    def period(self):
        """Orbital period [s]"""
        return self.elements[2] * SECONDS_PER_DAY

    @property
    def inclination(self):
        """Inclination [rad]"""
        return self.elements[3] * DEG2RAD

    @property
    def lan(self):
        """Longitude of the ascending node [rad]"""
        return self.elements[4] * DEG2RAD

    @property
    def arg_periapsis(self):
        """Argument of periapsis [rad]"""
        return self.elements[5] * DEG2RAD

    @property
    def phase(self):
        """Mean anomaly at epoch zero [rad]"""
        return self.elements[6]

    # ========== ORBITAL PROPERTIES ==========
    def mean_motion(self):
        """
        Mean motion (n = 2 pi / P)

        Returns
        -------
        float
            Mean motion [rad/s]
        """
        return TWO_PI / self.period

    def is_low_eccentricity(self):
        """Whether the fixed-count Kepler solve is considered accurate."""
        return self.e <= config.KEPLER_MAX_ECCENTRICITY

    def dcm(self):
        """
        Direction cosine matrix from the orbital plane to the inertial frame.

        DCM = R3(RAAN) @ R1(i) @ R3(w), periapsis on the +x axis of the
        orbital plane.
        """
        omega, i, w = self.lan, self.inclination, self.arg_periapsis
        # rotation about z-axis by RAAN
        R3_omega = np.array([
            [np.cos(omega), -np.sin(omega), 0],
            [np.sin(omega),  np.cos(omega), 0],
            [0,              0,              1]
        ])
        # rotation about x-axis by inclination
        R1_i = np.array([
            [1,  0,             0            ],
            [0,  np.cos(i),    -np.sin(i)    ],
            [0,  np.sin(i),     np.cos(i)    ]
        ])
        # rotation about z-axis by argument of periapsis
        R3_w = np.array([
            [np.cos(w), -np.sin(w), 0],
            [np.sin(w),  np.cos(w), 0],
            [0,          0,          1]
        ])
        return R3_omega @ R1_i @ R3_w

    # ========== UTILITY METHODS ==========
    def to_dict(self):
        return dict(zip(self._COLUMNS, self.elements.tolist()))

    @staticmethod
    def to_dataframe(orbits, index=None):
        """
        Tabulate a collection of OrbitalElements.

        Parameters
        ----------
        orbits : list of OrbitalElements
        index : list, optional
            Row labels, e.g. body ids

        Returns
        -------
        pd.DataFrame
        """
        import pandas as pd
        data = np.array([o.elements for o in orbits]).reshape(-1, 7)
        return pd.DataFrame(data, columns=list(OrbitalElements._COLUMNS), index=index)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return "OrbitalElements({})".format(
            ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items()))

    def __str__(self):
        a, e, p, i, lan, argp, phase = self.elements
        return (f"Orbital Elements:\n"
                f"  a      = {a:14.8f} AU\n"
                f"  e      = {e:14.8f}\n"
                f"  period = {p:14.6f} days\n"
                f"  i      = {i:14.6f}°\n"
                f"  RAAN   = {lan:14.6f}°\n"
                f"  ω      = {argp:14.6f}°\n"
                f"  phase  = {phase:14.6f} rad")

    def __eq__(self, other):
        # Check equality with tolerance
        if not isinstance(other, OrbitalElements):
            return False
        return np.allclose(self.elements, other.elements,
                           rtol=config.EQUALITY_RTOL, atol=config.EQUALITY_ATOL)

    def __hash__(self):
        # Hash with rounding to match equality
        rounded = tuple(round(x, self._HASH_DECIMALS) for x in self.elements)
        return hash(rounded)
