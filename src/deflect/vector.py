'''Immutable 3D vector value type

Vector3 is the small value object passed between the propagators, the
Lambert solver and the collision code. Bulk arithmetic on many samples is
done with numpy arrays; ``Vector3`` converts to and from them through
``__array__`` and ``from_array``.
'''

import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .config import config
from .errors import DegenerateVectorError


@dataclass(frozen=True)
class Vector3:
    """
    Immutable Cartesian triple.

    Parameters
    ----------
    x, y, z : float
        Components. Stored as Python floats.

    Examples
    --------
    >>> a = Vector3(1.0, 0.0, 0.0)
    >>> b = Vector3(0.0, 1.0, 0.0)
    >>> a.cross(b)
    Vector3(x=0.0, y=0.0, z=1.0)
    >>> (a + b).length()
    1.4142135623730951
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'x', float(self.x))
        object.__setattr__(self, 'y', float(self.y))
        object.__setattr__(self, 'z', float(self.z))

    # ========== CONSTRUCTION ==========

    @classmethod
    def zero(cls) -> 'Vector3':
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, arr) -> 'Vector3':
        """Build from any length-3 sequence or numpy array."""
        arr = np.asarray(arr, dtype=float)
        if arr.shape != (3,):
            raise ValueError(f"Expected 3 components, got shape {arr.shape}")
        return cls(arr[0], arr[1], arr[2])

    # ========== ARITHMETIC ==========

    def __add__(self, other: 'Vector3') -> 'Vector3':
        if not isinstance(other, Vector3):
            return NotImplemented
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: 'Vector3') -> 'Vector3':
        if not isinstance(other, Vector3):
            return NotImplemented
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, k: float) -> 'Vector3':
        if isinstance(k, Vector3):
            return NotImplemented
        return Vector3(self.x * k, self.y * k, self.z * k)

    __rmul__ = __mul__

    def __truediv__(self, k: float) -> 'Vector3':
        return Vector3(self.x / k, self.y / k, self.z / k)

    def __neg__(self) -> 'Vector3':
        return Vector3(-self.x, -self.y, -self.z)


    def dot(self, other: 'Vector3') -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: 'Vector3') -> 'Vector3':
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def length_squared(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def normalized(self) -> 'Vector3':
        """
        Unit vector in the same direction.

        Raises
        ------
        DegenerateVectorError
            If the vector has zero length (or is not finite), so that a
            division by zero never turns into silent NaN downstream.
        """
        n = self.length()
        if n == 0.0 or not math.isfinite(n):
            raise DegenerateVectorError(f"Cannot normalize vector of length {n}")
        return Vector3(self.x / n, self.y / n, self.z / n)

    def distance_to(self, other: 'Vector3') -> float:
        return (self - other).length()

    # ========== COMPARISON / CONVERSION ==========

    def isclose(self, other: 'Vector3', rtol=None, atol=None) -> bool:
        """Component-wise closeness using the configured tolerances."""
        rtol = config.EQUALITY_RTOL if rtol is None else rtol
        atol = config.EQUALITY_ATOL if atol is None else atol
        return bool(np.allclose(np.array(self), np.array(other), rtol=rtol, atol=atol))

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __array__(self, dtype=None, copy=None):
        return np.array([self.x, self.y, self.z], dtype=dtype if dtype is not None else float)

