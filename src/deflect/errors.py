'''Exception types raised by the trajectory solvers

Lambert failures are local to one candidate: TrajectorySearch catches
``LambertError`` and moves on. Near-zero separations in the gravity sum are
absorbed by softening and never surface as exceptions.
'''


class LambertError(Exception):
    """Base class for failures of the boundary-value solver."""


class GeometryError(LambertError, ValueError):
    """
    Degenerate transfer geometry.

    Raised for coincident or collinear endpoints, an endpoint at the
    attracting center, or a shape parameter with |lambda| >= 1.
    """


class InfeasibleTimeError(LambertError, ValueError):
    """
    Requested time of flight cannot be met.

    Raised when the time of flight is not positive or is shorter than the
    minimum time achievable with the requested number of revolutions.
    """


class ConvergenceError(LambertError, RuntimeError):
    """Root polishing hit the iteration cap without converging."""

    def __init__(self, message, iterations=None):
        super().__init__(message)
        self.iterations = iterations


class DegenerateVectorError(ZeroDivisionError):
    """Normalization of a zero-length vector."""
