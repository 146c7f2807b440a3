"""
Validation and timing helpers shared across the Deflect package.
"""

import logging
from time import perf_counter
import warnings
from typing import Type

import numpy as np

from .config import config

logger = logging.getLogger(__name__)


class Timer:
    """
    Context manager that measures wall-clock time.

    The elapsed time is kept on ``elapsed`` and, when ``verbose``, logged
    at INFO level under ``name``.

    Examples
    --------
    >>> with Timer("Trajectory search"):
    ...     result = search.search(platform, meteor, times, 1000.0, epoch)

    >>> with Timer(verbose=False) as t:
    ...     sim.run(300)
    >>> t.elapsed
    """
    def __init__(self, name: str = "Operation", verbose: bool = True):
        self.name = name
        self.verbose = verbose
        self.elapsed = None

    def __enter__(self):
        self._start = perf_counter()
        return self

    def __exit__(self, *exc):
        self.elapsed = perf_counter() - self._start
        if self.verbose:
            logger.info("%s: %.6f s", self.name, self.elapsed)


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Raise ``error_class(message)``, or warn if validation is relaxed.

    Under ``config.STRICT_VALIDATION = False`` the message is issued as a
    UserWarning and execution continues.

    Examples
    --------
    >>> validation_error("Eccentricity must be in [0, 1)")   # ValueError
    >>> with temp_config(STRICT_VALIDATION=False):
    ...     validation_error("Eccentricity must be in [0, 1)")  # UserWarning
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    warnings.warn(message, UserWarning, stacklevel=2)


def require_finite(values, label: str):
    """Raise ValueError if any component of ``values`` is NaN or infinite."""
    arr = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{label} contains NaN or Inf values: {arr}")
    return arr
