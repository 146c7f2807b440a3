"""
Deflect: Meteor Trajectory Prediction and Interception

A Python package for propagating Keplerian bodies, integrating free-falling
meteors, searching Lambert intercept trajectories and converting predicted
impacts into surface coordinates.
"""

import logging

from .config import config, temp_config

# Core classes
from .vector import Vector3
from .orbital_elements import OrbitalElements, OrbitalElements as OE
from .system import System, MassiveBody, BodyParams
from .freebody import BodyState, FreeBody
from .nbody import NBodyIntegrator, GravitySource
from .lambert import lambert_izzo, LambertSolution
from .search import TrajectorySearch, LaunchPlatform, TrajectoryCandidate, SearchResult
from .prediction import PathPredictor, PredictedPath, PendingImpact
from .geodesy import ImpactGeodesyConverter, ImpactMonitor, ImpactSolution, ImpactStore
from .twobody import TwoBodyPropagator
from .trajectory import Trajectory, Trajectory as Traj
from .simulation import Simulation

# Errors
from .errors import (LambertError, GeometryError, InfeasibleTimeError,
                     ConvergenceError, DegenerateVectorError)

# Default solar system
from .defaults import solar_system, default_meteor

# Package metadata
__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Define what gets imported with "from deflect import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Classes
    "Vector3",
    "OrbitalElements",
    "System",
    "MassiveBody",
    "BodyParams",
    "BodyState",
    "FreeBody",
    "NBodyIntegrator",
    "GravitySource",
    "LambertSolution",
    "TrajectorySearch",
    "LaunchPlatform",
    "TrajectoryCandidate",
    "SearchResult",
    "PathPredictor",
    "PredictedPath",
    "PendingImpact",
    "ImpactGeodesyConverter",
    "ImpactMonitor",
    "ImpactSolution",
    "ImpactStore",
    "TwoBodyPropagator",
    "Trajectory",
    "Simulation",
    # Functions
    "lambert_izzo",
    "solar_system",
    "default_meteor",
    # Abbreviations
    "OE",
    "Traj",
    # Errors
    "LambertError",
    "GeometryError",
    "InfeasibleTimeError",
    "ConvergenceError",
    "DegenerateVectorError",
]
