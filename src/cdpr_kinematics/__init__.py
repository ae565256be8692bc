"""
cdpr_kinematics: body kinematics for cable-driven multilink robots.

This library computes the poses, velocity mappings and acceleration bias
terms of tree-structured rigid body mechanisms with arbitrary joint types,
together with the operational space Jacobians that cable and workspace
analyses are built on. Everything is implemented with JAX arrays.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .assembly import BodyAssembly
from .errors import DimensionError, KinematicsError, TopologyError, UnsupportedCapabilityError
from .kinematics import KinematicsState, compute_kinematics

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "BodyAssembly",
    "KinematicsState",
    "compute_kinematics",
    "KinematicsError",
    "TopologyError",
    "DimensionError",
    "UnsupportedCapabilityError",
]
