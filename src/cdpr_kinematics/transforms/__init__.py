"""
JAX rotation and rigid-transform primitives.

This module provides pure, JIT-compilable implementations of:
- SO(3) rotations, Euler sequences and quaternions (so3 module)
- SE(3) homogeneous transforms (se3 module)
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
