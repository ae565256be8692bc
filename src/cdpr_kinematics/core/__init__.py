"""Core data structures: joints, operational spaces and bodies.

Joints and operational spaces are immutable tagged dataclasses selected from
closed registries; bodies combine them with the fixed link geometry.
"""

from .body import Body, BodyState
from .joints import (
    JOINT_TYPES,
    EulerRotation,
    Joint,
    Planar,
    Prismatic,
    Revolute,
    SpatialEulerXYZ,
    SpatialQuaternion,
    SphericalQuaternion,
    Translational,
    create_joint,
)
from .operational_space import (
    OP_SPACE_TYPES,
    OperationalSpace,
    OrientationEulerXYZSpace,
    PoseEulerXYZSpace,
    PositionSpace,
    create_operational_space,
)

__all__ = [
    "Body",
    "BodyState",
    "JOINT_TYPES",
    "EulerRotation",
    "Joint",
    "Planar",
    "Prismatic",
    "Revolute",
    "SpatialEulerXYZ",
    "SpatialQuaternion",
    "SphericalQuaternion",
    "Translational",
    "create_joint",
    "OP_SPACE_TYPES",
    "OperationalSpace",
    "OrientationEulerXYZSpace",
    "PoseEulerXYZSpace",
    "PositionSpace",
    "create_operational_space",
]
