"""Exceptions raised by the body kinematics core and its loaders."""


class KinematicsError(Exception):
    """Base class for all cdpr_kinematics errors."""


class TopologyError(KinematicsError, ValueError):
    """Body numbering or parent/child references do not form a valid tree.

    Raised when a parent index is not strictly below its child's index, when
    a referenced body does not exist, or when a loaded link number does not
    match its position.
    """


class DimensionError(KinematicsError, ValueError):
    """A coordinate vector does not have the length the bodies require."""


class UnsupportedCapabilityError(KinematicsError, ValueError):
    """A joint or operational-space type tag is not recognised."""
