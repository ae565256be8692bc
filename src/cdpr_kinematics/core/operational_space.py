"""Operational (task) space maps attached to bodies.

An operational space is declared on one link at a fixed ``offset`` from the
link's joint (the body's ``r_y``). Given the absolute operational point and
the link rotation it extracts a task-space coordinate vector, and it supplies
the constant 0/1 matrix selecting which of the six spatial velocity
components (linear xyz, angular xyz) that vector tracks.
"""

from types import MappingProxyType
from typing import Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..errors import UnsupportedCapabilityError
from ..transforms import so3


@struct.dataclass
class OperationalSpace:
    """Base class of the operational space maps.

    Attributes:
        link: 1-based index of the body the space is attached to.
        offset: Operational point relative to the link joint, in the link frame.
        axes: Active axes, any ordered subset of ``"xyz"``.
        name: Optional label.
    """
    link: int = struct.field(pytree_node=False, default=1)
    offset: Tuple[float, float, float] = struct.field(pytree_node=False, default=(0.0, 0.0, 0.0))
    axes: str = struct.field(pytree_node=False, default="xyz")
    name: str = struct.field(pytree_node=False, default="")

    def __post_init__(self):
        if not self.axes or any(a not in so3.AXES for a in self.axes) or len(set(self.axes)) != len(self.axes):
            raise UnsupportedCapabilityError(f"Unsupported operational space axes '{self.axes}'")
        if len(self.offset) != 3:
            raise ValueError(f"Operational space offset must have 3 entries, got {len(self.offset)}")

    @property
    def op_type(self) -> str:
        raise NotImplementedError

    @property
    def num_op_dofs(self) -> int:
        return self.selection_matrix().shape[0]

    @property
    def r_y(self) -> Array:
        return jnp.asarray(self.offset, dtype=float)

    @property
    def _indices(self) -> Tuple[int, ...]:
        return tuple(so3.AXES[a] for a in self.axes)

    def extract(self, point: Array, rotation: Array) -> Array:
        """Task coordinates from the operational point and link rotation.

        Args:
            point: (3,) absolute operational point expressed in the link frame
            rotation: (3, 3) link-to-world rotation

        Returns:
            (num_op_dofs,) task-space coordinates
        """
        raise NotImplementedError

    def selection_matrix(self) -> Array:
        raise NotImplementedError


@struct.dataclass
class PositionSpace(OperationalSpace):
    """World position of the operational point (``position``)."""

    @property
    def op_type(self) -> str:
        return "position"

    def extract(self, point: Array, rotation: Array) -> Array:
        return (rotation @ point)[jnp.array(self._indices)]

    def selection_matrix(self) -> Array:
        return jnp.eye(6)[jnp.array(self._indices)]


@struct.dataclass
class OrientationEulerXYZSpace(OperationalSpace):
    """Intrinsic XYZ Euler angles of the link (``orientation_euler_xyz``).

    The matching rows of ``J`` give the world angular velocity of the link,
    not the Euler angle rates.
    """

    @property
    def op_type(self) -> str:
        return "orientation_euler_xyz"

    def extract(self, point: Array, rotation: Array) -> Array:
        return so3.to_euler_xyz(rotation)[jnp.array(self._indices)]

    def selection_matrix(self) -> Array:
        return jnp.eye(6)[jnp.array(self._indices) + 3]


@struct.dataclass
class PoseEulerXYZSpace(OperationalSpace):
    """Position followed by XYZ Euler angles (``pose_euler_xyz``)."""

    @property
    def op_type(self) -> str:
        return "pose_euler_xyz"

    def extract(self, point: Array, rotation: Array) -> Array:
        idx = jnp.array(self._indices)
        return jnp.concatenate([(rotation @ point)[idx], so3.to_euler_xyz(rotation)[idx]])

    def selection_matrix(self) -> Array:
        idx = jnp.array(self._indices)
        return jnp.eye(6)[jnp.concatenate([idx, idx + 3])]


OP_SPACE_TYPES = MappingProxyType({
    "position": PositionSpace,
    "orientation_euler_xyz": OrientationEulerXYZSpace,
    "pose_euler_xyz": PoseEulerXYZSpace,
})


def create_operational_space(op_type: str, link: int, offset=(0.0, 0.0, 0.0), axes: str = "xyz", name: str = "") -> OperationalSpace:
    """Build an operational space from its type tag.

    Raises:
        UnsupportedCapabilityError: if the tag is unknown.
    """
    try:
        factory = OP_SPACE_TYPES[op_type]
    except KeyError:
        raise UnsupportedCapabilityError(f"Unknown operational space type '{op_type}'") from None
    return factory(link=int(link), offset=tuple(float(v) for v in offset), axes=axes, name=name)
