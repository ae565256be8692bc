"""Rigid body description and per-update body state.

A ``Body`` is the fixed description of one link: its parent, geometric
offsets, joint model and optional operational space. It never changes after
construction. The quantities that depend on the generalized coordinates live
in ``BodyState`` records, which the assembly rebuilds on every update.

All vectors of a body are expressed in that body's own frame. Positions are
measured from the world origin, velocities and accelerations are absolute.
"""

from typing import Optional

import jax.numpy as jnp
from jax import Array
from flax import struct

from .joints import Joint
from .operational_space import OperationalSpace
from ..transforms import se3


def _vector3(values, name: str) -> Array:
    v = jnp.asarray(values, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"{name} must be a 3-vector, got shape {v.shape}")
    return v


@struct.dataclass
class Body:
    """Immutable description of a rigid link.

    Attributes:
        name: Link name, for reporting only.
        parent_link_id: 1-based index of the parent link, 0 for the ground.
        joint: Joint connecting the link to its parent.
        r_parent: Parent joint to this joint, in the parent frame.
        r_g: Joint to centre of mass.
        r_pe: Joint to link end.
        op_space: Optional operational space attached to the link.
    """
    name: str = struct.field(pytree_node=False)
    parent_link_id: int = struct.field(pytree_node=False)
    joint: Joint = struct.field(pytree_node=False)
    r_parent: Array
    r_g: Array
    r_pe: Array
    op_space: Optional[OperationalSpace] = struct.field(pytree_node=False, default=None)

    @classmethod
    def create(
        cls,
        joint: Joint,
        parent_link_id: int = 0,
        r_parent=(0.0, 0.0, 0.0),
        r_g=(0.0, 0.0, 0.0),
        r_pe=(0.0, 0.0, 0.0),
        name: str = "",
        op_space: Optional[OperationalSpace] = None,
    ) -> "Body":
        return cls(
            name=name,
            parent_link_id=int(parent_link_id),
            joint=joint,
            r_parent=_vector3(r_parent, "r_parent"),
            r_g=_vector3(r_g, "r_g"),
            r_pe=_vector3(r_pe, "r_pe"),
            op_space=op_space,
        )

    @property
    def num_dofs(self) -> int:
        return self.joint.num_dofs

    @property
    def num_vars(self) -> int:
        return self.joint.num_vars

    @property
    def num_op_dofs(self) -> int:
        return 0 if self.op_space is None else self.op_space.num_op_dofs

    @property
    def r_y(self) -> Array:
        """Joint to operational point; zero when no operational space is attached."""
        if self.op_space is None:
            return jnp.zeros(3)
        return self.op_space.r_y

    def attach_op_space(self, op_space: OperationalSpace) -> "Body":
        """Return a copy of this body carrying ``op_space``."""
        if self.op_space is not None:
            raise ValueError(f"Link '{self.name}' already has an operational space")
        return self.replace(op_space=op_space)


@struct.dataclass
class BodyState:
    """Kinematic state of one body for a given set of coordinates.

    Attributes:
        R_0k: (3, 3) rotation from the body frame to the world frame.
        r_OP: (3,) joint position.
        r_OG: (3,) centre of mass position.
        r_OPe: (3,) link end position.
        r_Oy: (3,) operational point, ``None`` without operational space.
        v_OG: (3,) centre of mass linear velocity.
        w: (3,) angular velocity.
        a_OG: (3,) centre of mass linear acceleration.
        w_dot: (3,) angular acceleration.
    """
    R_0k: Array
    r_OP: Array
    r_OG: Array
    r_OPe: Array
    r_Oy: Optional[Array]
    v_OG: Array
    w: Array
    a_OG: Array
    w_dot: Array

    def world_transform(self) -> Array:
        """(4, 4) pose of the body frame (origin at the joint) in the world."""
        return se3.from_position_and_rotation(self.R_0k @ self.r_OP, self.R_0k)

    def world_point(self, offset: Array) -> Array:
        """World coordinates of a point given relative to the joint in the body frame."""
        return se3.apply(self.world_transform(), jnp.asarray(offset, dtype=float))
