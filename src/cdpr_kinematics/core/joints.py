"""Joint models: the local kinematics of a single body relative to its parent.

Every joint maps its own coordinate vector ``q`` (``num_vars`` entries) and
velocity ``q_dot`` (``num_dofs`` entries) to:

* ``relative_rotation(q)``: rotation of the body frame in the parent frame,
* ``relative_translation(q)``: joint displacement expressed in the parent frame,
* ``motion_subspace(q)``: 6 x num_dofs matrix ``S``. Its linear rows give the
  rate of ``relative_translation`` in the parent frame, its angular rows the
  relative angular velocity in the body frame,
* ``motion_subspace_dot(q, q_dot)``: time derivative of ``S``,
* ``integrate(q, q_dot, dt)``: one explicit integration step.

Joints are immutable, hashable flax dataclasses, so they can be closed over by
jitted functions. Concrete types are selected by the tags of ``JOINT_TYPES``.
"""

from functools import partial
from types import MappingProxyType
from typing import Optional, Tuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.scipy.linalg import block_diag
from flax import struct

from ..errors import DimensionError, UnsupportedCapabilityError
from ..transforms import so3


@struct.dataclass
class Joint:
    """Base class of all joint models.

    Attributes:
        q_initial: Optional default coordinates, ``num_vars`` values.
        q_min: Optional lower coordinate bounds, ``num_vars`` values.
        q_max: Optional upper coordinate bounds, ``num_vars`` values.
    """
    q_initial: Optional[Tuple[float, ...]] = struct.field(pytree_node=False, default=None)
    q_min: Optional[Tuple[float, ...]] = struct.field(pytree_node=False, default=None)
    q_max: Optional[Tuple[float, ...]] = struct.field(pytree_node=False, default=None)

    def __post_init__(self):
        for name in ("q_initial", "q_min", "q_max"):
            values = getattr(self, name)
            if values is not None and len(values) != self.num_vars:
                raise DimensionError(
                    f"{self.joint_type} joint expects {self.num_vars} values for "
                    f"{name}, got {len(values)}"
                )

    @property
    def joint_type(self) -> str:
        raise NotImplementedError

    @property
    def q_default(self) -> Array:
        if self.q_initial is not None:
            return jnp.asarray(self.q_initial, dtype=float)
        return self.reference_coordinates()

    @property
    def q_dot_default(self) -> Array:
        return jnp.zeros(self.num_dofs)

    @property
    def q_ddot_default(self) -> Array:
        return jnp.zeros(self.num_dofs)

    @property
    def q_lb(self) -> Array:
        if self.q_min is not None:
            return jnp.asarray(self.q_min, dtype=float)
        return self.lower_bound()

    @property
    def q_ub(self) -> Array:
        if self.q_max is not None:
            return jnp.asarray(self.q_max, dtype=float)
        return -self.lower_bound()

    def reference_coordinates(self) -> Array:
        return jnp.zeros(self.num_vars)

    def lower_bound(self) -> Array:
        return jnp.full(self.num_vars, -jnp.pi)

    def relative_rotation(self, q: Array) -> Array:
        raise NotImplementedError

    def relative_translation(self, q: Array) -> Array:
        raise NotImplementedError

    def motion_subspace(self, q: Array) -> Array:
        raise NotImplementedError

    def motion_subspace_dot(self, q: Array, q_dot: Array) -> Array:
        """Time derivative of ``S`` along the trajectory ``(q, q_dot)``."""
        _, S_dot = jax.jvp(self.motion_subspace, (q,), (self.q_deriv(q, q_dot),))
        return S_dot

    def q_deriv(self, q: Array, q_dot: Array) -> Array:
        """Time derivative of the coordinate variables."""
        return q_dot

    def integrate(self, q: Array, q_dot: Array, dt: float) -> Array:
        return q + q_dot * dt


@struct.dataclass
class Revolute(Joint):
    """Rotation about one axis of the body frame (``R_X``, ``R_Y``, ``R_Z``)."""
    axis: str = struct.field(pytree_node=False, default="z")

    num_dofs = 1
    num_vars = 1

    def __post_init__(self):
        if self.axis not in so3.AXES:
            raise UnsupportedCapabilityError(f"Unknown revolute axis '{self.axis}'")
        super().__post_init__()

    @property
    def joint_type(self) -> str:
        return f"R_{self.axis.upper()}"

    def relative_rotation(self, q: Array) -> Array:
        return so3.elementary(self.axis, q[0])

    def relative_translation(self, q: Array) -> Array:
        return jnp.zeros(3, dtype=q.dtype)

    def motion_subspace(self, q: Array) -> Array:
        e = so3.axis_vector(self.axis).astype(q.dtype)
        return jnp.concatenate([jnp.zeros(3, dtype=q.dtype), e])[:, None]


@struct.dataclass
class Prismatic(Joint):
    """Translation along one axis of the parent frame (``P_X``, ``P_Y``, ``P_Z``)."""
    axis: str = struct.field(pytree_node=False, default="z")

    num_dofs = 1
    num_vars = 1

    def __post_init__(self):
        if self.axis not in so3.AXES:
            raise UnsupportedCapabilityError(f"Unknown prismatic axis '{self.axis}'")
        super().__post_init__()

    @property
    def joint_type(self) -> str:
        return f"P_{self.axis.upper()}"

    def lower_bound(self) -> Array:
        return jnp.full(1, -jnp.inf)

    def relative_rotation(self, q: Array) -> Array:
        return jnp.eye(3, dtype=q.dtype)

    def relative_translation(self, q: Array) -> Array:
        return so3.axis_vector(self.axis).astype(q.dtype) * q[0]

    def motion_subspace(self, q: Array) -> Array:
        e = so3.axis_vector(self.axis).astype(q.dtype)
        return jnp.concatenate([e, jnp.zeros(3, dtype=q.dtype)])[:, None]


@struct.dataclass
class EulerRotation(Joint):
    """Sequence of rotations about moving axes.

    Two axes give a universal joint (``U_XY``, ``U_YZ``, ``U_XZ``), the three
    axes ``"xyz"`` give the Euler-angle spherical joint ``S_EULER_XYZ``.
    """
    axes: str = struct.field(pytree_node=False, default="xyz")

    def __post_init__(self):
        if not 2 <= len(self.axes) <= 3 or any(a not in so3.AXES for a in self.axes):
            raise UnsupportedCapabilityError(f"Unsupported rotation sequence '{self.axes}'")
        super().__post_init__()

    @property
    def num_dofs(self) -> int:
        return len(self.axes)

    @property
    def num_vars(self) -> int:
        return len(self.axes)

    @property
    def joint_type(self) -> str:
        if len(self.axes) == 3:
            return f"S_EULER_{self.axes.upper()}"
        return f"U_{self.axes.upper()}"

    def relative_rotation(self, q: Array) -> Array:
        return so3.from_intrinsic(self.axes, q)

    def relative_translation(self, q: Array) -> Array:
        return jnp.zeros(3, dtype=q.dtype)

    def motion_subspace(self, q: Array) -> Array:
        rates = so3.intrinsic_rate_matrix(self.axes, q)
        return jnp.concatenate([jnp.zeros_like(rates), rates], axis=0)


@struct.dataclass
class SphericalQuaternion(Joint):
    """Ball joint parametrised by a unit quaternion (``S_QUATERNION``).

    ``q`` is (w, x, y, z); ``q_dot`` is the angular velocity in the body frame.
    """
    num_dofs = 3
    num_vars = 4

    @property
    def joint_type(self) -> str:
        return "S_QUATERNION"

    def reference_coordinates(self) -> Array:
        return jnp.array([1.0, 0.0, 0.0, 0.0])

    def lower_bound(self) -> Array:
        return -jnp.ones(4)

    def relative_rotation(self, q: Array) -> Array:
        return so3.from_quaternion(q)

    def relative_translation(self, q: Array) -> Array:
        return jnp.zeros(3, dtype=q.dtype)

    def motion_subspace(self, q: Array) -> Array:
        return jnp.concatenate([jnp.zeros((3, 3), dtype=q.dtype), jnp.eye(3, dtype=q.dtype)], axis=0)

    def q_deriv(self, q: Array, q_dot: Array) -> Array:
        return _quaternion_rate(q, q_dot)

    def integrate(self, q: Array, q_dot: Array, dt: float) -> Array:
        return _quaternion_step(q, q_dot, dt)


@struct.dataclass
class Translational(Joint):
    """Free translation along the three parent axes (``T_XYZ``)."""
    num_dofs = 3
    num_vars = 3

    @property
    def joint_type(self) -> str:
        return "T_XYZ"

    def lower_bound(self) -> Array:
        return jnp.full(3, -jnp.inf)

    def relative_rotation(self, q: Array) -> Array:
        return jnp.eye(3, dtype=q.dtype)

    def relative_translation(self, q: Array) -> Array:
        return q

    def motion_subspace(self, q: Array) -> Array:
        return jnp.concatenate([jnp.eye(3, dtype=q.dtype), jnp.zeros((3, 3), dtype=q.dtype)], axis=0)


@struct.dataclass
class Planar(Joint):
    """Two translations in a plane followed by a rotation about its normal.

    ``q`` is (u, v, theta) where u, v run along the plane axes in order, e.g.
    ``plane="xy"`` translates along x then y and rotates about z.
    """
    plane: str = struct.field(pytree_node=False, default="xy")

    num_dofs = 3
    num_vars = 3

    def __post_init__(self):
        if self.plane not in ("xy", "yz", "xz"):
            raise UnsupportedCapabilityError(f"Unsupported plane '{self.plane}'")
        super().__post_init__()

    @property
    def joint_type(self) -> str:
        return f"PLANAR_{self.plane.upper()}"

    @property
    def normal(self) -> str:
        return ({"x", "y", "z"} - set(self.plane)).pop()

    def lower_bound(self) -> Array:
        return jnp.array([-jnp.inf, -jnp.inf, -jnp.pi])

    def relative_rotation(self, q: Array) -> Array:
        return so3.elementary(self.normal, q[2])

    def relative_translation(self, q: Array) -> Array:
        u, v = (so3.axis_vector(a).astype(q.dtype) for a in self.plane)
        return u * q[0] + v * q[1]

    def motion_subspace(self, q: Array) -> Array:
        u, v = (so3.axis_vector(a).astype(q.dtype) for a in self.plane)
        n = so3.axis_vector(self.normal).astype(q.dtype)
        zero = jnp.zeros(3, dtype=q.dtype)
        return jnp.stack([
            jnp.concatenate([u, zero]),
            jnp.concatenate([v, zero]),
            jnp.concatenate([zero, n]),
        ], axis=-1)


@struct.dataclass
class SpatialEulerXYZ(Joint):
    """Six-DoF joint: translation then intrinsic XYZ Euler angles (``SPATIAL_EULER_XYZ``)."""
    num_dofs = 6
    num_vars = 6

    @property
    def joint_type(self) -> str:
        return "SPATIAL_EULER_XYZ"

    def lower_bound(self) -> Array:
        return jnp.concatenate([jnp.full(3, -jnp.inf), jnp.full(3, -jnp.pi)])

    def relative_rotation(self, q: Array) -> Array:
        return so3.from_intrinsic("xyz", q[3:])

    def relative_translation(self, q: Array) -> Array:
        return q[:3]

    def motion_subspace(self, q: Array) -> Array:
        rates = so3.intrinsic_rate_matrix("xyz", q[3:])
        return block_diag(jnp.eye(3, dtype=q.dtype), rates)


@struct.dataclass
class SpatialQuaternion(Joint):
    """Six-DoF joint: translation then unit quaternion (``SPATIAL_QUATERNION``).

    ``q`` is (x, y, z, w, qx, qy, qz); ``q_dot`` is the translation rate in the
    parent frame followed by the angular velocity in the body frame.
    """
    num_dofs = 6
    num_vars = 7

    @property
    def joint_type(self) -> str:
        return "SPATIAL_QUATERNION"

    def reference_coordinates(self) -> Array:
        return jnp.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0])

    def lower_bound(self) -> Array:
        return jnp.concatenate([jnp.full(3, -jnp.inf), -jnp.ones(4)])

    def relative_rotation(self, q: Array) -> Array:
        return so3.from_quaternion(q[3:])

    def relative_translation(self, q: Array) -> Array:
        return q[:3]

    def motion_subspace(self, q: Array) -> Array:
        return jnp.eye(6, dtype=q.dtype)

    def q_deriv(self, q: Array, q_dot: Array) -> Array:
        return jnp.concatenate([q_dot[:3], _quaternion_rate(q[3:], q_dot[3:])])

    def integrate(self, q: Array, q_dot: Array, dt: float) -> Array:
        return jnp.concatenate([q[:3] + q_dot[:3] * dt, _quaternion_step(q[3:], q_dot[3:], dt)])


def _quaternion_rate(quat: Array, omega: Array) -> Array:
    # q_dot = 1/2 q * (0, omega) for a body-frame angular velocity
    pure = jnp.concatenate([jnp.zeros(1, dtype=omega.dtype), omega])
    return 0.5 * so3.quaternion_multiply(quat, pure)


def _quaternion_step(quat: Array, omega: Array, dt: float) -> Array:
    quat_next = so3.quaternion_multiply(quat, so3.quaternion_exp(omega * dt))
    return quat_next / jnp.linalg.norm(quat_next)


JOINT_TYPES = MappingProxyType({
    "R_X": partial(Revolute, axis="x"),
    "R_Y": partial(Revolute, axis="y"),
    "R_Z": partial(Revolute, axis="z"),
    "P_X": partial(Prismatic, axis="x"),
    "P_Y": partial(Prismatic, axis="y"),
    "P_Z": partial(Prismatic, axis="z"),
    "U_XY": partial(EulerRotation, axes="xy"),
    "U_YZ": partial(EulerRotation, axes="yz"),
    "U_XZ": partial(EulerRotation, axes="xz"),
    "S_EULER_XYZ": partial(EulerRotation, axes="xyz"),
    "S_QUATERNION": SphericalQuaternion,
    "T_XYZ": Translational,
    "PLANAR_XY": partial(Planar, plane="xy"),
    "PLANAR_YZ": partial(Planar, plane="yz"),
    "PLANAR_XZ": partial(Planar, plane="xz"),
    "SPATIAL_EULER_XYZ": SpatialEulerXYZ,
    "SPATIAL_QUATERNION": SpatialQuaternion,
})


def create_joint(joint_type: str, q_initial=None, q_min=None, q_max=None) -> Joint:
    """Build a joint from its type tag.

    Args:
        joint_type: One of the keys of ``JOINT_TYPES``, e.g. ``"R_Z"``.
        q_initial: Optional default coordinates.
        q_min: Optional lower bounds.
        q_max: Optional upper bounds.

    Raises:
        UnsupportedCapabilityError: if the tag is unknown.
    """
    try:
        factory = JOINT_TYPES[joint_type]
    except KeyError:
        raise UnsupportedCapabilityError(f"Unknown joint type '{joint_type}'") from None

    def _tuple(values):
        return None if values is None else tuple(float(v) for v in values)

    return factory(q_initial=_tuple(q_initial), q_min=_tuple(q_min), q_max=_tuple(q_max))
