"""SO(3) rotation primitives in JAX.

This module implements the rotation building blocks used by the joint models:
elementary axis rotations, intrinsic Euler sequences, unit quaternions and the
cross-product matrix. All functions are pure, JIT-able, and operate on JAX
arrays. Quaternions use the (w, x, y, z) convention throughout.
"""

import jax
import jax.numpy as jnp
from typing import Sequence

Array = jax.Array

AXES = {"x": 0, "y": 1, "z": 2}


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    ``skew_symmetric(a) @ b`` equals ``cross(a, b)``.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def axis_vector(axis: str) -> Array:
    """Unit vector along one of the frame axes ``"x"``, ``"y"`` or ``"z"``."""
    return jnp.eye(3)[AXES[axis]]


def elementary(axis: str, angle: Array) -> Array:
    """
    Rotation matrix about a single frame axis.

    Args:
        axis: One of ``"x"``, ``"y"``, ``"z"``
        angle: Scalar rotation angle in radians

    Returns:
        (3, 3) rotation matrix
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    one = jnp.ones_like(c)
    zero = jnp.zeros_like(c)

    if axis == "x":
        rows = [[one, zero, zero], [zero, c, -s], [zero, s, c]]
    elif axis == "y":
        rows = [[c, zero, s], [zero, one, zero], [-s, zero, c]]
    elif axis == "z":
        rows = [[c, -s, zero], [s, c, zero], [zero, zero, one]]
    else:
        raise ValueError(f"Unknown rotation axis '{axis}'")

    return jnp.stack([jnp.stack(row, axis=-1) for row in rows], axis=-2)


def from_intrinsic(axes: Sequence[str], angles: Array) -> Array:
    """
    Compose elementary rotations about moving axes.

    ``from_intrinsic("xyz", [a, b, c])`` is ``Rx(a) @ Ry(b) @ Rz(c)``.

    Args:
        axes: Sequence of axis names, one per angle
        angles: (len(axes),) array of angles

    Returns:
        (3, 3) rotation matrix
    """
    R = jnp.eye(3, dtype=angles.dtype)
    for i, axis in enumerate(axes):
        R = R @ elementary(axis, angles[i])
    return R


def intrinsic_rate_matrix(axes: Sequence[str], angles: Array) -> Array:
    """
    Map intrinsic angle rates to angular velocity in the rotated frame.

    For ``R = R_1(a_1) ... R_n(a_n)`` the body-frame angular velocity is
    ``sum_i (R_{i+1} ... R_n)^T e_i * a_i_dot``; column ``i`` of the returned
    matrix is that coefficient.

    Args:
        axes: Sequence of axis names, one per angle
        angles: (len(axes),) array of angles

    Returns:
        (3, len(axes)) rate matrix
    """
    columns = []
    tail = jnp.eye(3, dtype=angles.dtype)
    for i in reversed(range(len(axes))):
        columns.append(tail.T @ axis_vector(axes[i]).astype(angles.dtype))
        tail = elementary(axes[i], angles[i]) @ tail
    return jnp.stack(columns[::-1], axis=-1)


def to_euler_xyz(R: Array) -> Array:
    """
    Extract intrinsic XYZ Euler angles from a rotation matrix.

    Inverse of ``from_intrinsic("xyz", angles)`` for the middle angle in
    [-pi/2, pi/2].

    Args:
        R: (3, 3) rotation matrix

    Returns:
        (3,) array of angles [a, b, c]
    """
    b = jnp.arcsin(jnp.clip(R[..., 0, 2], -1.0, 1.0))
    a = jnp.arctan2(-R[..., 1, 2], R[..., 2, 2])
    c = jnp.arctan2(-R[..., 0, 1], R[..., 0, 0])
    return jnp.stack([a, b, c], axis=-1)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    # Normalize quaternions for numerical stability
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)

    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    matrix = jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)

    return matrix


def quaternion_multiply(q1: Array, q2: Array) -> Array:
    """
    Hamilton product of two quaternions.

    Args:
        q1: (..., 4) left quaternion (w, x, y, z)
        q2: (..., 4) right quaternion (w, x, y, z)

    Returns:
        (..., 4) product q1 * q2
    """
    w1, x1, y1, z1 = jnp.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(q2, -1, 0)
    return jnp.stack([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], axis=-1)


def quaternion_exp(rotvec: Array) -> Array:
    """
    Unit quaternion of a rotation vector (axis * angle).

    Uses a Taylor expansion near zero so the result stays finite.

    Args:
        rotvec: (..., 3) rotation vector

    Returns:
        (..., 4) unit quaternion (w, x, y, z)
    """
    angle = jnp.linalg.norm(rotvec, axis=-1, keepdims=True)
    half = 0.5 * angle

    small_angle = angle < 1e-8
    # sin(angle/2)/angle -> 1/2 - angle^2/48
    safe_angle = jnp.where(small_angle, 1.0, angle)
    scale = jnp.where(small_angle, 0.5 - angle**2 / 48.0, jnp.sin(half) / safe_angle)

    return jnp.concatenate([jnp.cos(half), scale * rotvec], axis=-1)
