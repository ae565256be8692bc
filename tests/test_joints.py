"""Tests for the joint models and their registry."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cdpr_kinematics import BodyAssembly, DimensionError, UnsupportedCapabilityError
from cdpr_kinematics.core import JOINT_TYPES, Body, create_joint
from cdpr_kinematics.transforms import so3

from conftest import random_coordinates

ALL_TYPES = sorted(JOINT_TYPES)

EXPECTED_SIZES = {
    "R_X": (1, 1), "R_Y": (1, 1), "R_Z": (1, 1),
    "P_X": (1, 1), "P_Y": (1, 1), "P_Z": (1, 1),
    "U_XY": (2, 2), "U_YZ": (2, 2), "U_XZ": (2, 2),
    "S_EULER_XYZ": (3, 3), "S_QUATERNION": (3, 4), "T_XYZ": (3, 3),
    "PLANAR_XY": (3, 3), "PLANAR_YZ": (3, 3), "PLANAR_XZ": (3, 3),
    "SPATIAL_EULER_XYZ": (6, 6), "SPATIAL_QUATERNION": (6, 7),
}


def _joint_state(joint_type, seed):
    """A joint with valid random coordinates and velocities."""
    joint = create_joint(joint_type)
    q, q_dot, _ = random_coordinates(BodyAssembly([Body.create(joint)]), seed)
    return joint, q, q_dot


def test_registry_is_complete():
    assert set(JOINT_TYPES) == set(EXPECTED_SIZES)


@pytest.mark.parametrize("joint_type", ALL_TYPES)
def test_joint_sizes_and_tags(joint_type):
    joint = create_joint(joint_type)
    num_dofs, num_vars = EXPECTED_SIZES[joint_type]

    assert joint.joint_type == joint_type
    assert joint.num_dofs == num_dofs
    assert joint.num_vars == num_vars
    assert joint.q_default.shape == (num_vars,)
    assert joint.q_dot_default.shape == (num_dofs,)
    assert joint.q_ddot_default.shape == (num_dofs,)
    assert joint.q_lb.shape == joint.q_ub.shape == (num_vars,)

    q = joint.q_default
    assert joint.relative_rotation(q).shape == (3, 3)
    assert joint.relative_translation(q).shape == (3,)
    assert joint.motion_subspace(q).shape == (6, num_dofs)


@pytest.mark.parametrize("joint_type", ALL_TYPES)
def test_reference_pose_is_identity(joint_type):
    joint = create_joint(joint_type)
    q = joint.q_default

    np.testing.assert_allclose(joint.relative_rotation(q), jnp.eye(3), atol=1e-15)
    np.testing.assert_allclose(joint.relative_translation(q), jnp.zeros(3), atol=1e-15)


@pytest.mark.parametrize("joint_type", ALL_TYPES)
@given(st.integers(min_value=0, max_value=1000))
@settings(deadline=None, max_examples=3)
def test_motion_subspace_matches_derivatives(joint_type, seed):
    """Linear rows of S give the translation rate, angular rows [w]x = R^T R_dot."""
    joint, q, q_dot = _joint_state(joint_type, seed)
    q_deriv = joint.q_deriv(q, q_dot)
    S = joint.motion_subspace(q)

    R, R_dot = jax.jvp(joint.relative_rotation, (q,), (q_deriv,))
    _, t_dot = jax.jvp(joint.relative_translation, (q,), (q_deriv,))

    np.testing.assert_allclose(R @ R.T, jnp.eye(3), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(jnp.linalg.det(R), 1.0, rtol=1e-12)
    np.testing.assert_allclose(S[:3] @ q_dot, t_dot, rtol=1e-10, atol=1e-10)
    np.testing.assert_allclose(so3.skew_symmetric(S[3:] @ q_dot), R.T @ R_dot, rtol=1e-10, atol=1e-10)


@pytest.mark.parametrize("joint_type", ["R_X", "P_Z", "T_XYZ", "PLANAR_YZ", "S_QUATERNION", "SPATIAL_QUATERNION"])
def test_constant_motion_subspace_has_zero_rate(joint_type):
    joint, q, q_dot = _joint_state(joint_type, 4)
    np.testing.assert_allclose(joint.motion_subspace_dot(q, q_dot), 0.0, atol=1e-15)


def test_euler_motion_subspace_rate():
    """S_dot of a universal joint follows the second angle."""
    joint = create_joint("U_XY")
    q = jnp.array([0.3, 0.4])
    q_dot = jnp.array([0.5, -1.2])

    S_dot = joint.motion_subspace_dot(q, q_dot)

    # First column is Ry(b)^T e_x = (cos b, 0, sin b)
    b, b_dot = q[1], q_dot[1]
    np.testing.assert_allclose(S_dot[3:, 0], [-jnp.sin(b) * b_dot, 0.0, jnp.cos(b) * b_dot], rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(S_dot[3:, 1], 0.0, atol=1e-15)
    np.testing.assert_allclose(S_dot[:3], 0.0, atol=1e-15)


def test_revolute_rotation():
    joint = create_joint("R_Z")
    R = joint.relative_rotation(jnp.array([jnp.pi / 2]))
    np.testing.assert_allclose(R @ jnp.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


def test_planar_joint():
    joint = create_joint("PLANAR_XZ")
    assert joint.normal == "y"

    q = jnp.array([0.5, -0.25, 0.3])
    np.testing.assert_allclose(joint.relative_translation(q), [0.5, 0.0, -0.25], atol=1e-15)
    np.testing.assert_allclose(joint.relative_rotation(q), so3.elementary("y", 0.3), atol=1e-15)


# Coordinates, bounds and validation
def test_default_coordinates_and_bounds():
    revolute = create_joint("R_Z")
    np.testing.assert_allclose(revolute.q_lb, [-jnp.pi])
    np.testing.assert_allclose(revolute.q_ub, [jnp.pi])

    prismatic = create_joint("P_X")
    assert jnp.isneginf(prismatic.q_lb[0]) and jnp.isposinf(prismatic.q_ub[0])

    quaternion = create_joint("S_QUATERNION")
    np.testing.assert_allclose(quaternion.q_default, [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(quaternion.q_lb, -jnp.ones(4))
    np.testing.assert_allclose(quaternion.q_ub, jnp.ones(4))

    spatial = create_joint("SPATIAL_QUATERNION")
    np.testing.assert_allclose(spatial.q_default, [0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0])


def test_user_coordinates_and_bounds():
    joint = create_joint("U_XZ", q_initial=[0.1, 0.2], q_min=[-1.0, -0.5], q_max=[1.0, 0.5])
    np.testing.assert_allclose(joint.q_default, [0.1, 0.2])
    np.testing.assert_allclose(joint.q_lb, [-1.0, -0.5])
    np.testing.assert_allclose(joint.q_ub, [1.0, 0.5])


@pytest.mark.parametrize("field", ["q_initial", "q_min", "q_max"])
def test_wrong_coordinate_count(field):
    with pytest.raises(DimensionError, match="expects 4 values"):
        create_joint("S_QUATERNION", **{field: [0.0, 0.0, 0.0]})


def test_unknown_joint_type():
    with pytest.raises(UnsupportedCapabilityError, match="Unknown joint type"):
        create_joint("R_W")
    # Loaders can catch it as a plain ValueError
    with pytest.raises(ValueError):
        create_joint("HELICAL")


def test_joints_are_hashable():
    assert hash(create_joint("R_X")) == hash(create_joint("R_X"))
    assert create_joint("R_X") != create_joint("R_Y")


# Integration
def test_euclidean_integration():
    joint = create_joint("SPATIAL_EULER_XYZ")
    q = jnp.arange(6.0)
    q_dot = jnp.ones(6)
    np.testing.assert_allclose(joint.integrate(q, q_dot, 0.1), q + 0.1, rtol=1e-12)


def test_quaternion_integration_constant_rate():
    """A constant body rate about z from the identity gives a pure z rotation."""
    joint = create_joint("S_QUATERNION")
    q = joint.integrate(joint.q_default, jnp.array([0.0, 0.0, 1.0]), 0.5)
    np.testing.assert_allclose(q, [np.cos(0.25), 0.0, 0.0, np.sin(0.25)], atol=1e-12)


@given(st.integers(min_value=0, max_value=1000))
@settings(deadline=None, max_examples=10)
def test_quaternion_integration(seed):
    """Steps stay on the unit sphere and agree with q_deriv to first order."""
    joint, q, q_dot = _joint_state("SPATIAL_QUATERNION", seed)
    dt = 1e-6

    q_next = joint.integrate(q, q_dot, dt)

    np.testing.assert_allclose(jnp.linalg.norm(q_next[3:]), 1.0, rtol=1e-12)
    np.testing.assert_allclose((q_next - q) / dt, joint.q_deriv(q, q_dot), rtol=1e-4, atol=1e-4)

    # Many large steps still give a unit quaternion
    for _ in range(20):
        q = joint.integrate(q, q_dot, 0.3)
    np.testing.assert_allclose(jnp.linalg.norm(q[3:]), 1.0, rtol=1e-12)
