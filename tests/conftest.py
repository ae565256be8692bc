"""Shared mechanisms and coordinate generators for the kinematics tests."""

import jax
import jax.numpy as jnp
import pytest

from cdpr_kinematics import BodyAssembly
from cdpr_kinematics.core import (
    Body,
    SpatialQuaternion,
    SphericalQuaternion,
    create_joint,
    create_operational_space,
)


def make_two_link_chain():
    """Two revolute-z links, the second one metre along the first."""
    return BodyAssembly([
        Body.create(create_joint("R_Z"), parent_link_id=0, r_g=(0.5, 0.0, 0.0), r_pe=(1.0, 0.0, 0.0), name="link1"),
        Body.create(create_joint("R_Z"), parent_link_id=1, r_parent=(1.0, 0.0, 0.0), name="link2"),
    ])


def make_branching_tree():
    """Six links mixing every kind of joint, with two branches off the root.

        ground - 1 (SPATIAL_EULER_XYZ) - 2 (S_QUATERNION) - 5 (P_Y)
                                       \\ 3 (R_X) - 4 (PLANAR_XY) - 6 (U_XY)
    """
    bodies = [
        Body.create(create_joint("SPATIAL_EULER_XYZ"), parent_link_id=0,
                    r_parent=(0.1, -0.2, 0.3), r_g=(0.2, 0.1, -0.1), r_pe=(0.4, 0.0, 0.0), name="base"),
        Body.create(create_joint("S_QUATERNION"), parent_link_id=1,
                    r_parent=(0.4, 0.0, 0.0), r_g=(0.0, 0.3, 0.1), r_pe=(0.0, 0.6, 0.0), name="shoulder"),
        Body.create(create_joint("R_X"), parent_link_id=1,
                    r_parent=(-0.3, 0.2, 0.0), r_g=(0.0, 0.0, 0.25), r_pe=(0.0, 0.0, 0.5), name="hip"),
        Body.create(create_joint("PLANAR_XY"), parent_link_id=3,
                    r_parent=(0.0, 0.0, 0.5), r_g=(0.1, 0.2, 0.0), r_pe=(0.2, 0.4, 0.0), name="slider"),
        Body.create(create_joint("P_Y"), parent_link_id=2,
                    r_parent=(0.0, 0.6, 0.0), r_g=(0.05, 0.0, 0.0), r_pe=(0.1, 0.0, 0.0), name="forearm"),
        Body.create(create_joint("U_XY"), parent_link_id=4,
                    r_parent=(0.2, 0.4, 0.0), r_g=(0.0, -0.1, 0.3), r_pe=(0.0, -0.2, 0.6), name="wrist"),
    ]
    assembly = BodyAssembly(bodies)
    assembly.attach_operational_spaces([
        create_operational_space("position", link=5, offset=(0.1, 0.0, 0.0), name="hand"),
        create_operational_space("pose_euler_xyz", link=6, offset=(0.0, -0.2, 0.6), axes="xz", name="foot"),
    ])
    return assembly


def make_floating_chain():
    """Quaternion floating base carrying a translating stage and a revolute leg.

        ground - 1 (SPATIAL_QUATERNION) - 2 (T_XYZ) - 3 (S_EULER_XYZ)
                                        \\ 4 (R_Y)
    """
    bodies = [
        Body.create(create_joint("SPATIAL_QUATERNION"), parent_link_id=0,
                    r_parent=(0.0, 0.0, 1.0), r_g=(0.1, 0.2, -0.1), r_pe=(0.3, 0.0, 0.0), name="platform"),
        Body.create(create_joint("T_XYZ"), parent_link_id=1,
                    r_parent=(0.3, 0.0, 0.0), r_g=(0.0, 0.1, 0.2), r_pe=(0.0, 0.2, 0.1), name="stage"),
        Body.create(create_joint("S_EULER_XYZ"), parent_link_id=2,
                    r_parent=(0.0, 0.2, 0.1), r_g=(0.2, 0.0, -0.3), r_pe=(0.2, 0.0, -0.6), name="gimbal"),
        Body.create(create_joint("R_Y"), parent_link_id=1,
                    r_parent=(-0.2, 0.1, 0.0), r_g=(0.0, 0.0, 0.4), r_pe=(0.0, 0.0, 0.8), name="leg"),
    ]
    assembly = BodyAssembly(bodies)
    assembly.attach_operational_spaces([
        create_operational_space("position", link=3, offset=(0.2, 0.0, -0.6), name="tool"),
        create_operational_space("position", link=4, offset=(0.0, 0.0, 0.8), axes="xz", name="foot"),
    ])
    return assembly


def random_coordinates(assembly, seed, scale=0.8):
    """Random (q, q_dot, q_ddot) with unit quaternions where the joints need them."""
    key_q, key_dq, key_ddq = jax.random.split(jax.random.PRNGKey(seed), 3)
    q = assembly.q_default + scale * jax.random.uniform(
        key_q, (assembly.num_dof_vars,), minval=-1.0, maxval=1.0, dtype=jnp.float64
    )
    index = 0
    for body in assembly.bodies:
        if isinstance(body.joint, SphericalQuaternion):
            quat = q[index:index + 4]
            q = q.at[index:index + 4].set(quat / jnp.linalg.norm(quat))
        elif isinstance(body.joint, SpatialQuaternion):
            quat = q[index + 3:index + 7]
            q = q.at[index + 3:index + 7].set(quat / jnp.linalg.norm(quat))
        index += body.num_vars
    q_dot = jax.random.uniform(key_dq, (assembly.num_dofs,), minval=-1.5, maxval=1.5, dtype=jnp.float64)
    q_ddot = jax.random.uniform(key_ddq, (assembly.num_dofs,), minval=-1.5, maxval=1.5, dtype=jnp.float64)
    return q, q_dot, q_ddot


@pytest.fixture
def two_link_chain():
    return make_two_link_chain()


@pytest.fixture
def branching_tree():
    return make_branching_tree()
