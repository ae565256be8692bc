"""Body kinematics of a tree of rigid links: poses, Jacobians and accelerations.

This module implements the heart of cdpr_kinematics as pure functions. Given
the body descriptions, the body path graph and the operational space
selection matrix ``T``, ``compute_kinematics`` maps generalized coordinates
``(q, q_dot, q_ddot)`` to the full set of system matrices:

* ``S`` / ``S_dot``: block-diagonal joint motion subspaces and their rates,
* ``P``: propagation of every joint's motion to the centre of mass of its
  descendants, so that ``x_dot = W q_dot`` with ``W = P S``,
* ``Q``: the same propagation to the operational points in the world frame,
  giving the task Jacobian ``J = T Q S``,
* ``C_a`` and ``J_dot``: the Coriolis and centripetal bias terms so that
  ``x_ddot = W q_ddot + C_a`` and ``y_ddot = J q_ddot + J_dot q_dot``.

Body pairs only interact when the first body lies on the path from the
ground to the second; the body path graph masks every block-pair sum.
The functions are JIT-compatible when ``bodies``, ``path`` and ``T`` are
closed over.
"""

from typing import List, Sequence, Tuple

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.scipy.linalg import block_diag
from flax import struct

from .core import Body, BodyState
from .transforms import so3


@struct.dataclass
class KinematicsState:
    """Complete kinematic state of a body assembly for one set of coordinates.

    Attributes:
        q, q_dot, q_ddot: Generalized coordinates and their derivatives.
        q_deriv: Time derivative of the coordinate variables.
        bodies: Per-body poses, velocities and accelerations, in body order.
        S, S_dot: (6p, n) joint motion subspaces and their time derivative.
        P: (6p, 6p) propagation matrix to the centres of mass.
        Q: (6p, 6p) propagation matrix to the operational points, world frame.
        W: (6p, n) ``P @ S``.
        J, J_dot: (m, n) operational space Jacobian and its rate.
        y, y_dot, y_ddot: (m,) operational space coordinates and derivatives.
        x_dot, x_ddot: (6p,) stacked absolute body velocities and accelerations.
        C_a: (6p,) acceleration bias, ``x_ddot = W @ q_ddot + C_a``.
    """
    q: Array
    q_dot: Array
    q_ddot: Array
    q_deriv: Array
    bodies: Tuple[BodyState, ...]
    S: Array
    S_dot: Array
    P: Array
    Q: Array
    W: Array
    J: Array
    J_dot: Array
    y: Array
    y_dot: Array
    y_ddot: Array
    x_dot: Array
    x_ddot: Array
    C_a: Array


def split_coordinates(bodies: Sequence[Body], q: Array, q_dot: Array, q_ddot: Array) -> List[Tuple[Array, Array, Array]]:
    """Slice the generalized coordinates into per-body joint coordinates."""
    slices = []
    index_vars = 0
    index_dofs = 0
    for body in bodies:
        slices.append((
            q[index_vars:index_vars + body.num_vars],
            q_dot[index_dofs:index_dofs + body.num_dofs],
            q_ddot[index_dofs:index_dofs + body.num_dofs],
        ))
        index_vars += body.num_vars
        index_dofs += body.num_dofs
    return slices


def selection_matrix(bodies: Sequence[Body]) -> Array:
    """Assemble ``T``, mapping stacked body velocities to operational space rates.

    Returns:
        (num_op_dofs, 6 * num_links) 0/1 matrix; zero rows if no body carries
        an operational space.
    """
    num_links = len(bodies)
    rows = []
    for k, body in enumerate(bodies):
        if body.op_space is None:
            continue
        selection = body.op_space.selection_matrix()
        block = jnp.zeros((selection.shape[0], 6 * num_links))
        rows.append(block.at[:, 6 * k:6 * k + 6].set(selection))
    if not rows:
        return jnp.zeros((0, 6 * num_links))
    return jnp.concatenate(rows, axis=0)


def propagate_poses(bodies: Sequence[Body], coordinates: Sequence[Array]):
    """Compose joint rotations and translations from the root outwards.

    Args:
        bodies: Bodies in topological order.
        coordinates: Per-body joint coordinates.

    Returns:
        Lists ``(R_rel, r_rel, R_0, r_OP)`` of relative joint rotations,
        relative joint translations (parent frame), absolute rotations and
        absolute joint positions (body frame).
    """
    R_rel, r_rel, R_0, r_OP = [], [], [], []
    for body, q_k in zip(bodies, coordinates):
        R_k = body.joint.relative_rotation(q_k)
        t_k = body.joint.relative_translation(q_k)
        parent = body.parent_link_id
        if parent > 0:
            R_0.append(R_0[parent - 1] @ R_k)
            r_OP.append(R_k.T @ (r_OP[parent - 1] + body.r_parent + t_k))
        else:
            R_0.append(R_k)
            r_OP.append(R_k.T @ (body.r_parent + t_k))
        R_rel.append(R_k)
        r_rel.append(t_k)
    return R_rel, r_rel, R_0, r_OP


def propagation_matrix(
    path: np.ndarray,
    R_rel: Sequence[Array],
    R_0: Sequence[Array],
    r_OP: Sequence[Array],
    points: Sequence[Array],
    world_frame: bool = False,
) -> Array:
    """Assemble the block lower-triangular propagation matrix.

    Block ``(k, a)`` maps the relative motion of joint ``a`` to the velocity
    of ``points[k]`` on body ``k``:

        [ R_ka R_rel_a^T   -R_ka [R_ka^T points_k - r_OP_a]x ]
        [       0                         R_ka               ]

    and is zero unless body ``a`` is on the path to body ``k``.

    Args:
        path: (p, p) body path graph.
        R_rel: Relative joint rotations.
        R_0: Absolute body rotations.
        r_OP: Absolute joint positions (body frames).
        points: Per-body target points (body frames).
        world_frame: Rotate each block row into the world frame.

    Returns:
        (6p, 6p) propagation matrix.
    """
    num_links = len(R_0)
    zero = jnp.zeros((6, 6))
    rows = []
    for k in range(num_links):
        row = []
        for a in range(num_links):
            if not path[a, k]:
                row.append(zero)
                continue
            R_ka = R_0[k].T @ R_0[a]
            lever = -r_OP[a] + R_ka.T @ points[k]
            block = jnp.block([
                [R_ka @ R_rel[a].T, -R_ka @ so3.skew_symmetric(lever)],
                [jnp.zeros((3, 3)), R_ka],
            ])
            if world_frame:
                block = block_diag(R_0[k], R_0[k]) @ block
            row.append(block)
        rows.append(row)
    return jnp.block(rows)


def angular_rate_matrix(bodies: Sequence[Body], w: Sequence[Array]) -> Array:
    """Block-diagonal Coriolis operator applied to the joint rates.

    Block k is ``[[2 [w_parent]x, 0], [0, [w_k]x]]``; the ground does not rotate.
    """
    blocks = []
    for k, body in enumerate(bodies):
        parent = body.parent_link_id
        w_parent = w[parent - 1] if parent > 0 else jnp.zeros(3)
        blocks.append(block_diag(2.0 * so3.skew_symmetric(w_parent), so3.skew_symmetric(w[k])))
    return block_diag(*blocks)


def centripetal_terms(
    bodies: Sequence[Body],
    path: np.ndarray,
    R_0: Sequence[Array],
    r_rel: Sequence[Array],
    w: Sequence[Array],
) -> Array:
    """Centripetal accelerations not captured by ``P`` and ``S``.

    For body k, every ancestor a with a moving parent contributes
    ``w_p x (w_p x (r_parent_a + r_rel_a))`` rotated into frame k, and the
    body itself contributes ``w_k x (w_k x r_g_k)``.

    Returns:
        (6p,) vector, zero in the angular rows.
    """
    terms = []
    for k, body in enumerate(bodies):
        a_k = jnp.cross(w[k], jnp.cross(w[k], body.r_g))
        for a in range(k + 1):
            parent = bodies[a].parent_link_id
            if parent > 0 and path[a, k]:
                w_p = w[parent - 1]
                link = bodies[a].r_parent + r_rel[a]
                a_k = a_k + R_0[k].T @ R_0[parent - 1] @ jnp.cross(w_p, jnp.cross(w_p, link))
        terms.append(jnp.concatenate([a_k, jnp.zeros(3)]))
    return jnp.concatenate(terms)


def jacobian_rate_corrections(
    bodies: Sequence[Body],
    path: np.ndarray,
    R_0: Sequence[Array],
    r_rel: Sequence[Array],
    w: Sequence[Array],
    W: Array,
) -> Array:
    """Centripetal part of the operational space Jacobian rate.

    Same terms as ``centripetal_terms`` written as matrices acting on
    ``q_dot`` through the angular rows of ``W``, expressed in the world frame
    and using the operational point offsets instead of the centres of mass.

    Returns:
        (6p, n) matrix, zero in the angular rows.
    """
    num_dofs = W.shape[1]
    rows = []
    for k, body in enumerate(bodies):
        c = -R_0[k] @ so3.skew_symmetric(w[k]) @ so3.skew_symmetric(body.r_y) @ W[6 * k + 3:6 * k + 6]
        for a in range(k + 1):
            parent = bodies[a].parent_link_id
            if parent > 0 and path[a, k]:
                p = parent - 1
                link = bodies[a].r_parent + r_rel[a]
                c = c - R_0[p] @ so3.skew_symmetric(w[p]) @ so3.skew_symmetric(link) @ W[6 * p + 3:6 * p + 6]
        rows.append(jnp.concatenate([c, jnp.zeros((3, num_dofs))], axis=0))
    return jnp.concatenate(rows, axis=0)


def compute_kinematics(
    bodies: Sequence[Body],
    path: np.ndarray,
    T: Array,
    q: Array,
    q_dot: Array,
    q_ddot: Array,
) -> KinematicsState:
    """Compute the full body kinematics for one set of generalized coordinates.

    Args:
        bodies: Bodies in topological order (every parent before its children).
        path: (p, p) body path graph from ``topology.build_graphs``.
        T: (m, 6p) operational space selection matrix.
        q: (num_dof_vars,) generalized coordinates.
        q_dot: (num_dofs,) generalized velocities.
        q_ddot: (num_dofs,) generalized accelerations.

    Returns:
        KinematicsState with every derived matrix and vector.
    """
    num_links = len(bodies)
    coordinates = split_coordinates(bodies, q, q_dot, q_ddot)

    # Poses
    R_rel, r_rel, R_0, r_OP = propagate_poses(bodies, [c[0] for c in coordinates])
    r_OG = [r_OP[k] + body.r_g for k, body in enumerate(bodies)]
    r_OPe = [r_OP[k] + body.r_pe for k, body in enumerate(bodies)]
    r_Oy = [r_OP[k] + body.r_y for k, body in enumerate(bodies)]

    op_coordinates = [
        body.op_space.extract(r_Oy[k], R_0[k])
        for k, body in enumerate(bodies)
        if body.op_space is not None
    ]
    y = jnp.concatenate(op_coordinates) if op_coordinates else jnp.zeros(0)

    # Joint and propagation matrices
    S = block_diag(*[body.joint.motion_subspace(q_k) for body, (q_k, _, _) in zip(bodies, coordinates)])
    S_dot = block_diag(*[
        body.joint.motion_subspace_dot(q_k, q_dot_k)
        for body, (q_k, q_dot_k, _) in zip(bodies, coordinates)
    ])
    q_deriv = jnp.concatenate([
        body.joint.q_deriv(q_k, q_dot_k)
        for body, (q_k, q_dot_k, _) in zip(bodies, coordinates)
    ])
    P = propagation_matrix(path, R_rel, R_0, r_OP, r_OG)
    Q = propagation_matrix(path, R_rel, R_0, r_OP, r_Oy, world_frame=True)
    W = P @ S
    J = T @ Q @ S

    # Velocities
    x_dot = W @ q_dot
    y_dot = J @ q_dot
    v_OG = [x_dot[6 * k:6 * k + 3] for k in range(num_links)]
    w = [x_dot[6 * k + 3:6 * k + 6] for k in range(num_links)]

    # Accelerations
    ang_mat = angular_rate_matrix(bodies, w)
    C_a = P @ S_dot @ q_dot + P @ ang_mat @ S @ q_dot + centripetal_terms(bodies, path, R_0, r_rel, w)
    x_ddot = W @ q_ddot + C_a

    J_dot = T @ (Q @ S_dot + Q @ ang_mat @ S + jacobian_rate_corrections(bodies, path, R_0, r_rel, w, W))
    y_ddot = J_dot @ q_dot + J @ q_ddot

    states = tuple(
        BodyState(
            R_0k=R_0[k],
            r_OP=r_OP[k],
            r_OG=r_OG[k],
            r_OPe=r_OPe[k],
            r_Oy=r_Oy[k] if body.op_space is not None else None,
            v_OG=v_OG[k],
            w=w[k],
            a_OG=x_ddot[6 * k:6 * k + 3],
            w_dot=x_ddot[6 * k + 3:6 * k + 6],
        )
        for k, body in enumerate(bodies)
    )

    return KinematicsState(
        q=q,
        q_dot=q_dot,
        q_ddot=q_ddot,
        q_deriv=q_deriv,
        bodies=states,
        S=S,
        S_dot=S_dot,
        P=P,
        Q=Q,
        W=W,
        J=J,
        J_dot=J_dot,
        y=y,
        y_dot=y_dot,
        y_ddot=y_ddot,
        x_dot=x_dot,
        x_ddot=x_ddot,
        C_a=C_a,
    )
