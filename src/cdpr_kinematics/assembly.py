"""Body assembly: the owner of a mechanism's bodies and of its derived kinematics.

A ``BodyAssembly`` is built once from an ordered list of bodies. Its topology
is fixed for its lifetime; ``update`` may then be called any number of times
with new generalized coordinates and replaces every derived matrix and
vector in one go. Bodies are never updated individually, as that would leave
the system matrices inconsistent with the body states.
"""

import functools
import logging
from typing import Optional, Sequence, Tuple

import jax.numpy as jnp
from jax import Array

from .core import Body, BodyState, OperationalSpace
from .errors import DimensionError, TopologyError
from .kinematics import KinematicsState, compute_kinematics, selection_matrix
from .topology import ancestors, build_graphs

logger = logging.getLogger(__name__)


def require_update(func):
    """Decorator that ensures ``update`` has been called at least once."""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        if self._state is None:
            raise AttributeError(
                f"Missing kinematic state for '{func.__name__}'. "
                "Call `update(q, q_dot, q_ddot)` before accessing this property."
            )
        return func(self, *args, **kwargs)
    return wrapper


class BodyAssembly:
    """Ordered set of rigid bodies forming a tree rooted at the ground.

    Args:
        bodies: Bodies ordered so that every parent precedes its children.

    Raises:
        TopologyError: if the parent numbering is not topological.
    """

    def __init__(self, bodies: Sequence[Body]):
        if not bodies:
            raise TopologyError("A body assembly needs at least one body")
        self._bodies: Tuple[Body, ...] = tuple(bodies)
        self.connectivity_graph, self.bodies_path_graph = build_graphs(
            [body.parent_link_id for body in self._bodies]
        )
        self.num_dofs = sum(body.num_dofs for body in self._bodies)
        self.num_dof_vars = sum(body.num_vars for body in self._bodies)
        self._T = selection_matrix(self._bodies)
        self._state: Optional[KinematicsState] = None

        logger.info(
            "Created body assembly with %d links, %d DoFs (%d variables), %d operational DoFs",
            self.num_links, self.num_dofs, self.num_dof_vars, self.num_op_dofs,
        )

    @property
    def bodies(self) -> Tuple[Body, ...]:
        return self._bodies

    @property
    def num_links(self) -> int:
        return len(self._bodies)

    @property
    def num_op_dofs(self) -> int:
        return self._T.shape[0]

    @property
    def T(self) -> Array:
        return self._T

    def body(self, k: int) -> Body:
        """Body with 1-based index ``k``."""
        if not 1 <= k <= self.num_links:
            raise TopologyError(f"Link {k} does not exist")
        return self._bodies[k - 1]

    def parent(self, k: int) -> Optional[Body]:
        """Parent body of link ``k``, ``None`` when attached to the ground."""
        parent = self.body(k).parent_link_id
        return None if parent == 0 else self._bodies[parent - 1]

    def ancestors(self, k: int) -> Tuple[int, ...]:
        """1-based indices of the links from the root down to link ``k``."""
        self.body(k)
        return ancestors(self.bodies_path_graph, k)

    def attach_operational_spaces(self, op_spaces: Sequence[OperationalSpace]) -> None:
        """Attach operational spaces to their links and rebuild ``T``.

        The current kinematic state is discarded; call ``update`` again.

        Raises:
            TopologyError: if a space refers to a non-existent link.
            ValueError: if a link would carry more than one space.
        """
        bodies = list(self._bodies)
        for op_space in op_spaces:
            k = op_space.link
            if not 1 <= k <= self.num_links:
                raise TopologyError(f"Operational space '{op_space.name}' refers to missing link {k}")
            bodies[k - 1] = bodies[k - 1].attach_op_space(op_space)
        self._bodies = tuple(bodies)
        self._T = selection_matrix(self._bodies)
        self._state = None
        logger.info("Attached %d operational spaces, %d operational DoFs", len(op_spaces), self.num_op_dofs)

    def _check_length(self, name: str, vector: Array, expected: int) -> None:
        if vector.ndim != 1 or vector.shape[0] != expected:
            raise DimensionError(f"{name} must have shape ({expected},), got {vector.shape}")

    def update(self, q, q_dot, q_ddot) -> KinematicsState:
        """Recompute all body kinematics for new generalized coordinates.

        Args:
            q: (num_dof_vars,) generalized coordinates.
            q_dot: (num_dofs,) generalized velocities.
            q_ddot: (num_dofs,) generalized accelerations.

        Returns:
            The new KinematicsState, also available through the properties.

        Raises:
            DimensionError: if a vector length does not match the bodies.
                Nothing is modified in that case.
        """
        q = jnp.asarray(q, dtype=float)
        q_dot = jnp.asarray(q_dot, dtype=float)
        q_ddot = jnp.asarray(q_ddot, dtype=float)
        self._check_length("q", q, self.num_dof_vars)
        self._check_length("q_dot", q_dot, self.num_dofs)
        self._check_length("q_ddot", q_ddot, self.num_dofs)

        state = compute_kinematics(self._bodies, self.bodies_path_graph, self._T, q, q_dot, q_ddot)
        self._state = state
        logger.debug("Updated body kinematics for %d links", self.num_links)
        return state

    def integrate(self, q0, q_dot, dt: float) -> Array:
        """Advance the coordinates by one step, delegating to each joint.

        Raises:
            DimensionError: if a vector length does not match the bodies.
        """
        q0 = jnp.asarray(q0, dtype=float)
        q_dot = jnp.asarray(q_dot, dtype=float)
        self._check_length("q0", q0, self.num_dof_vars)
        self._check_length("q_dot", q_dot, self.num_dofs)

        parts = []
        index_vars = 0
        index_dofs = 0
        for body in self._bodies:
            parts.append(body.joint.integrate(
                q0[index_vars:index_vars + body.num_vars],
                q_dot[index_dofs:index_dofs + body.num_dofs],
                dt,
            ))
            index_vars += body.num_vars
            index_dofs += body.num_dofs
        return jnp.concatenate(parts)

    # Default coordinates and bounds
    @property
    def q_default(self) -> Array:
        return jnp.concatenate([body.joint.q_default for body in self._bodies])

    @property
    def q_dot_default(self) -> Array:
        return jnp.concatenate([body.joint.q_dot_default for body in self._bodies])

    @property
    def q_ddot_default(self) -> Array:
        return jnp.concatenate([body.joint.q_ddot_default for body in self._bodies])

    @property
    def q_lb(self) -> Array:
        return jnp.concatenate([body.joint.q_lb for body in self._bodies])

    @property
    def q_ub(self) -> Array:
        return jnp.concatenate([body.joint.q_ub for body in self._bodies])

    # Derived state, recomputed by update
    @property
    @require_update
    def state(self) -> KinematicsState:
        return self._state

    @require_update
    def body_state(self, k: int) -> BodyState:
        """Pose, velocity and acceleration of link ``k`` (1-based)."""
        self.body(k)
        return self._state.bodies[k - 1]

    @property
    @require_update
    def q(self) -> Array:
        return self._state.q

    @property
    @require_update
    def q_dot(self) -> Array:
        return self._state.q_dot

    @property
    @require_update
    def q_ddot(self) -> Array:
        return self._state.q_ddot

    @property
    @require_update
    def q_deriv(self) -> Array:
        return self._state.q_deriv

    @property
    @require_update
    def S(self) -> Array:
        return self._state.S

    @property
    @require_update
    def S_dot(self) -> Array:
        return self._state.S_dot

    @property
    @require_update
    def P(self) -> Array:
        return self._state.P

    @property
    @require_update
    def Q(self) -> Array:
        return self._state.Q

    @property
    @require_update
    def W(self) -> Array:
        return self._state.W

    @property
    @require_update
    def J(self) -> Array:
        return self._state.J

    @property
    @require_update
    def J_dot(self) -> Array:
        return self._state.J_dot

    @property
    @require_update
    def y(self) -> Array:
        return self._state.y

    @property
    @require_update
    def y_dot(self) -> Array:
        return self._state.y_dot

    @property
    @require_update
    def y_ddot(self) -> Array:
        return self._state.y_ddot

    @property
    @require_update
    def x_dot(self) -> Array:
        return self._state.x_dot

    @property
    @require_update
    def x_ddot(self) -> Array:
        return self._state.x_ddot

    @property
    @require_update
    def C_a(self) -> Array:
        return self._state.C_a
