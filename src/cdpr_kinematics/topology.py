"""Connectivity and reachability graphs of a body tree.

Bodies are numbered 1..p with the ground as body 0, and every body must be
numbered after its parent. The graphs are plain numpy boolean arrays: they
are fixed for the lifetime of an assembly and are only used to decide which
body pairs interact, never inside traced computations.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from .errors import TopologyError

logger = logging.getLogger(__name__)


def build_graphs(parent_link_ids: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """Build the connectivity and body path graphs.

    Args:
        parent_link_ids: ``parent_link_ids[k-1]`` is the 1-based parent of body
            k, 0 for the ground.

    Returns:
        connectivity: (p, p) bool array, ``[parent, k-1]`` is True iff body k
            is attached to ``parent`` (row 0 is the ground).
        path: (p, p) bool array, ``[a-1, k-1]`` is True iff body a is on the
            path from the ground to body k (an ancestor of k, or k itself).

    Raises:
        TopologyError: if a parent is not numbered strictly below its child,
            or refers to a body that does not exist.
    """
    num_links = len(parent_link_ids)
    connectivity = np.zeros((num_links, num_links), dtype=bool)
    path = np.zeros((num_links, num_links), dtype=bool)

    for k, parent in enumerate(parent_link_ids, start=1):
        if parent < 0:
            raise TopologyError(f"Link {k} refers to a non-existent parent link {parent}")
        if parent >= k:
            raise TopologyError(
                f"Parent link number must be smaller than child: link {k} has parent {parent}"
            )

        connectivity[parent, k - 1] = True
        path[k - 1, k - 1] = True
        if parent > 0:
            # Parents are processed first, so their column already holds all ancestors
            path[parent - 1, k - 1] = True
            path[:, k - 1] |= path[:, parent - 1]

    logger.debug("Built body graphs for %d links", num_links)
    return connectivity, path


def ancestors(path: np.ndarray, k: int) -> Tuple[int, ...]:
    """1-based indices of the bodies on the path to body ``k``, root first."""
    return tuple(int(a) + 1 for a in np.flatnonzero(path[:, k - 1]))
