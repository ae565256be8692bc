"""XML loaders for body and operational space descriptions.

This module parses the link and operational space definition files of the
cable robot toolkit and turns them into a ``BodyAssembly``. A body file looks
like::

    <links>
      <link_rigid num="1" name="upper_arm">
        <joint type="R_Z" q_initial="0.0" q_min="-3.14" q_max="3.14"/>
        <physical>
          <com_location>0.5 0.0 0.0</com_location>
          <end_location>1.0 0.0 0.0</end_location>
        </physical>
        <parent>
          <num>0</num>
          <location>0.0 0.0 0.0</location>
        </parent>
      </link_rigid>
    </links>

and an operational space file::

    <op_set>
      <position name="tip" link="2" axes="xy">
        <offset>1.0 0.0 0.0</offset>
      </position>
    </op_set>

Mass and inertia elements are ignored.
"""

import logging
from typing import List, Optional, Sequence

from lxml import etree

from ..assembly import BodyAssembly
from ..core import Body, OperationalSpace, create_joint, create_operational_space
from ..errors import TopologyError, UnsupportedCapabilityError

logger = logging.getLogger(__name__)


def load_bodies(xml_path: str) -> BodyAssembly:
    """Load a ``<links>`` file into a BodyAssembly.

    The assembly is updated with the default coordinates before it is
    returned.

    Args:
        xml_path: Path to the body XML file.

    Returns:
        BodyAssembly: The assembled bodies.

    Raises:
        TopologyError: if link numbers do not follow their order or the parent
            numbering is not topological.
        UnsupportedCapabilityError: if a link or joint type is unknown.
    """
    root = etree.parse(xml_path).getroot()
    if root.tag != "links":
        raise ValueError(f"Root element should be <links>, got <{root.tag}>")

    bodies = parse_links(root)
    assembly = BodyAssembly(bodies)
    assembly.update(assembly.q_default, assembly.q_dot_default, assembly.q_ddot_default)
    logger.info("Loaded %d links from %s", assembly.num_links, xml_path)
    return assembly


def parse_links(root: etree._Element) -> List[Body]:
    """Parse the link elements of a ``<links>`` element, in document order."""
    bodies = []
    for k, link_elem in enumerate(_elements(root), start=1):
        if link_elem.tag != "link_rigid":
            logger.error("Unknown link type <%s>", link_elem.tag)
            raise UnsupportedCapabilityError(f"Unknown link type: {link_elem.tag}")

        num = int(link_elem.get("num", k))
        if num != k:
            raise TopologyError(
                f"Link number does not correspond to its order, order: {k}, specified num: {num}"
            )
        bodies.append(_parse_link(link_elem, k))
    return bodies


def load_operational_spaces(xml_path: str, assembly: BodyAssembly) -> BodyAssembly:
    """Attach the operational spaces of an ``<op_set>`` file to ``assembly``.

    The assembly is updated again with its current coordinates (or the
    defaults if it was never updated) so that ``y``, ``J`` and ``J_dot`` are
    available immediately.

    Raises:
        UnsupportedCapabilityError: if an operational space type is unknown.
        TopologyError: if a space refers to a missing link.
    """
    root = etree.parse(xml_path).getroot()
    if root.tag != "op_set":
        raise ValueError(f"Root element should be <op_set>, got <{root.tag}>")

    op_spaces = parse_operational_spaces(root)
    previous = _current_coordinates(assembly)
    assembly.attach_operational_spaces(op_spaces)
    if previous is None:
        previous = (assembly.q_default, assembly.q_dot_default, assembly.q_ddot_default)
    assembly.update(*previous)
    logger.info("Loaded %d operational spaces from %s", len(op_spaces), xml_path)
    return assembly


def parse_operational_spaces(root: etree._Element) -> List[OperationalSpace]:
    """Parse the children of an ``<op_set>`` element."""
    op_spaces = []
    for op_elem in _elements(root):
        link = op_elem.get("link")
        if link is None:
            link = _text(op_elem, "link")
        if link is None:
            raise TopologyError(f"Operational space <{op_elem.tag}> does not name a link")
        try:
            op_space = create_operational_space(
                op_elem.tag,
                link=int(link),
                offset=_vector(op_elem, "offset", default=(0.0, 0.0, 0.0)),
                axes=op_elem.get("axes", "xyz"),
                name=op_elem.get("name", ""),
            )
        except UnsupportedCapabilityError:
            logger.error("Unsupported operational space <%s>", op_elem.tag)
            raise
        logger.debug("Parsed %s space '%s' on link %d", op_space.op_type, op_space.name, op_space.link)
        op_spaces.append(op_space)
    return op_spaces


def _parse_link(link_elem: etree._Element, k: int) -> Body:
    joint_elem = link_elem.find("joint")
    if joint_elem is None:
        raise UnsupportedCapabilityError(f"Link {k} has no <joint> element")

    joint_type = joint_elem.get("type")
    try:
        joint = create_joint(
            joint_type,
            q_initial=_floats(joint_elem.get("q_initial")),
            q_min=_floats(joint_elem.get("q_min")),
            q_max=_floats(joint_elem.get("q_max")),
        )
    except UnsupportedCapabilityError:
        logger.error("Link %d uses unsupported joint type '%s'", k, joint_type)
        raise

    physical = link_elem.find("physical")
    parent = link_elem.find("parent")
    if parent is None or _text(parent, "num") is None:
        raise TopologyError(f"Link {k} does not declare its parent")

    return Body.create(
        joint=joint,
        parent_link_id=int(_text(parent, "num")),
        r_parent=_vector(parent, "location", default=(0.0, 0.0, 0.0)),
        r_g=_vector(physical, "com_location", default=(0.0, 0.0, 0.0)),
        r_pe=_vector(physical, "end_location", default=(0.0, 0.0, 0.0)),
        name=link_elem.get("name", f"link_{k}"),
    )


def _elements(root: etree._Element):
    # Skips comments and processing instructions
    return [child for child in root if isinstance(child.tag, str)]


def _text(elem: Optional[etree._Element], tag: str) -> Optional[str]:
    if elem is None:
        return None
    child = elem.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _floats(text: Optional[str]) -> Optional[List[float]]:
    if text is None:
        return None
    return [float(x) for x in text.split()]


def _vector(elem: Optional[etree._Element], tag: str, default: Sequence[float]) -> List[float]:
    values = _floats(_text(elem, tag))
    return list(default) if values is None else values


def _current_coordinates(assembly: BodyAssembly):
    try:
        return assembly.q, assembly.q_dot, assembly.q_ddot
    except AttributeError:
        return None
