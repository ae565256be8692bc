"""I/O utilities for loading mechanism descriptions.

This module provides functions for parsing the XML link and operational space
definitions and converting them to body assemblies.
"""

from .xml_loader import load_bodies, load_operational_spaces

__all__ = ["load_bodies", "load_operational_spaces"]
