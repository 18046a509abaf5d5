#!/usr/bin/env python3
"""
Name Resolver Module
Maps AGX parameter names to geometry roles.

Matching is an exact, case-sensitive lookup against a fixed synonym table.
Names not in the table resolve to Role.CUSTOM.
"""

import re

from .param_data import Role

ROLE_SYNONYMS = {
    Role.POSITION: ('vertex.position', 'position', 'vertex.positions', 'positions'),
    Role.NORMAL: ('vertex.normal', 'normal', 'vertex.normals', 'normals'),
    Role.ATTRIBUTE0: ('vertex.attribute0', 'attribute0'),
    Role.TEXCOORD: ('uv', 'vertex.uv', 'texcoord'),
    Role.INDEX: ('primitive.index', 'index', 'primitive.indices', 'indices'),
    Role.TIME: ('time',),
}

_ROLE_BY_NAME = {name: role for role, names in ROLE_SYNONYMS.items() for name in names}

_INVALID_ATTR_CHARS = re.compile(r'[^A-Za-z0-9_]')


def resolve_role(name: str) -> Role:
    """Resolve a parameter name to its geometry role

    Args:
        name: Parameter name as stored in the AGX file

    Returns:
        Role: Matching role, or Role.CUSTOM for unrecognized names
    """
    return _ROLE_BY_NAME.get(name, Role.CUSTOM)


def make_valid_attr_name(name: str) -> str:
    """Convert an AGX parameter name to a valid USD attribute name

    Args:
        name: Parameter name (e.g. "vertex.color")

    Returns:
        str: Attribute name safe for USD (e.g. "vertex_color")
    """
    sanitized = _INVALID_ATTR_CHARS.sub('_', name)
    if not sanitized or sanitized[0].isdigit():
        sanitized = '_' + sanitized
    return sanitized
