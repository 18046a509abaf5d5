#!/usr/bin/env python3
"""
Core Module
Format-agnostic data structures, name resolution and byte decoding for AGX conversion.
"""

from .errors import (
    AGXConversionError,
    UsageError,
    SourceOpenError,
    ConversionError,
    HeaderReadError,
    DocumentCreateError,
    StreamReadError,
)
from .name_resolver import resolve_role, make_valid_attr_name
from .param_data import (
    AGXHeader,
    ConversionSummary,
    MeshTopology,
    ParameterView,
    Role,
    StageSettings,
    TimeStepInfo,
    TypeTag,
)

__all__ = [
    'AGXConversionError',
    'UsageError',
    'SourceOpenError',
    'ConversionError',
    'HeaderReadError',
    'DocumentCreateError',
    'StreamReadError',
    'resolve_role',
    'make_valid_attr_name',
    'AGXHeader',
    'ConversionSummary',
    'MeshTopology',
    'ParameterView',
    'Role',
    'StageSettings',
    'TimeStepInfo',
    'TypeTag',
]
