#!/usr/bin/env python3
"""
Parameter Data Module
Data structures shared by the AGX readers, the ingestion passes and the USD exporter.

Readers hand out ParameterView records, the name resolver tags them with a
Role, and the converter decodes their bytes according to the TypeTag before
passing typed arrays to the exporter.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

import numpy as np


class TypeTag(IntEnum):
    """Element type codes used by AGX parameters (ANARI data type values)"""
    UNKNOWN = 0
    INT32 = 1016
    INT32_VEC2 = 1017
    INT32_VEC3 = 1018
    INT32_VEC4 = 1019
    UINT32 = 1020
    UINT32_VEC2 = 1021
    UINT32_VEC3 = 1022
    UINT32_VEC4 = 1023
    FLOAT32 = 1068
    FLOAT32_VEC2 = 1069
    FLOAT32_VEC3 = 1070
    FLOAT32_VEC4 = 1071

    @classmethod
    def from_code(cls, code: int) -> 'TypeTag':
        """Map a raw type code to a TypeTag, falling back to UNKNOWN"""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def dtype(self) -> Optional[np.dtype]:
        """Little-endian component dtype, or None for UNKNOWN"""
        return _COMPONENT_DTYPES.get(self)

    @property
    def components(self) -> int:
        """Number of components per element (1 for scalars, 0 for UNKNOWN)"""
        return _COMPONENT_COUNTS.get(self, 0)

    @property
    def stride(self) -> int:
        """Byte size of one element"""
        dtype = self.dtype
        return dtype.itemsize * self.components if dtype is not None else 0

    def to_string(self) -> str:
        return f"ANARI_{self.name}"


_COMPONENT_DTYPES = {}
_COMPONENT_COUNTS = {}
for _tag in TypeTag:
    if _tag is TypeTag.UNKNOWN:
        continue
    _base, _, _vec = _tag.name.partition('_VEC')
    _COMPONENT_DTYPES[_tag] = np.dtype('<i4' if _base == 'INT32' else '<u4' if _base == 'UINT32' else '<f4')
    _COMPONENT_COUNTS[_tag] = int(_vec) if _vec else 1

FLOAT32_BY_ARITY = {
    1: TypeTag.FLOAT32,
    2: TypeTag.FLOAT32_VEC2,
    3: TypeTag.FLOAT32_VEC3,
    4: TypeTag.FLOAT32_VEC4,
}


class Role(Enum):
    """Geometry role a parameter plays, derived from its name"""
    POSITION = "position"
    NORMAL = "normal"
    ATTRIBUTE0 = "attribute0"
    TEXCOORD = "texcoord"
    INDEX = "index"
    TIME = "time"
    CUSTOM = "custom"


@dataclass
class ParameterView:
    """Read-only view of one parameter as produced by a reader

    The view does not own its bytes. They belong to the reader's internal
    buffer and are only valid until the next "next parameter" call, so
    anything kept past that point must be copied out first.

    Attributes:
        name: Parameter name (e.g. "vertex.position")
        is_array: True for array parameters, False for scalars
        element_type: Element type of the array (or the scalar's type)
        element_count: Number of elements (1 for scalars)
        data: Raw little-endian bytes of the value
    """
    name: str
    is_array: bool
    element_type: TypeTag
    element_count: int
    data: memoryview

    @property
    def data_bytes(self) -> int:
        return len(self.data)

    def copy_data(self) -> bytes:
        """Copy the backing bytes into caller-owned storage"""
        return bytes(self.data)

    def describe(self) -> str:
        if not self.is_array:
            return f"scalar, type={self.element_type.to_string()}"
        return f"array, type={self.element_type.to_string()}, count={self.element_count}"


@dataclass
class AGXHeader:
    """AGX file header

    Attributes:
        version: Format version
        time_steps: Number of timesteps declared by the file
        constant_param_count: Number of time-invariant parameters
        object_type: ANARI object type code of the animated object
        subtype: Object subtype (e.g. "triangle"), empty if not given
    """
    version: int
    time_steps: int
    constant_param_count: int
    object_type: int
    subtype: str = ""

    @property
    def end_time_code(self) -> float:
        return float(self.time_steps - 1 if self.time_steps > 0 else 0)


@dataclass
class TimeStepInfo:
    """Returned when a reader begins a timestep"""
    step_index: int
    param_count: int

    @property
    def time_code(self) -> float:
        return float(self.step_index)


@dataclass
class MeshTopology:
    """Face description of a polygon mesh

    Attributes:
        face_vertex_counts: Number of vertices per face
        face_vertex_indices: Flattened vertex indices of all faces
    """
    face_vertex_counts: np.ndarray
    face_vertex_indices: np.ndarray

    @classmethod
    def triangles(cls, indices: np.ndarray) -> 'MeshTopology':
        """Build an all-triangle topology from a flat index array"""
        return cls(
            face_vertex_counts=np.full(len(indices) // 3, 3, dtype=np.int32),
            face_vertex_indices=indices,
        )

    def is_consistent(self) -> bool:
        return int(self.face_vertex_counts.sum()) == len(self.face_vertex_indices)


@dataclass
class StageSettings:
    """Stage-level options for the generated USD file

    Attributes:
        fps: Time codes (and frames) per second
        up_axis: Stage up axis ("Y" or "Z")
        meters_per_unit: Linear units of the stage
        root_path: Path of the root Xform (also the default prim)
        mesh_name: Name of the mesh prim under the root
    """
    fps: float = 24.0
    up_axis: str = "Y"
    meters_per_unit: float = 1.0
    root_path: str = "/Geometry"
    mesh_name: str = "mesh"

    @property
    def mesh_path(self) -> str:
        return f"{self.root_path}/{self.mesh_name}"


@dataclass
class ConversionSummary:
    """Counters reported at the end of a conversion"""
    constants: int = 0
    time_steps: int = 0
    parameters: int = 0
    skipped: int = 0
    custom_arrays: List[str] = field(default_factory=list)
