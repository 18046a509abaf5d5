"""Shared fixtures: AGX file writer and the two-triangle quad scenario."""

import numpy as np
import pytest

from core.param_data import TypeTag
from readers.agx_reader import AGX_MAGIC, HEADER_STRUCT, NAME_LEN_STRUCT, PARAM_INFO_STRUCT, STEP_STRUCT
from readers.memory_reader import StoredParameter

QUAD_POINTS = np.array(
    [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]],
    dtype=np.float32,
)
QUAD_INDICES = [0, 1, 2, 1, 2, 3]


def param(name, element_type, values=None, is_array=True):
    return StoredParameter.from_values(name, element_type, values, is_array=is_array)


def pack_param(p):
    raw_name = p.name.encode('utf-8')
    return (
        NAME_LEN_STRUCT.pack(len(raw_name)) + raw_name
        + PARAM_INFO_STRUCT.pack(int(p.is_array), int(p.element_type), p.element_count, len(p.payload))
        + p.payload
    )


def encode_agx(constants=(), time_steps=(), step_indices=None, version=1, object_type=0,
               subtype="triangle", declared_time_steps=None):
    """Encode an AGX file image from StoredParameter lists"""
    if declared_time_steps is None:
        declared_time_steps = len(time_steps)
    if step_indices is None:
        step_indices = range(len(time_steps))

    raw_subtype = subtype.encode('utf-8')
    out = bytearray(HEADER_STRUCT.pack(
        AGX_MAGIC, version, object_type, declared_time_steps, len(constants), len(raw_subtype)))
    out += raw_subtype
    for p in constants:
        out += pack_param(p)
    for step_index, params in zip(step_indices, time_steps):
        out += STEP_STRUCT.pack(step_index, len(params))
        for p in params:
            out += pack_param(p)
    return bytes(out)


def write_agx(path, *args, **kwargs):
    path.write_bytes(encode_agx(*args, **kwargs))
    return path


@pytest.fixture
def quad_constants():
    return [param("primitive.index", TypeTag.UINT32, QUAD_INDICES)]


@pytest.fixture
def quad_steps():
    return [
        [param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS)],
        [param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS + np.float32([0.0, 1.0, 0.0]))],
    ]


@pytest.fixture
def quad_agx(tmp_path, quad_constants, quad_steps):
    return write_agx(tmp_path / "quad.agx", quad_constants, quad_steps)
