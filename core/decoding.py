#!/usr/bin/env python3
"""
Decoding Module
Bounds-checked conversion of raw parameter bytes into typed numpy arrays.

Every decoder returns a freshly allocated array that the caller owns, so the
result stays valid after the reader moves on to the next parameter. A view
whose type, shape or byte length does not fit raises ShapeMismatch, which
callers treat as "skip this parameter" rather than as a failure.
"""

from typing import Iterable

import numpy as np

from .param_data import FLOAT32_BY_ARITY, ParameterView, TypeTag

INDEX_TYPES = (TypeTag.UINT32, TypeTag.UINT32_VEC3)


class ShapeMismatch(ValueError):
    """Parameter data does not have the type or shape a role requires"""


def _check_array(view: ParameterView, allowed: Iterable[TypeTag]):
    allowed = tuple(allowed)
    if not view.is_array:
        raise ShapeMismatch(f"'{view.name}' is not an array")
    if view.element_type not in allowed:
        expected = ' or '.join(t.to_string() for t in allowed)
        raise ShapeMismatch(
            f"'{view.name}' has type {view.element_type.to_string()}, expected {expected}"
        )


def _frombuffer(view: ParameterView, tag: TypeTag, count: int) -> np.ndarray:
    """Copy `count` components of `tag`'s dtype out of the view"""
    needed = count * tag.dtype.itemsize
    if view.data_bytes < needed:
        raise ShapeMismatch(
            f"'{view.name}' holds {view.data_bytes} bytes, {needed} required"
        )
    return np.frombuffer(view.data, dtype=tag.dtype, count=count).copy()


def decode_elements(view: ParameterView, tag: TypeTag) -> np.ndarray:
    """Decode an array parameter of exactly the given element type

    Args:
        view: Parameter to decode
        tag: Required element type

    Returns:
        np.ndarray: Shape (count,) for scalar elements, (count, n) for vectors

    Raises:
        ShapeMismatch: If the view is not an array of `tag` or is too short
    """
    _check_array(view, (tag,))
    values = _frombuffer(view, tag, view.element_count * tag.components)
    if tag.components > 1:
        values = values.reshape(view.element_count, tag.components)
    return values


def decode_float_tuples(view: ParameterView, arity: int) -> np.ndarray:
    """Decode a float32 array whose elements have `arity` components"""
    return decode_elements(view, FLOAT32_BY_ARITY[arity])


def float_arity(view: ParameterView) -> int:
    """Arity (1-4) of a float32 array parameter

    Raises:
        ShapeMismatch: If the view is not a float32 scalar/vec2/vec3/vec4 array
    """
    _check_array(view, FLOAT32_BY_ARITY.values())
    return view.element_type.components


def decode_constant_indices(view: ParameterView) -> np.ndarray:
    """Decode a constant index buffer into int32 face-vertex indices

    Accepts UINT32 and UINT32_VEC3 arrays. The whole byte buffer is read as
    flat uint32 values, so the index count is data_bytes // 4.
    """
    _check_array(view, INDEX_TYPES)
    count = view.data_bytes // 4
    return _frombuffer(view, TypeTag.UINT32, count).astype(np.int32)


def decode_triangle_indices(view: ParameterView) -> np.ndarray:
    """Decode a UINT32_VEC3 triangle array into flat int32 indices"""
    _check_array(view, (TypeTag.UINT32_VEC3,))
    return _frombuffer(view, TypeTag.UINT32, view.element_count * 3).astype(np.int32)


def decode_custom_array(view: ParameterView) -> np.ndarray:
    """Decode a custom array that can be written out as a primvar

    Supported element types are float32 scalar through vec4 and int32/uint32
    scalars (uint32 is widened to int32).
    """
    tag = view.element_type
    if tag in (TypeTag.INT32, TypeTag.UINT32):
        return decode_elements(view, tag).astype(np.int32)
    float_arity(view)
    return decode_elements(view, tag)
