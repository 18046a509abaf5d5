#!/usr/bin/env python3
"""
Memory Reader Module
In-memory AGX stream implementing the BaseReader interface

Useful for building conversions programmatically (and for tests) without
writing an AGX file first.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from core.param_data import AGXHeader, ParameterView, TimeStepInfo, TypeTag

from .base_reader import BaseReader


@dataclass
class StoredParameter:
    """Parameter held by a MemoryReader

    Attributes:
        name: Parameter name
        is_array: True for arrays
        element_type: Element type tag
        element_count: Number of elements
        payload: Raw little-endian bytes
    """
    name: str
    is_array: bool
    element_type: TypeTag
    element_count: int
    payload: bytes

    @classmethod
    def from_values(cls, name, element_type, values, is_array=True):
        """Encode values with the dtype of `element_type`

        Args:
            name: Parameter name
            element_type: TypeTag the values are stored as
            values: Nested sequence or numpy array of values
            is_array: False to store a scalar
        """
        element_type = TypeTag(element_type)
        if element_type is TypeTag.UNKNOWN:
            return cls(name, is_array, element_type, 0, b'')
        arr = np.asarray(values, dtype=element_type.dtype)
        count = arr.size // element_type.components if is_array else 1
        return cls(name, is_array, element_type, count, arr.tobytes())

    def view(self) -> ParameterView:
        return ParameterView(
            name=self.name,
            is_array=self.is_array,
            element_type=self.element_type,
            element_count=self.element_count,
            data=memoryview(self.payload),
        )


class MemoryReader(BaseReader):
    """AGX stream backed by Python lists

    Timesteps are numbered by their position unless `step_indices` is given.
    """

    def __init__(self, constants: Sequence[StoredParameter] = (),
                 time_steps: Sequence[Sequence[StoredParameter]] = (),
                 step_indices: Optional[Sequence[int]] = None,
                 version=1, object_type=0, subtype="triangle", declared_time_steps=None):
        super().__init__()
        self.constants: List[StoredParameter] = list(constants)
        self.time_steps: List[List[StoredParameter]] = [list(step) for step in time_steps]
        if step_indices is None:
            step_indices = range(len(self.time_steps))
        self.step_indices = list(step_indices)
        if len(self.step_indices) != len(self.time_steps):
            raise ValueError("step_indices must have one entry per timestep")

        self._header_cache = AGXHeader(
            version=version,
            time_steps=len(self.time_steps) if declared_time_steps is None else declared_time_steps,
            constant_param_count=len(self.constants),
            object_type=object_type,
            subtype=subtype,
        )
        self._constant_cursor = 0
        self._step_cursor = 0
        self._current_step = None
        self._param_cursor = 0

    def get_format_name(self):
        return "AGX (memory)"

    def read_header(self):
        return self._header_cache

    def reset_constants(self):
        self._constant_cursor = 0

    def next_constant(self):
        if self._constant_cursor >= len(self.constants):
            return None
        param = self.constants[self._constant_cursor]
        self._constant_cursor += 1
        return param.view()

    def reset_time_steps(self):
        self._step_cursor = 0
        self._current_step = None
        self._param_cursor = 0

    def begin_next_time_step(self):
        if self._step_cursor >= len(self.time_steps):
            self._current_step = None
            return None
        self._current_step = self.time_steps[self._step_cursor]
        info = TimeStepInfo(step_index=self.step_indices[self._step_cursor],
                            param_count=len(self._current_step))
        self._step_cursor += 1
        self._param_cursor = 0
        return info

    def next_time_step_param(self):
        if self._current_step is None or self._param_cursor >= len(self._current_step):
            return None
        param = self._current_step[self._param_cursor]
        self._param_cursor += 1
        return param.view()
