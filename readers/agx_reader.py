#!/usr/bin/env python3
"""
AGX Reader Module
Streaming reader for AGX animated geometry files implementing the BaseReader interface

File layout (all fields little-endian):

    header     magic "AGX1", version u32, object_type u32, time_steps u32,
               constant_param_count u32, subtype_len u32, subtype (utf-8)
    constants  constant_param_count parameter records
    timesteps  repeated: step_index u32, param_count u32, param_count records

    record     name_len u32, name (utf-8), is_array u8, element_type u32,
               element_count u64, data_bytes u64, data
"""

import os
import struct
from typing import Optional

from core.errors import HeaderReadError, SourceOpenError, StreamReadError
from core.param_data import AGXHeader, ParameterView, TimeStepInfo, TypeTag

from .base_reader import BaseReader

AGX_MAGIC = b'AGX1'
HEADER_STRUCT = struct.Struct('<4sIIIII')
NAME_LEN_STRUCT = struct.Struct('<I')
PARAM_INFO_STRUCT = struct.Struct('<BIQQ')
STEP_STRUCT = struct.Struct('<II')


class AGXReader(BaseReader):
    """Forward-only AGX file reader

    The constant and timestep cursors keep their own file offsets, so the two
    sections can be walked independently. Parameter data is read into one
    reusable buffer: the memoryview inside a returned ParameterView is
    overwritten by the next read.
    """

    def __init__(self, agx_file):
        """Open the AGX file

        Args:
            agx_file: Path to AGX (.agx) file

        Raises:
            SourceOpenError: If the file cannot be opened
        """
        super().__init__(agx_file)
        try:
            self._stream = open(self.file_path, 'rb')
        except OSError as e:
            raise SourceOpenError(f"Failed to open AGX file: {agx_file} ({e})") from e
        self._file_size = os.fstat(self._stream.fileno()).st_size
        self._buffer = bytearray()

        self._constants_offset = None
        self._steps_offset = None

        self._constant_pos = None
        self._constants_remaining = 0

        self._step_pos = None
        self._steps_read = 0
        self._step_params_remaining = 0

    def get_format_name(self):
        return "AGX"

    def close(self):
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    # === LOW LEVEL ===

    def _read_exact(self, num_bytes, error_cls, what):
        data = self._stream.read(num_bytes)
        if len(data) < num_bytes:
            raise error_cls(
                f"Truncated AGX file: expected {num_bytes} bytes of {what} "
                f"at offset {self._stream.tell() - len(data)}, got {len(data)}"
            )
        return data

    def _read_record_info(self):
        """Read a record's fixed fields, leaving the stream at its data"""
        (name_len,) = NAME_LEN_STRUCT.unpack(
            self._read_exact(NAME_LEN_STRUCT.size, StreamReadError, "parameter name length"))
        raw_name = self._read_exact(name_len, StreamReadError, "parameter name")
        try:
            name = raw_name.decode('utf-8')
        except UnicodeDecodeError as e:
            raise StreamReadError(f"Parameter name is not valid UTF-8: {raw_name!r}") from e

        is_array, type_code, element_count, data_bytes = PARAM_INFO_STRUCT.unpack(
            self._read_exact(PARAM_INFO_STRUCT.size, StreamReadError, "parameter info"))

        remaining = self._file_size - self._stream.tell()
        if data_bytes > remaining:
            raise StreamReadError(
                f"Parameter '{name}' declares {data_bytes} data bytes, "
                f"only {remaining} left in file"
            )
        return name, bool(is_array), TypeTag.from_code(type_code), element_count, data_bytes

    def _read_param(self) -> ParameterView:
        name, is_array, element_type, element_count, data_bytes = self._read_record_info()

        if len(self._buffer) < data_bytes:
            self._buffer = bytearray(data_bytes)
        data = memoryview(self._buffer)[:data_bytes]
        if self._stream.readinto(data) < data_bytes:
            raise StreamReadError(f"Truncated data for parameter '{name}'")

        return ParameterView(
            name=name,
            is_array=is_array,
            element_type=element_type,
            element_count=element_count,
            data=data,
        )

    def _skip_param(self):
        *_, data_bytes = self._read_record_info()
        self._stream.seek(data_bytes, os.SEEK_CUR)

    # === HEADER ===

    def read_header(self):
        if self._header_cache is not None:
            return self._header_cache

        self._stream.seek(0)
        raw = self._stream.read(HEADER_STRUCT.size)
        if len(raw) < HEADER_STRUCT.size:
            raise HeaderReadError(f"File too small for an AGX header: {self.file_path}")

        magic, version, object_type, time_steps, constant_count, subtype_len = HEADER_STRUCT.unpack(raw)
        if magic != AGX_MAGIC:
            raise HeaderReadError(f"Not an AGX file (bad magic {magic!r}): {self.file_path}")

        raw_subtype = self._stream.read(subtype_len)
        if len(raw_subtype) < subtype_len:
            raise HeaderReadError(f"Truncated AGX header subtype: {self.file_path}")
        try:
            subtype = raw_subtype.decode('utf-8')
        except UnicodeDecodeError as e:
            raise HeaderReadError(f"AGX subtype is not valid UTF-8: {raw_subtype!r}") from e

        self._constants_offset = self._stream.tell()
        self._header_cache = AGXHeader(
            version=version,
            time_steps=time_steps,
            constant_param_count=constant_count,
            object_type=object_type,
            subtype=subtype,
        )
        return self._header_cache

    # === CONSTANTS ===

    def reset_constants(self):
        header = self.read_header()
        self._constant_pos = self._constants_offset
        self._constants_remaining = header.constant_param_count

    def next_constant(self) -> Optional[ParameterView]:
        if self._constant_pos is None:
            self.reset_constants()
        if self._constants_remaining == 0:
            return None

        self._stream.seek(self._constant_pos)
        view = self._read_param()
        self._constant_pos = self._stream.tell()
        self._constants_remaining -= 1
        return view

    # === TIMESTEPS ===

    def _find_steps_offset(self):
        """Offset of the first timestep block (skips over all constants)"""
        if self._steps_offset is None:
            header = self.read_header()
            self._stream.seek(self._constants_offset)
            for _ in range(header.constant_param_count):
                self._skip_param()
            self._steps_offset = self._stream.tell()
        return self._steps_offset

    def reset_time_steps(self):
        self._step_pos = self._find_steps_offset()
        self._steps_read = 0
        self._step_params_remaining = 0

    def begin_next_time_step(self) -> Optional[TimeStepInfo]:
        if self._step_pos is None:
            self.reset_time_steps()

        self._stream.seek(self._step_pos)
        while self._step_params_remaining > 0:
            self._skip_param()
            self._step_params_remaining -= 1
        self._step_pos = self._stream.tell()

        if self._steps_read >= self.read_header().time_steps:
            return None

        self._stream.seek(self._step_pos)
        raw = self._stream.read(STEP_STRUCT.size)
        if not raw:
            return None
        if len(raw) < STEP_STRUCT.size:
            raise StreamReadError(f"Truncated timestep record at offset {self._step_pos}")

        step_index, param_count = STEP_STRUCT.unpack(raw)
        self._step_pos = self._stream.tell()
        self._steps_read += 1
        self._step_params_remaining = param_count
        return TimeStepInfo(step_index=step_index, param_count=param_count)

    def next_time_step_param(self) -> Optional[ParameterView]:
        if self._step_params_remaining == 0:
            return None

        self._stream.seek(self._step_pos)
        view = self._read_param()
        self._step_pos = self._stream.tell()
        self._step_params_remaining -= 1
        return view
