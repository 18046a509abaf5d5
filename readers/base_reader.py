#!/usr/bin/env python3
"""
Base Reader Module
Abstract cursor interface for reading animated geometry streams (AGX)

A reader is a single-cursor, forward-only stream with two sections: the
constant parameters and the timesteps. Each section can only be restarted
through its reset method. Every "next" call invalidates the ParameterView
returned by the previous one.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from core.param_data import AGXHeader, ParameterView, TimeStepInfo


class BaseReader(ABC):
    """Abstract base class for AGX stream readers

    Subclasses implement the cursor methods. Readers are context managers
    so the underlying resources are released on every exit path.
    """

    def __init__(self, file_path: Optional[str] = None):
        """Initialize reader

        Args:
            file_path: Path to the source file (None for in-memory streams)
        """
        self.file_path = Path(file_path) if file_path is not None else None
        self._header_cache = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @abstractmethod
    def get_format_name(self) -> str:
        """Return human-readable format name"""
        pass

    @abstractmethod
    def read_header(self) -> AGXHeader:
        """Read (or return the cached) stream header

        Raises:
            HeaderReadError: If the header is missing or malformed
        """
        pass

    def get_subtype(self) -> str:
        """Object subtype declared in the header, empty if none"""
        return self.read_header().subtype

    @abstractmethod
    def reset_constants(self):
        """Rewind the constant-parameter cursor to the first constant"""
        pass

    @abstractmethod
    def next_constant(self) -> Optional[ParameterView]:
        """Advance to the next constant parameter

        Returns:
            ParameterView: The next constant, or None when exhausted

        Raises:
            StreamReadError: If the record cannot be read
        """
        pass

    @abstractmethod
    def reset_time_steps(self):
        """Rewind the timestep cursor to the first timestep"""
        pass

    @abstractmethod
    def begin_next_time_step(self) -> Optional[TimeStepInfo]:
        """Advance to the next timestep

        Any parameters of the current timestep that were not read are skipped.

        Returns:
            TimeStepInfo: Index and parameter count, or None when exhausted

        Raises:
            StreamReadError: If the timestep record cannot be read
        """
        pass

    @abstractmethod
    def next_time_step_param(self) -> Optional[ParameterView]:
        """Advance to the next parameter of the current timestep

        Returns:
            ParameterView: The next parameter, or None when the step is exhausted

        Raises:
            StreamReadError: If the record cannot be read
        """
        pass

    def close(self):
        """Release the underlying resources (default: nothing to release)"""
        pass

    def iter_constants(self) -> Iterator[ParameterView]:
        """Reset the constant cursor and yield every constant in stream order"""
        self.reset_constants()
        while True:
            view = self.next_constant()
            if view is None:
                return
            yield view

    def iter_time_step_params(self) -> Iterator[ParameterView]:
        """Yield the remaining parameters of the current timestep"""
        while True:
            view = self.next_time_step_param()
            if view is None:
                return
            yield view
