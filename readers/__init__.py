#!/usr/bin/env python3
"""
Readers Module
Stream readers for animated geometry files (AGX)
"""

from pathlib import Path

from core.errors import SourceOpenError

from .base_reader import BaseReader
from .agx_reader import AGXReader
from .memory_reader import MemoryReader, StoredParameter

# Supported file extensions
AGX_EXTENSIONS = {'.agx'}
SUPPORTED_EXTENSIONS = AGX_EXTENSIONS


def create_reader(input_file):
    """Factory function to create appropriate reader based on file extension

    Args:
        input_file: Path to input geometry file

    Returns:
        BaseReader: AGXReader instance

    Raises:
        SourceOpenError: If the extension is not supported or the file cannot be opened
    """
    if is_supported_format(input_file):
        return AGXReader(input_file)

    ext = Path(input_file).suffix.lower()
    raise SourceOpenError(
        f"Unsupported file format: {ext or '(none)'}\n"
        f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def is_supported_format(input_file):
    """Check if a file has a supported format

    Args:
        input_file: Path to input geometry file

    Returns:
        bool: True if format is supported
    """
    return Path(input_file).suffix.lower() in SUPPORTED_EXTENSIONS


__all__ = [
    'BaseReader',
    'AGXReader',
    'MemoryReader',
    'StoredParameter',
    'create_reader',
    'is_supported_format',
    'AGX_EXTENSIONS',
    'SUPPORTED_EXTENSIONS',
]
