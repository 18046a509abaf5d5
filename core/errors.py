#!/usr/bin/env python3
"""
Errors Module
Exception hierarchy for AGX to USD conversion.

Each error carries the process exit code the command line tool reports for it.
"""


class AGXConversionError(Exception):
    """Base class for all conversion failures"""
    exit_code = 3


class UsageError(AGXConversionError):
    """Bad or missing command line arguments"""
    exit_code = 1


class SourceOpenError(AGXConversionError):
    """The input AGX file cannot be opened"""
    exit_code = 2


class ConversionError(AGXConversionError):
    """Any failure after the input was opened"""
    exit_code = 3


class HeaderReadError(ConversionError):
    """The AGX header is missing or malformed"""


class DocumentCreateError(ConversionError):
    """The USD stage cannot be created at the output path"""


class StreamReadError(ConversionError):
    """A constant or timestep parameter record cannot be read"""
