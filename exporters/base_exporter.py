#!/usr/bin/env python3
"""
Base Exporter Module
Abstract base class for the output side of a conversion

An exporter owns the output document for one conversion run: it is created
once, receives role-specific values (optionally at a time code) and is
either saved or discarded at the end.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class BaseExporter(ABC):
    """Abstract base class for output document builders

    Key principles:
    - Single Responsibility: Each exporter handles ONE output format
    - Shared Utilities: Common functionality (logging, path validation) provided here
    """

    def __init__(self, progress_callback=None, quiet=False):
        """Initialize exporter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
            quiet: If True, messages only go to the callback
        """
        self.progress_callback = progress_callback
        self.quiet = quiet

    def log(self, message):
        """Send progress/status message

        Args:
            message: Message to log
        """
        if self.progress_callback:
            self.progress_callback(message)
        if not self.quiet:
            print(message)

    @abstractmethod
    def get_format_name(self):
        """Return human-readable format name (e.g. "USD")"""
        pass

    @abstractmethod
    def save(self):
        """Write the output document to disk"""
        pass

    @abstractmethod
    def discard(self):
        """Drop the output document without saving it"""
        pass

    def validate_output_path(self, output_file):
        """Validate the output file path and create its directory if needed

        Args:
            output_file: Output file path

        Returns:
            Path: Validated Path object

        Raises:
            ValueError: If path is invalid
        """
        path = Path(output_file)
        if path.exists() and path.is_dir():
            raise ValueError(f"Output path is a directory: {path}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ValueError(f"Cannot create output directory {path.parent}: {e}")

        return path
