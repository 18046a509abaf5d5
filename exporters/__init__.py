#!/usr/bin/env python3
"""
Exporters Module
Output document builders (USD)
"""

from .base_exporter import BaseExporter
from .usd_exporter import USDExporter

__all__ = [
    'BaseExporter',
    'USDExporter',
]
