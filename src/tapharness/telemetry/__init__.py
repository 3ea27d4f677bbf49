#
# src/tapharness/telemetry/__init__.py
#
"""
Diagnostic logging for tapharness, built on structlog.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
