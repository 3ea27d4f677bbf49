#
# config/__init__.py
#
"""
Configuration handling sub-package for tapharness.

Exports the loading function and core configuration models.
"""

from .loader import apply_overrides, load_config
from .models import (
    GlobalConfig,
    HarnessConfig,
    TapHarnessConfig,
    TranscriptConfig,
)

__all__ = [
    "GlobalConfig",
    "HarnessConfig",
    "TapHarnessConfig",
    "TranscriptConfig",
    "apply_overrides",
    "load_config",
]

# 🔼⚙️
