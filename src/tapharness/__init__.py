#
# src/tapharness/__init__.py
#
"""
tapharness: runs TAP-emitting test programs and reports aggregate results.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tapharness")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# 🔼⚙️
