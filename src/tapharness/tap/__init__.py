#
# src/tapharness/tap/__init__.py
#
"""
TAP stream handling: line reading, pragmas, and the protocol parser.
"""
from .parser import TapParser
from .pragmas import PRAGMAS, Pragma, PragmaRegistry, PragmaState, PragmaSwitch
from .reader import LineReader, ReadResult, ReadStatus

__all__ = [
    "PRAGMAS",
    "LineReader",
    "Pragma",
    "PragmaRegistry",
    "PragmaState",
    "PragmaSwitch",
    "ReadResult",
    "ReadStatus",
    "TapParser",
]

# 🔼⚙️
