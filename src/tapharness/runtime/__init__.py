#
# src/tapharness/runtime/__init__.py
#
"""
Test execution runtime: process orchestration, per-set runs, and the suite driver.
"""
from .process import TestProcess, start_test
from .runner import TestSetRunner
from .suite import SuiteDriver

__all__ = [
    "SuiteDriver",
    "TestProcess",
    "TestSetRunner",
    "start_test",
]

# 🔼⚙️
