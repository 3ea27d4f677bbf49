#
# src/tapharness/reporting/__init__.py
#
"""
Report output: classification, summaries, and the console they print to.
"""
from .console import ReportConsole
from .summary import SuiteTotals, analyze, fail_table, format_ranges, summarize

__all__ = [
    "ReportConsole",
    "SuiteTotals",
    "analyze",
    "fail_table",
    "format_ranges",
    "summarize",
]

# 🔼⚙️
