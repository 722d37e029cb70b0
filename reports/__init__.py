"""
Result output for headerpwn
"""

from .console import ResultPrinter, ScanSummary
from .generator import ReportGenerator

__all__ = [
    "ResultPrinter",
    "ScanSummary",
    "ReportGenerator",
]
