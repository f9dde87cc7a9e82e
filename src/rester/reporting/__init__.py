"""
Rester Reporting

Console and JSON reporters for run results.
"""

from .base import Reporter
from .console import ConsoleReporter
from .json_report import JsonReporter, result_to_dict

__all__ = ["Reporter", "ConsoleReporter", "JsonReporter", "result_to_dict"]
