"""
Report emitters.

This package serialises verification results to table, CSV and JSON files.
"""

from .writer import REPORT_FORMATS, render_table, write_report

__all__ = ["REPORT_FORMATS", "render_table", "write_report"]
