"""Spreadsheet export of stored results."""

from .excel import build_workbook, export_results, read_student_rows

__all__ = ["build_workbook", "export_results", "read_student_rows"]
