"""Combine stored result files into one Excel workbook.

Usage:
    rgpv-combine
    rgpv-combine --input ./results/cs23 --output CS_Results.xlsx
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Union

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..config.logger import configure_logging, logger
from ..storage.json_store import is_result_file

BASE_HEADERS = ["name", "rollNo", "cgpa", "sgpa"]

FAIL_GRADES = ("F", "F (ABS)")
FAIL_FILL = PatternFill(start_color="FFFF0000", end_color="FFFF0000", fill_type="solid")
ABSENT_GRADE = "D##"
ABSENT_FILL = PatternFill(start_color="FFDDDDDD", end_color="FFDDDDDD", fill_type="solid")


def read_student_rows(folder: Union[str, Path]) -> List[Dict[str, Any]]:
    """Flatten every result file in ``folder`` into one row per student.

    Batch summaries (``batch_*``, ``range_*``) are skipped.

    Raises:
        FileNotFoundError: If ``folder`` does not exist.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise FileNotFoundError(f"Directory not found: {folder}")

    rows = []
    for path in sorted(folder.iterdir()):
        if not path.is_file() or not is_result_file(path):
            continue

        data = json.loads(path.read_text(encoding="utf-8"))
        student = data.get("student", {})
        results = data.get("results", {})
        row = {
            "name": student.get("name", ""),
            "rollNo": student.get("roll_no", ""),
            "cgpa": results.get("cgpa", ""),
            "sgpa": results.get("sgpa", ""),
        }
        for subject in data.get("subjects", []):
            if isinstance(subject.get("grade"), str):
                row[subject["subject"]] = subject["grade"]
        rows.append(row)

    return rows


def build_workbook(rows: List[Dict[str, Any]]) -> Workbook:
    """Build a "Results" sheet with one row per student.

    Subject columns follow the base columns in the order they are first seen.
    Failed grades are filled red and ``D##`` grey.
    """
    headers = list(BASE_HEADERS)
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)

    wb = Workbook()
    ws = wb.active
    ws.title = "Results"

    ws.append(headers)
    header_font = Font(bold=True)
    for col in range(1, len(headers) + 1):
        ws.cell(row=1, column=col).font = header_font
        ws.column_dimensions[get_column_letter(col)].width = 14
    ws.freeze_panes = "C2"

    for row in rows:
        ws.append([row.get(header) or "" for header in headers])

    for excel_row in ws.iter_rows(min_row=2):
        for cell in excel_row:
            if cell.value in FAIL_GRADES:
                cell.fill = FAIL_FILL
            elif cell.value == ABSENT_GRADE:
                cell.fill = ABSENT_FILL

    return wb


def export_results(folder: Union[str, Path], output: Union[str, Path]) -> int:
    """Write every result in ``folder`` to the workbook ``output``.

    Returns:
        Number of student rows written.

    Raises:
        FileNotFoundError: If ``folder`` does not exist.
        ValueError: If ``folder`` holds no result files.
    """
    rows = read_student_rows(folder)
    if not rows:
        raise ValueError(f"No JSON result files found in {folder}")

    build_workbook(rows).save(str(output))
    logger.info("results_exported", folder=str(folder), output=str(output), rows=len(rows))
    return len(rows)


def run() -> None:
    """Entry point for ``rgpv-combine``."""
    parser = argparse.ArgumentParser(description="Excel converter for RGPV results")
    parser.add_argument("-i", "--input", default="./results", help="Folder with JSON result files")
    parser.add_argument("-o", "--output", default="Results.xlsx", help="Output Excel file path")
    args = parser.parse_args()

    configure_logging(json_logs=False)
    print(f"Reading results from: {args.input}")
    print(f"Writing Excel to: {args.output}")

    try:
        count = export_results(args.input, args.output)
    except (FileNotFoundError, ValueError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Excel file created successfully with {count} student records!")


if __name__ == "__main__":
    run()
