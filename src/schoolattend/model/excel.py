"""Export attendance reports to an Excel file."""

import logging
import pathlib
from typing import Any

import polars as pl
import xlsxwriter

from schoolattend.model import rates, schema


logger = logging.getLogger(__name__)


EMPTY_CELL = "-"


def grid_to_rows(grid: rates.MonthlyGrid) -> list[dict[str, Any]]:
    """Flatten a monthly grid into one dictionary per student."""
    rows = []
    for row in grid.rows:
        values: dict[str, Any] = {"اسم الطالب": row.student.name, "الصف": row.student.grade}
        for day, status in zip(grid.days, row.cells):
            label = EMPTY_CELL if status is None else schema.STATUS_LABELS[status]
            values[f"{day.day}/{day.month}"] = label
        values["حضور"] = row.present
        values["تأخير"] = row.late
        values["غياب"] = row.absent
        values["بعذر"] = row.excused
        rows.append(values)
    return rows


def write_monthly_report(
    grid: rates.MonthlyGrid,
    excel_path: pathlib.Path,
    cohorts: pl.DataFrame | None = None,
) -> None:
    """Write the monthly grid, and optionally the cohort summary, to a workbook."""
    workbook = xlsxwriter.Workbook(excel_path)
    _write_sheet(workbook, f"{grid.year}-{grid.month:02}", grid_to_rows(grid))
    if cohorts is not None:
        _write_sheet(workbook, "Cohorts", cohorts.to_dicts())
    workbook.close()
    logger.info("Wrote monthly report for %d-%02d to %s", grid.year, grid.month, excel_path)


def _write_sheet(
    workbook: xlsxwriter.Workbook, sheet_name: str, data: list[dict[str, Any]]
) -> None:
    """Write a table of data to a worksheet."""
    sheet = workbook.add_worksheet(sheet_name)
    sheet.right_to_left()
    if not data:
        return
    sheet.write_row(row=0, col=0, data=list(data[0].keys()))
    for row_number, row_values in enumerate(data):
        sheet.write_row(row=row_number + 1, col=0, data=list(row_values.values()))
