"""Serialization of diff reports: JSON document, CSV and Excel exports, summary."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl

from .diff.change_events import Category, DiffReport, NumericFlag, flag_legend
from .ingest.effective_date import UNKNOWN_LABEL

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "ndjson"

# Columns for flat exports; category-specific fields are blank where absent
EXPORT_HEADERS = [
    "category",
    "gtin",
    "name",
    "flags",
    "type",
    "old_price",
    "new_price",
    "difference",
    "old_name",
    "new_name",
    "retail_price",
    "exfactory_price",
]

# Flag shown next to each category in the summary table
SUMMARY_FLAGS = {
    Category.NEW: NumericFlag.NEW,
    Category.DEL: NumericFlag.DELETE,
    Category.SL_ENTRY: NumericFlag.SL_ENTRY,
    Category.SL_ENTRY_DELETE: NumericFlag.SL_ENTRY_DELETE,
    Category.NAME_BASE: NumericFlag.NAME_BASE,
    Category.RETAIL_UP: NumericFlag.PRICE_RISE,
    Category.RETAIL_DOWN: NumericFlag.PRICE_CUT,
    Category.EXFACTORY_UP: NumericFlag.PRICE_RISE,
    Category.EXFACTORY_DOWN: NumericFlag.PRICE_CUT,
}


def output_filename(report: DiffReport, output_dir: str = DEFAULT_OUTPUT_DIR, suffix: str = ".json") -> Path:
    """``<output_dir>/diff_<old>-<new><suffix>``; unknown labels become old/new."""
    old = "old" if report.old_label == UNKNOWN_LABEL else report.old_label
    new = "new" if report.new_label == UNKNOWN_LABEL else report.new_label
    return Path(output_dir) / f"diff_{old}-{new}{suffix}"


def flat_rows(report: DiffReport) -> List[Dict[str, Any]]:
    """One row per record across all categories, flags joined with commas."""
    rows = []
    for category in Category:
        for record in report.records_for(category):
            row = {"category": category.value}
            row.update(record.to_dict())
            row["flags"] = ",".join(str(f) for f in row["flags"])
            rows.append(row)
    return rows


def export(report: DiffReport, output_path: str, format: Optional[str] = None) -> str:
    """Export a diff report to a file.

    Args:
        report: Classified diff report
        output_path: Path where the file should be saved
        format: Output format ('json', 'csv', 'excel', or None for auto-detect from extension)

    Returns:
        Path to the exported file

    Raises:
        ValueError: If format is not supported
    """
    output_path = Path(output_path)

    # Auto-detect format from extension if not provided
    if format is None:
        suffix = output_path.suffix.lower()
        if suffix in ['.csv', '.tsv']:
            format = 'csv'
        elif suffix in ['.xlsx', '.xls']:
            format = 'excel'
        else:
            format = 'json'

    format = format.lower()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if format == 'json':
        _export_json(report, output_path)
    elif format == 'csv':
        _export_csv(report, output_path)
    elif format == 'excel':
        _export_excel(report, output_path)
    else:
        raise ValueError(f"Unsupported export format: {format}. Supported formats: json, csv, excel")

    logger.info("Exported %s report to %s", format, output_path)
    return str(output_path)


def _export_json(report: DiffReport, output_path: Path) -> None:
    """Export the consumer document, pretty-printed."""
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)


def _export_csv(report: DiffReport, output_path: Path) -> None:
    """Export all records to a single CSV file."""
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_HEADERS, extrasaction='ignore')
        writer.writeheader()
        for row in flat_rows(report):
            complete_row = {
                header: '' if row.get(header) is None else row.get(header)
                for header in EXPORT_HEADERS
            }
            writer.writerow(complete_row)


def _export_excel(report: DiffReport, output_path: Path) -> None:
    """Export to an Excel workbook, one sheet per category."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    for category in Category:
        ws = wb.create_sheet(title=category.value)
        headers = [h for h in EXPORT_HEADERS if h != "category"]

        # Write headers
        for col_idx, header in enumerate(headers, start=1):
            ws.cell(row=1, column=col_idx, value=header)

        # Write data rows
        for row_idx, record in enumerate(report.records_for(category), start=2):
            row_data = record.to_dict()
            row_data["flags"] = ",".join(str(f) for f in row_data["flags"])
            for col_idx, header in enumerate(headers, start=1):
                ws.cell(row=row_idx, column=col_idx, value=row_data.get(header))

    legend_ws = wb.create_sheet(title="_flag_legend")
    legend_ws.cell(row=1, column=1, value="flag")
    legend_ws.cell(row=1, column=2, value="name")
    for row_idx, (code, name) in enumerate(flag_legend().items(), start=2):
        legend_ws.cell(row=row_idx, column=1, value=int(code))
        legend_ws.cell(row=row_idx, column=2, value=name)

    wb.save(output_path)


def summary_lines(report: DiffReport) -> List[str]:
    """Human-readable count per category with its flag code."""
    counts = report.counts()
    return [
        f"  flag {int(SUMMARY_FLAGS[category]):2d} {category.value + ':':<18}{counts[category]}"
        for category in Category
    ]
