#!/usr/bin/env python3
"""Example: Diff two reimbursement-list exports and export the result to Excel.

This script demonstrates the library API behind the ``slkit`` command:
load both snapshots, diff their resolved packages, classify the changes and
write a workbook with one sheet per category.
"""

from slkit import Category, classify_diff, diff_package_maps, load_snapshot_pair
from slkit.report import export, summary_lines


def diff_snapshots(old_file: str, new_file: str, output_file: str):
    """Diff two snapshot files and export the classified changes.

    Args:
        old_file: Older NDJSON export, e.g. sl_foph_05.01.2026.ndjson
        new_file: Newer NDJSON export
        output_file: Target path (.json, .csv or .xlsx)
    """
    # Threads avoid process start-up cost for small files
    old, new = load_snapshot_pair(old_file, new_file, executor="thread")

    report = classify_diff(
        diff_package_maps(old.packages, new.packages),
        old_label=old.label,
        new_label=new.label,
    )
    export(report, output_file)

    print(f"✓ {len(old.packages)} packages on {old.effective_date}, "
          f"{len(new.packages)} on {new.effective_date}")
    print(f"✓ Output saved to: {output_file}")
    for line in summary_lines(report):
        print(line)

    rises = report.gtins_for(Category.RETAIL_UP)
    if rises:
        print(f"\nRetail price rises: {', '.join(rises[:10])}")

    return report


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 4:
        print("Usage: python run_diff.py <old_file> <new_file> <output_file>")
        print("\nExample:")
        print("  python run_diff.py sl_foph_05.01.2026.ndjson sl_foph_06.01.2026.ndjson diff.xlsx")
        sys.exit(1)

    diff_snapshots(sys.argv[1], sys.argv[2], sys.argv[3])
