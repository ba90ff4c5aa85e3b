"""Command-line entry point: diff two registry snapshot files."""

import argparse
import logging
import sys
from typing import List, Optional

from .adapters.ndjson_adapter import LoadError
from .diff.change_events import Category, UnknownCategoryError, classify_diff, resolve_category
from .diff.snapshot_diff import diff_package_maps
from .ingest.package_extract import EXECUTORS
from .ingest.snapshot_loader import load_snapshot_pair
from .report import DEFAULT_OUTPUT_DIR, export, output_filename, summary_lines

logger = logging.getLogger(__name__)

FORMAT_SUFFIXES = {"json": ".json", "csv": ".csv", "excel": ".xlsx"}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="slkit",
        description="Diff two reimbursement-list registry exports (newline-delimited FHIR bundles).",
    )
    ap.add_argument("old", help="older snapshot, e.g. ndjson/sl_foph_06.01.2026.ndjson")
    ap.add_argument("new", help="newer snapshot")
    ap.add_argument(
        "-c", "--category",
        help="print only the gtins of one category, one per line "
             f"({', '.join(c.value for c in Category)})",
    )
    ap.add_argument("-o", "--output-dir", default=DEFAULT_OUTPUT_DIR, help="directory for the diff file")
    ap.add_argument("-f", "--format", choices=sorted(FORMAT_SUFFIXES), default="json")
    ap.add_argument("--chunk-size", type=int, default=None, help="bundles per worker chunk")
    ap.add_argument("--workers", type=int, default=None, help="worker count (default: CPU count)")
    # Both snapshots already load on threads; forking pools from them is unsafe
    ap.add_argument("--executor", choices=EXECUTORS, default="thread", help="chunk worker pool (default: thread)")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Validate the selector before touching any input
    category = None
    if args.category is not None:
        try:
            category = resolve_category(args.category)
        except UnknownCategoryError as e:
            ap.print_usage(sys.stderr)
            print(str(e), file=sys.stderr)
            return 1

    try:
        old, new = load_snapshot_pair(
            args.old,
            args.new,
            chunk_size=args.chunk_size,
            max_workers=args.workers,
            executor=args.executor,
        )
    except LoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("Old date: %s, new date: %s", old.label, new.label)
    report = classify_diff(
        diff_package_maps(old.packages, new.packages),
        old_label=old.label,
        new_label=new.label,
    )

    if category is not None:
        for gtin in report.gtins_for(category):
            print(gtin)
        return 0

    path = output_filename(report, args.output_dir, suffix=FORMAT_SUFFIXES[args.format])
    export(report, str(path), format=args.format)
    print(f"Diff written to {path}")
    for line in summary_lines(report):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
