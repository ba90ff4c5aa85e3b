"""Registry snapshot ingestion: effective dates, package extraction, price resolution."""

from .effective_date import (
    parse_date_str,
    resolve_effective_date,
    fallback_date_for,
)
from .price_resolver import PriceSample, PriceSeries, add_sample, resolve_price
from .package_extract import (
    PackageSnapshot,
    PackageRecord,
    PackageMap,
    extract_bundle_records,
    process_bundles,
    merge_package_maps,
    build_package_map,
)
from .snapshot_loader import LoadedSnapshot, load_snapshot, load_snapshot_pair

# NOTE: diff types are NOT re-exported here.
# Import diff types from slkit.diff instead:
#   from slkit.diff import diff_package_maps, DiffResult, ...

__all__ = [
    "parse_date_str",
    "resolve_effective_date",
    "fallback_date_for",
    "PriceSample",
    "PriceSeries",
    "add_sample",
    "resolve_price",
    "PackageSnapshot",
    "PackageRecord",
    "PackageMap",
    "extract_bundle_records",
    "process_bundles",
    "merge_package_maps",
    "build_package_map",
    "LoadedSnapshot",
    "load_snapshot",
    "load_snapshot_pair",
]
