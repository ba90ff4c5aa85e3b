from .adapters.ndjson_adapter import NdjsonBundleAdapter, LoadError
from .ingest import load_snapshot, load_snapshot_pair, build_package_map, resolve_effective_date
from .diff import diff_package_maps, classify_diff, DiffReport, Category, NumericFlag
from .schema import FLAG_LEGEND

__all__ = [
    "NdjsonBundleAdapter",
    "LoadError",
    "load_snapshot",
    "load_snapshot_pair",
    "build_package_map",
    "resolve_effective_date",
    "diff_package_maps",
    "classify_diff",
    "DiffReport",
    "Category",
    "NumericFlag",
    "FLAG_LEGEND",
]
