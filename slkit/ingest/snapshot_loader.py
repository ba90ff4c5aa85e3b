"""
Snapshot loading: file -> bundles -> effective date -> resolved PackageMap.

The old and new snapshots share no state, so a pair is loaded as two
concurrent tasks. A load failure on either side propagates before any diff
is attempted.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from ..adapters.ndjson_adapter import NdjsonBundleAdapter
from .effective_date import fallback_date_for, resolve_effective_date
from .package_extract import PackageMap, build_package_map

logger = logging.getLogger(__name__)


@dataclass
class LoadedSnapshot:
    """One snapshot, fully resolved and ready for diffing."""
    path: str
    label: str  # dd.mm.yyyy from the file name / mtime, or "unknown"
    effective_date: date
    packages: PackageMap


def load_snapshot(
    path: str,
    fallback: Optional[date] = None,
    chunk_size: Optional[int] = None,
    max_workers: Optional[int] = None,
    executor: str = "process",
    adapter: Optional[NdjsonBundleAdapter] = None,
) -> LoadedSnapshot:
    """
    Load one snapshot file and resolve its packages.

    Args:
        path: Snapshot file path
        fallback: As-of date used when no bundle carries a timestamp
            (default: derived from the file name, then file mtime)
        chunk_size, max_workers, executor: See ``build_package_map``
        adapter: Bundle adapter (default: NdjsonBundleAdapter)

    Returns:
        LoadedSnapshot

    Raises:
        LoadError: If the file yields no bundles
    """
    label, derived = fallback_date_for(path)
    if fallback is None:
        fallback = derived

    adapter = adapter or NdjsonBundleAdapter()
    bundles = adapter.read(path)
    effective_date = resolve_effective_date(bundles, fallback)
    packages = build_package_map(
        bundles,
        effective_date,
        chunk_size=chunk_size,
        max_workers=max_workers,
        executor=executor,
    )
    logger.info("Found %d packages in %s", len(packages), path)

    return LoadedSnapshot(
        path=str(path),
        label=label,
        effective_date=effective_date,
        packages=packages,
    )


def load_snapshot_pair(
    old_path: str,
    new_path: str,
    **options,
) -> Tuple[LoadedSnapshot, LoadedSnapshot]:
    """
    Load the old and new snapshots concurrently.

    Keyword options are passed to ``load_snapshot`` for both sides.

    Raises:
        LoadError: If either file yields no bundles
    """
    with ThreadPoolExecutor(max_workers=2) as pool:
        old_future = pool.submit(load_snapshot, old_path, **options)
        new_future = pool.submit(load_snapshot, new_path, **options)
        old = old_future.result()
        new = new_future.result()
    return old, new
