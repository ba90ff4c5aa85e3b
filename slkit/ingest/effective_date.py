"""
Effective-date resolution for registry snapshots.

Prices in the registry export are historical series; the date a snapshot is
"as of" decides which sample is in force. The date comes from the bundles
themselves when they carry a timestamp, otherwise from a caller-supplied
fallback derived from the file name or file metadata.
"""

import logging
from collections import Counter
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"


def parse_date_str(value: Any) -> Optional[date]:
    """
    Parse the date part of an ISO-8601 string.

    Only the first 10 characters (``YYYY-MM-DD``) are read; time of day and
    zone are ignored.

    Returns:
        date, or None if the value is not a string or not a valid date
    """
    if not isinstance(value, str) or len(value) < 10:
        return None
    head = value[:10]
    if head[4] != "-" or head[7] != "-":
        return None
    if not (head[0:4].isdigit() and head[5:7].isdigit() and head[8:10].isdigit()):
        return None
    try:
        return date(int(head[0:4]), int(head[5:7]), int(head[8:10]))
    except ValueError:
        return None


def bundle_timestamp(bundle: Dict[str, Any]) -> Optional[str]:
    """Top-level ``timestamp``, else ``meta.lastUpdated``."""
    timestamp = bundle.get("timestamp")
    if isinstance(timestamp, str):
        return timestamp
    meta = bundle.get("meta")
    if isinstance(meta, dict) and isinstance(meta.get("lastUpdated"), str):
        return meta["lastUpdated"]
    return None


def resolve_effective_date(bundles: Iterable[Dict[str, Any]], fallback: date) -> date:
    """
    Pick the as-of date for price resolution.

    The most frequent bundle date wins. When several dates share the top
    count, the latest of them is chosen. Bundles without a parsable timestamp
    do not vote; if none votes, ``fallback`` is returned unchanged.

    Args:
        bundles: Loaded bundle documents
        fallback: Date to use when no bundle carries a timestamp

    Returns:
        Effective date
    """
    counts: Counter = Counter()
    for bundle in bundles:
        parsed = parse_date_str(bundle_timestamp(bundle))
        if parsed is not None:
            counts[parsed] += 1

    if not counts:
        logger.info("No bundle timestamp found, using fallback date %s", fallback.isoformat())
        return fallback

    top = max(counts.values())
    effective = max(d for d, n in counts.items() if n == top)
    logger.info(
        "Using bundle effective date %s for price evaluation",
        effective.strftime("%d.%m.%Y")
    )
    return effective


def _date_label_from_stem(stem: str) -> Optional[str]:
    """Find a ``dd.mm.yyyy`` part in an underscore-separated file stem."""
    for part in stem.split("_"):
        segments = part.split(".")
        if (
            len(segments) == 3
            and 1 <= len(segments[0]) <= 2
            and 1 <= len(segments[1]) <= 2
            and len(segments[2]) == 4
            and all(s.isdigit() for s in segments)
        ):
            return part
    return None


def _label_to_date(label: str) -> Optional[date]:
    day, month, year = label.split(".")
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def fallback_date_for(path: str, today: Optional[date] = None) -> Tuple[str, date]:
    """
    Derive the caller-side fallback date for a snapshot file.

    Order:
    1. A ``dd.mm.yyyy`` part in the file name (e.g. ``sl_foph_06.01.2026.ndjson``)
    2. The file's modification date
    3. ``today`` (label ``unknown``)

    Args:
        path: Snapshot file path
        today: Override for the final fallback (defaults to ``date.today()``)

    Returns:
        (label, date) where label is ``dd.mm.yyyy`` or ``unknown``
    """
    label = _date_label_from_stem(Path(path).stem)
    if label is not None:
        parsed = _label_to_date(label)
        if parsed is not None:
            return label, parsed

    try:
        mtime = Path(path).stat().st_mtime
    except OSError:
        return UNKNOWN_LABEL, today or date.today()

    modified = datetime.fromtimestamp(mtime).date()
    return modified.strftime("%d.%m.%Y"), modified
