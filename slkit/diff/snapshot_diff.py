"""
Snapshot diff engine for comparing resolved registry snapshots.

This module answers "what changed?" between two PackageMaps:
- Uses the gtin as stable identity (never name or position)
- Compares resolved values only (prices as of each snapshot's own date)
- Produces field-level changes for packages present on both sides
- Treats price deltas up to PRICE_EPSILON as noise

Classification into the numeric change taxonomy happens in change_events.py.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from ..ingest.package_extract import PackageMap, PackageSnapshot
from ..schema import PRICE_EPSILON, PRICE_TYPES


@dataclass
class FieldChange:
    """
    A single field-level change of a package present in both snapshots.

    type is one of "SL_ENTRY_ADDED", "SL_ENTRY_REMOVED", "NAME_CHANGED",
    "PRICE_CHANGED"; field names the price type for price changes.
    """
    type: str
    field: Optional[str]
    from_value: Any
    to_value: Any


@dataclass
class ModifiedPackage:
    """A package present in both snapshots whose resolved state differs."""
    gtin: str
    old: PackageSnapshot
    new: PackageSnapshot
    changes: List[FieldChange]


@dataclass
class DiffResult:
    """
    Complete diff between two snapshots.

    Added and removed packages are kept whole (their resolved state is needed
    for the output payload); lists are in ascending gtin order.
    """
    added: List[PackageSnapshot]  # in new, not in old
    removed: List[PackageSnapshot]  # in old, not in new
    modified: List[ModifiedPackage]
    unchanged_count: int


def _price(snapshot: PackageSnapshot, price_type: str) -> float:
    return snapshot.retail_price if price_type == "retail" else snapshot.exfactory_price


def diff_package(old: PackageSnapshot, new: PackageSnapshot) -> List[FieldChange]:
    """
    Field-level diff of one package across snapshots.

    Each axis (listing status, name, each price type) is compared
    independently, so one package can change on several axes at once.
    """
    changes = []

    if not old.has_sl_entry and new.has_sl_entry:
        changes.append(FieldChange(type="SL_ENTRY_ADDED", field=None, from_value=False, to_value=True))
    elif old.has_sl_entry and not new.has_sl_entry:
        changes.append(FieldChange(type="SL_ENTRY_REMOVED", field=None, from_value=True, to_value=False))

    # Exact comparison: whitespace and case changes count
    if old.name != new.name:
        changes.append(FieldChange(type="NAME_CHANGED", field="name", from_value=old.name, to_value=new.name))

    for price_type in PRICE_TYPES:
        old_price = _price(old, price_type)
        new_price = _price(new, price_type)
        if abs(new_price - old_price) > PRICE_EPSILON:
            changes.append(FieldChange(
                type="PRICE_CHANGED",
                field=price_type,
                from_value=old_price,
                to_value=new_price
            ))

    return changes


def diff_package_maps(old: PackageMap, new: PackageMap) -> DiffResult:
    """
    Compare two resolved snapshots keyed by gtin.

    Args:
        old: Baseline PackageMap
        new: Comparison PackageMap

    Returns:
        DiffResult with added, removed and modified packages
    """
    added = [new[gtin] for gtin in sorted(new.keys() - old.keys())]
    removed = [old[gtin] for gtin in sorted(old.keys() - new.keys())]

    modified = []
    unchanged_count = 0
    for gtin in sorted(old.keys() & new.keys()):
        changes = diff_package(old[gtin], new[gtin])
        if changes:
            modified.append(ModifiedPackage(gtin=gtin, old=old[gtin], new=new[gtin], changes=changes))
        else:
            unchanged_count += 1

    return DiffResult(
        added=added,
        removed=removed,
        modified=modified,
        unchanged_count=unchanged_count
    )
