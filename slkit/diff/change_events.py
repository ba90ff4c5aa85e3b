"""
Change Record Classification for Registry Diffs (Layer 2)

This module turns a semantic snapshot diff into categorized, flag-tagged
change records for the downstream consumer.

ARCHITECTURE:
- Layer 1 (snapshot_diff.py): Answers "What changed?"
- Layer 2 (this module): Answers "Which category and flags does the consumer see?"

DESIGN PRINCIPLES:
1. Deterministic: Same inputs always produce the same document, in the same order
2. Fixed taxonomy: Flag codes are a shared contract and never change meaning
3. Independent categories: Each category is computed on its own; a package may
   appear in several categories (e.g. a name change and a retail price rise)
4. Exclusive per axis: A package and price type lands in at most one of up/down
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional

from ..schema import FLAG_LEGEND
from .snapshot_diff import DiffResult


# =============================================================================
# CHANGE TAXONOMY
# =============================================================================

class NumericFlag(IntEnum):
    """
    Numeric change flags shared with the downstream consumer.

    Values mirror FLAG_LEGEND. Codes 4-9, 12 and 16 are defined for the
    product-authorization source and are never emitted by this classifier.
    """
    NEW = 1
    SL_ENTRY_DELETE = 2
    NAME_BASE = 3
    ADDRESS = 4
    IKSCAT = 5
    COMPOSITION = 6
    INDICATION = 7
    SEQUENCE = 8
    EXPIRY_DATE = 9
    SL_ENTRY = 10
    PRICE = 11
    COMMENT = 12
    PRICE_RISE = 13
    DELETE = 14
    PRICE_CUT = 15
    NOT_SPECIFIED = 16


class Category(Enum):
    """Output categories, in document order."""
    NEW = "new"
    DEL = "del"
    SL_ENTRY = "sl_entry"
    SL_ENTRY_DELETE = "sl_entry_delete"
    NAME_BASE = "name_base"
    RETAIL_UP = "retail_up"
    RETAIL_DOWN = "retail_down"
    EXFACTORY_UP = "exfactory_up"
    EXFACTORY_DOWN = "exfactory_down"


# Selector aliases accepted by the category filter
CATEGORY_ALIASES: Dict[str, Category] = {
    "new": Category.NEW,
    "del": Category.DEL,
    "delete": Category.DEL,
    "sl_entry": Category.SL_ENTRY,
    "sl_entry_delete": Category.SL_ENTRY_DELETE,
    "name": Category.NAME_BASE,
    "name_base": Category.NAME_BASE,
    "productname": Category.NAME_BASE,
    "retail_up": Category.RETAIL_UP,
    "price_rise_retail": Category.RETAIL_UP,
    "retail_down": Category.RETAIL_DOWN,
    "price_cut_retail": Category.RETAIL_DOWN,
    "exfactory_up": Category.EXFACTORY_UP,
    "price_rise_exfactory": Category.EXFACTORY_UP,
    "exfactory_down": Category.EXFACTORY_DOWN,
    "price_cut_exfactory": Category.EXFACTORY_DOWN,
}


class UnknownCategoryError(ValueError):
    """Raised for a category selector that names no category."""

    def __init__(self, selector: str):
        self.selector = selector
        self.valid = [c.value for c in Category]
        super().__init__(
            f"Unknown category '{selector}'. Valid: {', '.join(self.valid)}"
        )


def resolve_category(selector: str) -> Category:
    """
    Map a user-supplied selector to a Category.

    Leading dashes are ignored, so ``--retail_up`` works like ``retail_up``.

    Raises:
        UnknownCategoryError: If the selector matches no category or alias
    """
    key = selector.lstrip("-")
    try:
        return CATEGORY_ALIASES[key]
    except KeyError:
        raise UnknownCategoryError(selector) from None


def flag_legend() -> Dict[str, str]:
    """The legend as emitted in documents: string keys "1".."16"."""
    return {str(code): name for code, name in sorted(FLAG_LEGEND.items())}


# =============================================================================
# CHANGE RECORD (Output Type)
# =============================================================================

@dataclass
class ChangeRecord:
    """
    One categorized change for one package.

    ``details`` holds the category-specific fields (prices for new/del,
    old_name/new_name for name changes, type/old_price/new_price/difference
    for price changes) in output order.
    """
    category: Category
    gtin: str
    name: str
    flags: List[NumericFlag]
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result = {
            "gtin": self.gtin,
            "name": self.name,
            "flags": [int(f) for f in self.flags],
        }
        result.update(self.details)
        return result


@dataclass
class DiffReport:
    """
    Complete classification result: one record list per category.

    Lists are in ascending gtin order.
    """
    records: Dict[Category, List[ChangeRecord]]
    old_label: str = "old"
    new_label: str = "new"

    def records_for(self, category: Category) -> List[ChangeRecord]:
        return self.records.get(category, [])

    def gtins_for(self, category: Category) -> List[str]:
        """The gtins of one category, in record order."""
        return [r.gtin for r in self.records_for(category)]

    def counts(self) -> Dict[Category, int]:
        return {c: len(self.records_for(c)) for c in Category}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the consumer document: legend first, then the nine arrays."""
        document: Dict[str, Any] = {"_flag_legend": flag_legend()}
        for category in Category:
            document[category.value] = [r.to_dict() for r in self.records_for(category)]
        return document


# =============================================================================
# CATEGORY RULES
# =============================================================================
# One function per category: (DiffResult) -> List[ChangeRecord].
# Rules share no state and can run in any order.

def _nullable_price(amount: float) -> Optional[float]:
    """0.0 means "no effective price" and is emitted as null."""
    return amount if amount > 0 else None


def _classify_new(diff: DiffResult) -> List[ChangeRecord]:
    return [
        ChangeRecord(
            category=Category.NEW,
            gtin=pkg.gtin,
            name=pkg.name,
            flags=[NumericFlag.NEW],
            details={
                "retail_price": _nullable_price(pkg.retail_price),
                "exfactory_price": _nullable_price(pkg.exfactory_price),
            }
        )
        for pkg in diff.added
    ]


def _classify_del(diff: DiffResult) -> List[ChangeRecord]:
    return [
        ChangeRecord(
            category=Category.DEL,
            gtin=pkg.gtin,
            name=pkg.name,
            flags=[NumericFlag.DELETE],
            details={
                "retail_price": _nullable_price(pkg.retail_price),
                "exfactory_price": _nullable_price(pkg.exfactory_price),
            }
        )
        for pkg in diff.removed
    ]


def _records_for_change(diff: DiffResult, change_type: str, category: Category,
                        flags: List[NumericFlag]) -> List[ChangeRecord]:
    records = []
    for modified in diff.modified:
        if any(c.type == change_type for c in modified.changes):
            records.append(ChangeRecord(
                category=category,
                gtin=modified.gtin,
                name=modified.new.name,
                flags=list(flags)
            ))
    return records


def _classify_sl_entry(diff: DiffResult) -> List[ChangeRecord]:
    """Rule: listed in new, not in old."""
    return _records_for_change(diff, "SL_ENTRY_ADDED", Category.SL_ENTRY, [NumericFlag.SL_ENTRY])


def _classify_sl_entry_delete(diff: DiffResult) -> List[ChangeRecord]:
    """Rule: listed in old, not in new."""
    return _records_for_change(
        diff, "SL_ENTRY_REMOVED", Category.SL_ENTRY_DELETE, [NumericFlag.SL_ENTRY_DELETE]
    )


def _classify_name_base(diff: DiffResult) -> List[ChangeRecord]:
    records = []
    for modified in diff.modified:
        for change in modified.changes:
            if change.type != "NAME_CHANGED":
                continue
            records.append(ChangeRecord(
                category=Category.NAME_BASE,
                gtin=modified.gtin,
                name=modified.new.name,
                flags=[NumericFlag.NAME_BASE],
                details={
                    "old_name": change.from_value,
                    "new_name": change.to_value,
                }
            ))
    return records


def _price_rule(price_type: str, rising: bool) -> Callable[[DiffResult], List[ChangeRecord]]:
    """
    Build the rule for one price type and direction.

    Flags are PRICE plus PRICE_RISE or PRICE_CUT.
    """
    category = Category(f"{price_type}_{'up' if rising else 'down'}")
    direction_flag = NumericFlag.PRICE_RISE if rising else NumericFlag.PRICE_CUT

    def rule(diff: DiffResult) -> List[ChangeRecord]:
        records = []
        for modified in diff.modified:
            for change in modified.changes:
                if change.type != "PRICE_CHANGED" or change.field != price_type:
                    continue
                difference = change.to_value - change.from_value
                if (difference > 0) != rising:
                    continue
                records.append(ChangeRecord(
                    category=category,
                    gtin=modified.gtin,
                    name=modified.new.name,
                    flags=[NumericFlag.PRICE, direction_flag],
                    details={
                        "type": price_type,
                        "old_price": _nullable_price(change.from_value),
                        "new_price": _nullable_price(change.to_value),
                        "difference": difference,
                    }
                ))
        return records

    rule.__name__ = f"_classify_{category.value}"
    return rule


CATEGORY_RULES: Dict[Category, Callable[[DiffResult], List[ChangeRecord]]] = {
    Category.NEW: _classify_new,
    Category.DEL: _classify_del,
    Category.SL_ENTRY: _classify_sl_entry,
    Category.SL_ENTRY_DELETE: _classify_sl_entry_delete,
    Category.NAME_BASE: _classify_name_base,
    Category.RETAIL_UP: _price_rule("retail", rising=True),
    Category.RETAIL_DOWN: _price_rule("retail", rising=False),
    Category.EXFACTORY_UP: _price_rule("exfactory", rising=True),
    Category.EXFACTORY_DOWN: _price_rule("exfactory", rising=False),
}


# =============================================================================
# MAIN CLASSIFICATION FUNCTION
# =============================================================================

def classify_diff(diff: DiffResult, old_label: str = "old", new_label: str = "new") -> DiffReport:
    """
    Classify a DiffResult into the nine output categories.

    Args:
        diff: The DiffResult from the Layer 1 diff engine
        old_label: Label of the baseline snapshot (used in output naming)
        new_label: Label of the comparison snapshot

    Returns:
        DiffReport with one record list per category

    Example:
        >>> from slkit.diff import diff_package_maps, classify_diff
        >>> report = classify_diff(diff_package_maps(old_packages, new_packages))
        >>> report.gtins_for(Category.RETAIL_UP)
    """
    records = {category: rule(diff) for category, rule in CATEGORY_RULES.items()}
    return DiffReport(records=records, old_label=old_label, new_label=new_label)
