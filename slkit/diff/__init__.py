"""Registry snapshot diff module for comparing resolved snapshots."""

from .snapshot_diff import (
    diff_package_maps,
    diff_package,
    DiffResult,
    ModifiedPackage,
    FieldChange,
)

from .change_events import (
    # Main classification function
    classify_diff,
    resolve_category,
    flag_legend,
    # Enums
    NumericFlag,
    Category,
    CATEGORY_ALIASES,
    # Data classes
    ChangeRecord,
    DiffReport,
    # Errors
    UnknownCategoryError,
)

__all__ = [
    # Layer 1: Semantic Diff
    "diff_package_maps",
    "diff_package",
    "DiffResult",
    "ModifiedPackage",
    "FieldChange",
    # Layer 2: Change Classification
    "classify_diff",
    "resolve_category",
    "flag_legend",
    "NumericFlag",
    "Category",
    "CATEGORY_ALIASES",
    "ChangeRecord",
    "DiffReport",
    "UnknownCategoryError",
]
