"""Unit tests for the Layer 1 snapshot diff."""

from slkit.diff.snapshot_diff import diff_package, diff_package_maps
from slkit.ingest.package_extract import PackageSnapshot


def make_snapshot(gtin: str = "7680123456785", name: str = "Drug A", retail_price: float = 10.0,
                  exfactory_price: float = 6.0, has_sl_entry: bool = True) -> PackageSnapshot:
    """Helper to create PackageSnapshot objects for testing."""
    return PackageSnapshot(
        gtin=gtin,
        name=name,
        retail_price=retail_price,
        exfactory_price=exfactory_price,
        has_sl_entry=has_sl_entry
    )


class TestDiffPackage:

    def test_identical_packages(self):
        assert diff_package(make_snapshot(), make_snapshot()) == []

    def test_sl_entry_added(self):
        changes = diff_package(make_snapshot(has_sl_entry=False), make_snapshot(has_sl_entry=True))

        assert [c.type for c in changes] == ["SL_ENTRY_ADDED"]

    def test_sl_entry_removed(self):
        changes = diff_package(make_snapshot(has_sl_entry=True), make_snapshot(has_sl_entry=False))

        assert [c.type for c in changes] == ["SL_ENTRY_REMOVED"]

    def test_name_changed_is_exact(self):
        changes = diff_package(make_snapshot(name="Drug A"), make_snapshot(name="Drug A "))

        assert len(changes) == 1
        assert changes[0].type == "NAME_CHANGED"
        assert changes[0].from_value == "Drug A"
        assert changes[0].to_value == "Drug A "

    def test_price_types_compared_independently(self):
        changes = diff_package(
            make_snapshot(retail_price=10.0, exfactory_price=6.0),
            make_snapshot(retail_price=12.5, exfactory_price=5.0),
        )

        assert [(c.type, c.field, c.from_value, c.to_value) for c in changes] == [
            ("PRICE_CHANGED", "retail", 10.0, 12.5),
            ("PRICE_CHANGED", "exfactory", 6.0, 5.0),
        ]

    def test_price_delta_below_epsilon_ignored(self):
        changes = diff_package(make_snapshot(retail_price=10.0), make_snapshot(retail_price=10.0009))

        assert changes == []

    def test_price_to_absent_is_a_change(self):
        changes = diff_package(make_snapshot(retail_price=10.0), make_snapshot(retail_price=0.0))

        assert changes[0].field == "retail"
        assert changes[0].to_value == 0.0


class TestDiffPackageMaps:

    def test_added_removed_modified_unchanged(self):
        old = {
            "7680000000011": make_snapshot("7680000000011"),
            "7680000000028": make_snapshot("7680000000028"),
            "7680000000035": make_snapshot("7680000000035"),
        }
        new = {
            "7680000000028": make_snapshot("7680000000028"),
            "7680000000035": make_snapshot("7680000000035", retail_price=11.0),
            "7680000000042": make_snapshot("7680000000042"),
        }

        diff = diff_package_maps(old, new)

        assert [p.gtin for p in diff.added] == ["7680000000042"]
        assert [p.gtin for p in diff.removed] == ["7680000000011"]
        assert [m.gtin for m in diff.modified] == ["7680000000035"]
        assert diff.unchanged_count == 1

    def test_results_sorted_by_gtin(self):
        new = {g: make_snapshot(g) for g in ["7680000000099", "7680000000011", "7680000000055"]}

        diff = diff_package_maps({}, new)

        assert [p.gtin for p in diff.added] == ["7680000000011", "7680000000055", "7680000000099"]

    def test_modified_carries_both_sides(self):
        old = {"7680000000011": make_snapshot("7680000000011", name="Old")}
        new = {"7680000000011": make_snapshot("7680000000011", name="New")}

        modified = diff_package_maps(old, new).modified[0]

        assert modified.old.name == "Old"
        assert modified.new.name == "New"
