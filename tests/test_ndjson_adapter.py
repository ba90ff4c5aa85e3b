"""
Unit tests for bundle loading.

These tests verify that:
1. Line-delimited bundles are read and stray lines are skipped
2. The concatenated-object scan is used only when no line parses
3. A file usable by neither pass raises LoadError
4. File reading copes with BOMs and non-UTF-8 encodings
"""

import json

import pytest

from slkit.adapters.ndjson_adapter import (
    LoadError,
    NdjsonBundleAdapter,
    count_gtins,
    load_bundles,
    parse_bundle_lines,
    split_concatenated_objects,
)

from fhir_factory import make_bundle, make_package_bundle, make_product, to_ndjson


# =============================================================================
# LINE-DELIMITED PASS
# =============================================================================

class TestLineDelimited:
    """Tests for the primary newline-delimited pass."""

    def test_reads_one_bundle_per_line(self):
        bundles = [make_package_bundle(i, f"768012345678{i}", f"Drug {i}") for i in range(3)]

        loaded = load_bundles(to_ndjson(bundles))

        assert loaded == bundles

    def test_skips_noise_and_blank_lines(self):
        text = "\n".join([
            "garbage line {",
            "",
            json.dumps(make_bundle(timestamp="2026-01-06")),
            "   ",
            '{"truncated": ',
        ])

        loaded = load_bundles(text)

        assert len(loaded) == 1
        assert loaded[0]["timestamp"] == "2026-01-06"

    def test_skips_documents_that_are_not_bundles(self):
        text = "\n".join([
            json.dumps({"resourceType": "Patient", "id": "x"}),
            json.dumps([1, 2, 3]),
            json.dumps(make_bundle()),
        ])

        assert len(parse_bundle_lines(text)) == 1

    def test_handles_crlf_line_endings(self):
        text = json.dumps(make_bundle()) + "\r\n" + json.dumps(make_bundle()) + "\r\n"

        assert len(load_bundles(text)) == 2


# =============================================================================
# CONCATENATED FALLBACK
# =============================================================================

class TestConcatenatedFallback:
    """Tests for the brace-scanning fallback pass."""

    def test_concatenated_objects_without_separator(self):
        a = make_bundle(timestamp="2026-01-05")
        b = make_bundle(timestamp="2026-01-06")
        text = json.dumps(a) + json.dumps(b)

        loaded = load_bundles(text)

        assert [x["timestamp"] for x in loaded] == ["2026-01-05", "2026-01-06"]

    def test_pretty_printed_objects_are_joined(self):
        bundle = make_package_bundle(1, "7680123456781", "Drug A")
        text = json.dumps(bundle, indent=2) + "\n" + json.dumps(bundle, indent=2)

        loaded = load_bundles(text)

        assert len(loaded) == 2
        assert loaded[0] == bundle

    def test_braces_and_escaped_quotes_inside_strings(self):
        product = make_product("p1", "7680123456781", description='Drug "{A}" } {')
        bundle = make_bundle(product)
        text = "noise" + json.dumps(bundle) + "}" + json.dumps(bundle)

        loaded = load_bundles(text)

        assert len(loaded) == 2
        assert loaded[0]["entry"][0]["resource"]["description"] == 'Drug "{A}" } {'

    def test_split_yields_only_top_level_spans(self):
        spans = list(split_concatenated_objects('{"a": {"b": 1}} x {"c": "}"}'))

        assert spans == ['{"a": {"b": 1}}', '{"c": "}"}']

    def test_fallback_not_used_when_lines_parse(self):
        # One valid line plus a second line holding two glued bundles:
        # the glued line fails to parse and the fallback must not run.
        good = json.dumps(make_bundle(timestamp="2026-01-01"))
        glued = json.dumps(make_bundle()) + json.dumps(make_bundle())
        text = good + "\n" + glued

        loaded = load_bundles(text)

        assert len(loaded) == 1


# =============================================================================
# FATAL LOAD ERRORS
# =============================================================================

class TestLoadError:
    """A file usable by neither pass is fatal."""

    def test_empty_text(self):
        with pytest.raises(LoadError):
            load_bundles("")

    def test_noise_only(self):
        with pytest.raises(LoadError, match="No valid FHIR Bundles in snap.ndjson"):
            load_bundles("not json\n{broken\n[]\n", source="snap.ndjson")

    def test_objects_but_no_bundle(self):
        with pytest.raises(LoadError):
            load_bundles('{"resourceType": "Patient"}{"resourceType": "Organization"}')

    def test_missing_file(self, tmp_path):
        with pytest.raises(LoadError, match="File not found"):
            NdjsonBundleAdapter().read(str(tmp_path / "missing.ndjson"))


# =============================================================================
# FILE ADAPTER
# =============================================================================

class TestNdjsonBundleAdapter:
    """Tests for reading snapshot files from disk."""

    def test_can_handle(self):
        adapter = NdjsonBundleAdapter()

        assert adapter.can_handle("sl_foph_06.01.2026.ndjson")
        assert adapter.can_handle("export.JSONL")
        assert not adapter.can_handle("swissmedic.csv")

    def test_reads_utf8_with_bom(self, tmp_path):
        bundle = make_package_bundle(1, "7680123456781", "Médicament")
        path = tmp_path / "snap.ndjson"
        path.write_bytes(b"\xef\xbb\xbf" + to_ndjson([bundle]).encode("utf-8"))

        loaded = NdjsonBundleAdapter().read(str(path))

        assert loaded[0]["entry"][0]["resource"]["description"] == "Médicament"

    def test_reads_latin1(self, tmp_path):
        bundle = make_package_bundle(1, "7680123456781", "Crème")
        path = tmp_path / "snap.ndjson"
        path.write_bytes(json.dumps(bundle, ensure_ascii=False).encode("latin-1"))

        loaded = NdjsonBundleAdapter().read_text(str(path), encoding="latin-1")

        assert "Crème" in loaded

    def test_count_gtins(self):
        bundles = [
            make_package_bundle(1, "7680123456781", "A"),
            make_package_bundle(2, "7680123456781", "A again"),
            make_package_bundle(3, "7680123456798", "B"),
            make_package_bundle(4, "1234567890123", "Foreign"),
        ]

        assert count_gtins(bundles) == 2

    def test_count_gtins_skips_malformed_containers(self):
        product = make_product("p1", "7680123456781")
        product["packaging"]["identifier"] = 7
        bundles = [
            {"resourceType": "Bundle", "entry": 5},
            make_bundle(product),
            make_package_bundle(2, "7680123456798", "B"),
        ]

        assert count_gtins(bundles) == 1

    def test_read_survives_malformed_bundle(self, tmp_path):
        path = tmp_path / "snap.ndjson"
        good = make_package_bundle(1, "7680123456781", "A")
        path.write_text(to_ndjson([good]) + '{"resourceType": "Bundle", "entry": 5}\n', encoding="utf-8")

        loaded = NdjsonBundleAdapter().read(str(path))

        assert len(loaded) == 2

    def test_valid_utf8_wins_over_detector_guess(self, tmp_path, monkeypatch):
        bundle = make_package_bundle(1, "7680123456781", "Crème Médicament")
        path = tmp_path / "snap.ndjson"
        path.write_bytes(to_ndjson([bundle]).encode("utf-8"))
        monkeypatch.setattr(
            "slkit.adapters.ndjson_adapter.chardet.detect",
            lambda data: {"encoding": "Windows-1252", "confidence": 0.73},
        )

        loaded = NdjsonBundleAdapter().read(str(path))

        assert loaded[0]["entry"][0]["resource"]["description"] == "Crème Médicament"

    def test_non_utf8_falls_back_to_detection(self, tmp_path):
        bundle = make_package_bundle(1, "7680123456781", "Crème")
        path = tmp_path / "snap.ndjson"
        path.write_bytes(json.dumps(bundle, ensure_ascii=False).encode("latin-1"))

        text = NdjsonBundleAdapter().read_text(str(path))

        assert text.startswith("{")
        assert "7680123456781" in text
