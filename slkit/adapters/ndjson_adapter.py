import json
import logging
import chardet
from pathlib import Path
from typing import List, Dict, Any, Iterator, Optional

from ..schema import (
    BUNDLE_RESOURCE_TYPE,
    PRODUCT_RESOURCE_TYPE,
    GTIN_PREFIX,
    GTIN_LENGTH,
)

logger = logging.getLogger(__name__)


class LoadError(ValueError):
    """Raised when a snapshot file yields no usable bundle documents."""


def _is_bundle(value: Any) -> bool:
    return isinstance(value, dict) and value.get("resourceType") == BUNDLE_RESOURCE_TYPE


def split_concatenated_objects(text: str) -> Iterator[str]:
    """Yield the top-level ``{...}`` spans of concatenated JSON text.

    Tracks brace depth and string-literal state (honouring escaped quotes)
    so braces inside string values never split an object. Text outside any
    object is ignored.
    """
    depth = 0
    in_string = False
    escape = False
    start = None

    for i, ch in enumerate(text):
        if escape:
            escape = False
            continue
        if in_string:
            if ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}":
            if depth == 0:
                # Stray closing brace outside any object
                continue
            depth -= 1
            if depth == 0 and start is not None:
                yield text[start:i + 1]
                start = None


def parse_bundle_lines(text: str) -> List[Dict[str, Any]]:
    """Primary pass: one JSON document per non-empty line."""
    bundles = []
    for line_no, line in enumerate(text.split("\n"), 1):
        line = line.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except ValueError:
            logger.debug("Skipping unparsable line %d", line_no)
            continue
        if _is_bundle(value):
            bundles.append(value)
        else:
            logger.debug("Skipping non-bundle document on line %d", line_no)
    return bundles


def parse_concatenated_bundles(text: str) -> List[Dict[str, Any]]:
    """Fallback pass: strip line breaks and scan for top-level objects."""
    flat = text.replace("\r", "").replace("\n", "")
    bundles = []
    for span in split_concatenated_objects(flat):
        try:
            value = json.loads(span)
        except ValueError:
            logger.debug("Skipping unparsable object span (%d chars)", len(span))
            continue
        if _is_bundle(value):
            bundles.append(value)
    return bundles


def load_bundles(text: str, source: str = "<text>") -> List[Dict[str, Any]]:
    """Parse the full text of one snapshot into a list of bundle documents.

    Newline-delimited parsing is tried first; the concatenated-object scan is
    only used when that pass finds nothing.

    Args:
        text: Full snapshot text
        source: Label used in log and error messages

    Returns:
        Bundle documents in file order

    Raises:
        LoadError: If neither pass yields a bundle
    """
    bundles = parse_bundle_lines(text)
    if not bundles:
        logger.info("No line-delimited bundles in %s, trying concatenated scan", source)
        bundles = parse_concatenated_bundles(text)

    if not bundles:
        raise LoadError(f"No valid FHIR Bundles in {source}")
    return bundles


def count_gtins(bundles: List[Dict[str, Any]]) -> int:
    """Count distinct prefixed 13-digit GTIN values on packaging identifiers.

    Malformed entries are skipped here the same way the extractor skips them.
    """
    gtins = set()
    for bundle in bundles:
        entries = bundle.get("entry")
        if not isinstance(entries, list):
            continue
        for entry in entries:
            resource = entry.get("resource") if isinstance(entry, dict) else None
            if not isinstance(resource, dict):
                continue
            if resource.get("resourceType") != PRODUCT_RESOURCE_TYPE:
                continue
            packaging = resource.get("packaging")
            if not isinstance(packaging, dict):
                continue
            identifiers = packaging.get("identifier")
            if not isinstance(identifiers, list):
                continue
            for identifier in identifiers:
                value = identifier.get("value") if isinstance(identifier, dict) else None
                if isinstance(value, str) and len(value) == GTIN_LENGTH and value.startswith(GTIN_PREFIX):
                    gtins.add(value)
    return len(gtins)


class NdjsonBundleAdapter:
    """Adapter for reading registry snapshot files into bundle documents.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, Windows-1252, ISO-8859-1, etc.)
    - Newline-delimited bundles with stray noise lines
    - Concatenated bundles without separators (fallback)
    """

    def can_handle(self, file_path: str) -> bool:
        """Check if this adapter can handle the given file."""
        return Path(file_path).suffix.lower() in [".ndjson", ".jsonl", ".json"]

    def _detect_encoding(self, raw_data: bytes) -> str:
        """Detect text encoding using chardet with fallback."""
        # Check for BOM first
        if raw_data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'

        # chardet only samples the head of the file; a full UTF-8 decode is authoritative
        try:
            raw_data.decode('utf-8')
            return 'utf-8'
        except UnicodeDecodeError:
            pass

        result = chardet.detect(raw_data[:10000])
        encoding = result.get('encoding') or 'utf-8'

        encoding_lower = encoding.lower()
        if 'utf-8' in encoding_lower or 'utf8' in encoding_lower or encoding_lower == 'ascii':
            return 'utf-8'
        return encoding

    def read_text(self, file_path: str, encoding: Optional[str] = None) -> str:
        """Read the whole file as text.

        Raises:
            LoadError: If the file doesn't exist
        """
        path = Path(file_path)
        try:
            raw_data = path.read_bytes()
        except FileNotFoundError as e:
            raise LoadError(f"File not found: {file_path}") from e

        encoding = encoding or self._detect_encoding(raw_data)
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug("Decoding %s as %s failed, falling back to latin-1", file_path, encoding)
            return raw_data.decode('latin-1')

    def read(self, file_path: str) -> List[Dict[str, Any]]:
        """Read a snapshot file and return its bundle documents.

        Args:
            file_path: Path to the snapshot file

        Returns:
            List of bundle dictionaries

        Raises:
            LoadError: If the file is missing or holds no usable bundle
        """
        text = self.read_text(file_path)
        bundles = load_bundles(text, source=str(file_path))
        logger.info(
            "Loaded %d bundles, %d packages from %s",
            len(bundles), count_gtins(bundles), file_path
        )
        return bundles
