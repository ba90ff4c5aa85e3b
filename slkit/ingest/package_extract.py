"""
Package extraction from registry bundles.

Each bundle is a self-contained resource graph. Authorizations point at the
product they cover through a ``"{resourceType}/{id}"`` reference, so every
bundle gets its own keyed index, built fresh and discarded after extraction.
Nothing is shared between bundles, which lets chunks of bundles be processed
in parallel and merged afterwards by gtin.

Key rules:
- A product without a qualifying GTIN is dropped (it cannot be matched
  across snapshots)
- Only reimbursement-list authorizations whose subject is the product count
- A package is kept only if it has a price or a reimbursement-list entry
"""

import logging
import math
import os
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..schema import (
    PRODUCT_RESOURCE_TYPE,
    AUTHORIZATION_RESOURCE_TYPE,
    GTIN_SYSTEM,
    GTIN_PREFIX,
    GTIN_LENGTH,
    SL_ENTRY_CODE,
    PRICE_EXTENSION_MARKER,
    PRICE_TYPE_CODES,
    PLACEHOLDER_NAME,
)
from .effective_date import parse_date_str
from .price_resolver import PriceSample, PriceSeries, add_sample, resolve_price

logger = logging.getLogger(__name__)

EXECUTORS = ("process", "thread", "serial")


@dataclass(frozen=True)
class PackageSnapshot:
    """
    Resolved view of one package in one snapshot.

    Prices are the amounts valid as of the snapshot's effective date;
    0.0 means no effective price.
    """
    gtin: str
    name: str
    retail_price: float
    exfactory_price: float
    has_sl_entry: bool

    def is_retained(self) -> bool:
        """A package is kept if it is priced or listed."""
        return self.retail_price > 0 or self.exfactory_price > 0 or self.has_sl_entry


# gtin -> PackageSnapshot, iterated in ascending gtin order
PackageMap = Dict[str, PackageSnapshot]


@dataclass
class PackageRecord:
    """Unresolved package data: price histories plus reimbursement-list status."""
    gtin: str
    name: str
    has_sl_entry: bool = False
    prices: Dict[str, PriceSeries] = field(default_factory=dict)

    def resolve(self, as_of: date) -> PackageSnapshot:
        return PackageSnapshot(
            gtin=self.gtin,
            name=self.name,
            retail_price=resolve_price(self.prices.get("retail", {}), as_of),
            exfactory_price=resolve_price(self.prices.get("exfactory", {}), as_of),
            has_sl_entry=self.has_sl_entry,
        )


# =============================================================================
# RESOURCE INDEX
# =============================================================================

def resource_key(resource: Dict[str, Any]) -> Optional[str]:
    """Return ``"{resourceType}/{id}"``, or None if either half is missing."""
    rtype = resource.get("resourceType")
    rid = resource.get("id")
    if not isinstance(rtype, str) or not rtype or not isinstance(rid, str) or not rid:
        return None
    return f"{rtype}/{rid}"


def index_resources(bundle: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Build the per-bundle ResourceKey -> resource index, in entry order."""
    resources: Dict[str, Dict[str, Any]] = {}
    entries = bundle.get("entry")
    if not isinstance(entries, list):
        return resources

    for entry in entries:
        if not isinstance(entry, dict):
            continue
        resource = entry.get("resource")
        if not isinstance(resource, dict):
            continue
        key = resource_key(resource)
        if key is None:
            continue
        resources[key] = resource
    return resources


# =============================================================================
# FIELD EXTRACTION
# =============================================================================

def extract_gtin(product: Dict[str, Any]) -> Optional[str]:
    """First packaging identifier under the GTIN system with a valid value."""
    packaging = product.get("packaging")
    if not isinstance(packaging, dict):
        return None
    identifiers = packaging.get("identifier")
    if not isinstance(identifiers, list):
        return None

    for identifier in identifiers:
        if not isinstance(identifier, dict):
            continue
        if identifier.get("system") != GTIN_SYSTEM:
            continue
        value = identifier.get("value")
        if (
            isinstance(value, str)
            and len(value) == GTIN_LENGTH
            and value.isdigit()
            and value.startswith(GTIN_PREFIX)
        ):
            return value
    return None


def extract_name(product: Dict[str, Any]) -> str:
    description = product.get("description")
    if isinstance(description, str):
        return description
    text = product.get("text")
    if isinstance(text, dict) and isinstance(text.get("div"), str):
        return text["div"]
    return PLACEHOLDER_NAME


def is_sl_authorization(authorization: Dict[str, Any]) -> bool:
    """True if any type coding carries the reimbursement-list code."""
    auth_type = authorization.get("type")
    if not isinstance(auth_type, dict):
        return False
    codings = auth_type.get("coding")
    if not isinstance(codings, list):
        return False
    return any(
        isinstance(c, dict) and c.get("code") == SL_ENTRY_CODE
        for c in codings
    )


def subject_reference(authorization: Dict[str, Any]) -> Optional[str]:
    """Reference of the authorization's (first) subject."""
    subject = authorization.get("subject")
    if isinstance(subject, list):
        subject = subject[0] if subject else None
    if not isinstance(subject, dict):
        return None
    reference = subject.get("reference")
    return reference if isinstance(reference, str) else None


def _first_coding_code(concept: Any) -> Optional[str]:
    if not isinstance(concept, dict):
        return None
    codings = concept.get("coding")
    if not isinstance(codings, list) or not codings or not isinstance(codings[0], dict):
        return None
    code = codings[0].get("code")
    return code if isinstance(code, str) else None


def parse_price_extension(extension: Dict[str, Any]) -> Optional[PriceSample]:
    """
    Read one price-bearing extension.

    The extension carries three sub-extensions: ``type`` (retail or
    ex-factory code), ``value`` (money amount) and ``changeDate``.

    Returns:
        PriceSample, or None when the type is unknown, the amount is not a
        positive finite number or the change date does not parse
    """
    sub_extensions = extension.get("extension")
    if not isinstance(sub_extensions, list):
        return None

    type_code = None
    amount = 0.0
    change_date = None

    for sub in sub_extensions:
        if not isinstance(sub, dict):
            continue
        url = sub.get("url")
        if url == "type":
            type_code = _first_coding_code(sub.get("valueCodeableConcept"))
        elif url == "value":
            money = sub.get("valueMoney")
            value = money.get("value") if isinstance(money, dict) else None
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                try:
                    amount = float(value)
                except OverflowError:
                    amount = 0.0
        elif url == "changeDate":
            change_date = parse_date_str(sub.get("valueDate"))

    price_type = PRICE_TYPE_CODES.get(type_code)
    if price_type is None or not math.isfinite(amount) or amount <= 0 or change_date is None:
        return None
    return PriceSample(price_type=price_type, change_date=change_date, amount=amount)


def _price_extensions(authorization: Dict[str, Any]) -> List[Dict[str, Any]]:
    extensions = authorization.get("extension")
    if not isinstance(extensions, list):
        return []
    return [
        ext for ext in extensions
        if isinstance(ext, dict)
        and isinstance(ext.get("url"), str)
        and PRICE_EXTENSION_MARKER in ext["url"]
    ]


# =============================================================================
# EXTRACTION
# =============================================================================

def extract_bundle_records(bundle: Dict[str, Any]) -> List[PackageRecord]:
    """
    Extract a PackageRecord for every product with a qualifying GTIN.

    Args:
        bundle: One bundle document

    Returns:
        Records in entry order (unfiltered: unpriced, unlisted packages included)
    """
    resources = index_resources(bundle)
    authorizations = [
        (key, res) for key, res in resources.items()
        if res.get("resourceType") == AUTHORIZATION_RESOURCE_TYPE
    ]

    records = []
    for key, product in resources.items():
        if product.get("resourceType") != PRODUCT_RESOURCE_TYPE:
            continue

        gtin = extract_gtin(product)
        if gtin is None:
            logger.debug("Dropping %s: no qualifying GTIN", key)
            continue

        record = PackageRecord(gtin=gtin, name=extract_name(product))

        for auth_key, authorization in authorizations:
            if not is_sl_authorization(authorization):
                continue
            if subject_reference(authorization) != key:
                continue

            record.has_sl_entry = True
            for extension in _price_extensions(authorization):
                sample = parse_price_extension(extension)
                if sample is None:
                    logger.debug("Discarding price extension on %s for %s", auth_key, gtin)
                    continue
                add_sample(record.prices, sample)

        records.append(record)
    return records


def process_bundles(bundles: Sequence[Dict[str, Any]], as_of: date) -> PackageMap:
    """
    Extract and resolve packages from a run of bundles.

    Module-level so it can be shipped to worker processes.

    Args:
        bundles: Bundle documents (one chunk)
        as_of: Effective date for price resolution

    Returns:
        PackageMap of retained packages
    """
    packages: PackageMap = {}
    for bundle in bundles:
        for record in extract_bundle_records(bundle):
            snapshot = record.resolve(as_of)
            if snapshot.is_retained():
                packages[snapshot.gtin] = snapshot
    return packages


def merge_package_maps(maps: Sequence[PackageMap]) -> PackageMap:
    """
    Union chunk results by gtin.

    A gtin is expected in exactly one chunk. If it shows up in several, the
    later chunk wins and the collision is logged.

    Returns:
        PackageMap in ascending gtin order
    """
    merged: PackageMap = {}
    for chunk_map in maps:
        for gtin, snapshot in chunk_map.items():
            previous = merged.get(gtin)
            if previous is not None and previous != snapshot:
                logger.warning("GTIN %s declared differently across chunks; keeping the later one", gtin)
            merged[gtin] = snapshot
    return {gtin: merged[gtin] for gtin in sorted(merged)}


def _chunk(bundles: Sequence[Dict[str, Any]], size: int) -> List[Sequence[Dict[str, Any]]]:
    return [bundles[i:i + size] for i in range(0, len(bundles), size)]


def build_package_map(
    bundles: Sequence[Dict[str, Any]],
    as_of: date,
    chunk_size: Optional[int] = None,
    max_workers: Optional[int] = None,
    executor: str = "process",
) -> PackageMap:
    """
    Build the resolved PackageMap for one snapshot.

    Bundles are split into fixed-size chunks, each processed independently
    and merged by gtin.

    Args:
        bundles: All bundle documents of the snapshot
        as_of: Effective date for price resolution
        chunk_size: Bundles per chunk (default: spread evenly over the workers)
        max_workers: Worker count (default: ``os.cpu_count()``)
        executor: ``"process"``, ``"thread"`` or ``"serial"``

    Returns:
        PackageMap in ascending gtin order

    Raises:
        ValueError: If executor or chunk_size is invalid
    """
    if executor not in EXECUTORS:
        raise ValueError(f"Unsupported executor: {executor}. Supported: {', '.join(EXECUTORS)}")
    if chunk_size is not None and chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    workers = max_workers or os.cpu_count() or 1
    size = chunk_size or max(1, len(bundles) // workers)
    chunks = _chunk(bundles, size)

    if executor == "serial" or len(chunks) <= 1:
        results = [process_bundles(chunk, as_of) for chunk in chunks]
    else:
        pool_cls = ProcessPoolExecutor if executor == "process" else ThreadPoolExecutor
        with pool_cls(max_workers=workers) as pool:
            results = list(pool.map(process_bundles, chunks, [as_of] * len(chunks)))

    return merge_package_maps(results)
