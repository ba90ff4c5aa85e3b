"""Registry export schema: FHIR constants and the shared numeric flag legend."""

from types import MappingProxyType
from typing import Mapping

# Resource type discriminators consumed by the extractor
BUNDLE_RESOURCE_TYPE = "Bundle"
PRODUCT_RESOURCE_TYPE = "PackagedProductDefinition"
AUTHORIZATION_RESOURCE_TYPE = "RegulatedAuthorization"

# GTIN identifiers on packaging
GTIN_SYSTEM = "urn:oid:2.51.1.1"
GTIN_PREFIX = "7680"
GTIN_LENGTH = 13

# Authorization type coding marking a reimbursement-list (SL) entry
SL_ENTRY_CODE = "756000002003"

# Price extension on an authorization
PRICE_EXTENSION_MARKER = "productPrice"
PRICE_TYPE_CODES = {
    "756002005001": "retail",
    "756002005002": "exfactory",
}
PRICE_TYPES = ("retail", "exfactory")

# Minimum absolute price delta that counts as a change
PRICE_EPSILON = 0.001

PLACEHOLDER_NAME = "Unknown Product"

# Numeric change taxonomy shared with the downstream consumer.
# Append-only: codes are never reordered or redefined. Codes 4-9, 12 and 16
# belong to the product-authorization (flat CSV) source and are never emitted
# by the registry diff.
FLAG_LEGEND: Mapping[int, str] = MappingProxyType({
    1: "new",
    2: "sl_entry_delete",
    3: "name_base",
    4: "address",
    5: "ikscat",
    6: "composition",
    7: "indication",
    8: "sequence",
    9: "expiry_date",
    10: "sl_entry",
    11: "price",
    12: "comment",
    13: "price_rise",
    14: "delete",
    15: "price_cut",
    16: "not_specified",
})

__all__ = [
    "BUNDLE_RESOURCE_TYPE",
    "PRODUCT_RESOURCE_TYPE",
    "AUTHORIZATION_RESOURCE_TYPE",
    "GTIN_SYSTEM",
    "GTIN_PREFIX",
    "GTIN_LENGTH",
    "SL_ENTRY_CODE",
    "PRICE_EXTENSION_MARKER",
    "PRICE_TYPE_CODES",
    "PRICE_TYPES",
    "PRICE_EPSILON",
    "PLACEHOLDER_NAME",
    "FLAG_LEGEND",
]
