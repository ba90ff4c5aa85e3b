"""Builders for registry bundle documents used across the test suite."""

import json
from typing import Any, Dict, List, Optional

from slkit.schema import GTIN_SYSTEM, SL_ENTRY_CODE

RETAIL_CODE = "756002005001"
EXFACTORY_CODE = "756002005002"


def make_product(
    product_id: str,
    gtin: Optional[str],
    description: Optional[str] = None,
    text_div: Optional[str] = None,
    system: str = GTIN_SYSTEM,
) -> Dict[str, Any]:
    """PackagedProductDefinition with one packaging identifier."""
    resource: Dict[str, Any] = {
        "resourceType": "PackagedProductDefinition",
        "id": product_id,
    }
    if gtin is not None:
        resource["packaging"] = {"identifier": [{"system": system, "value": gtin}]}
    if description is not None:
        resource["description"] = description
    if text_div is not None:
        resource["text"] = {"status": "generated", "div": text_div}
    return resource


def make_price(type_code: str, amount: Any, change_date: Optional[str]) -> Dict[str, Any]:
    """productPrice extension with type, value and changeDate sub-extensions."""
    subs: List[Dict[str, Any]] = [
        {"url": "type", "valueCodeableConcept": {"coding": [{"code": type_code}]}},
        {"url": "value", "valueMoney": {"value": amount, "currency": "CHF"}},
    ]
    if change_date is not None:
        subs.append({"url": "changeDate", "valueDate": change_date})
    return {"url": "http://fhir.ch/ig/ch-epl/StructureDefinition/productPrice", "extension": subs}


def retail(amount: Any, change_date: Optional[str]) -> Dict[str, Any]:
    return make_price(RETAIL_CODE, amount, change_date)


def exfactory(amount: Any, change_date: Optional[str]) -> Dict[str, Any]:
    return make_price(EXFACTORY_CODE, amount, change_date)


def make_authorization(
    auth_id: str,
    subject: str,
    prices: Optional[List[Dict[str, Any]]] = None,
    sl: bool = True,
) -> Dict[str, Any]:
    """RegulatedAuthorization pointing at ``subject`` ("Type/id")."""
    code = SL_ENTRY_CODE if sl else "756000002001"
    return {
        "resourceType": "RegulatedAuthorization",
        "id": auth_id,
        "type": {"coding": [{"system": "http://fhir.ch/ig/ch-epl/CodeSystem/ch-epl-foph-product-type", "code": code}]},
        "subject": [{"reference": subject}],
        "extension": prices or [],
    }


def make_bundle(*resources: Dict[str, Any], timestamp: Optional[str] = None,
                last_updated: Optional[str] = None) -> Dict[str, Any]:
    bundle: Dict[str, Any] = {
        "resourceType": "Bundle",
        "type": "collection",
        "entry": [{"resource": r} for r in resources],
    }
    if timestamp is not None:
        bundle["timestamp"] = timestamp
    if last_updated is not None:
        bundle["meta"] = {"lastUpdated": last_updated}
    return bundle


def make_package_bundle(
    index: int,
    gtin: str,
    name: str,
    prices: Optional[List[Dict[str, Any]]] = None,
    sl: bool = True,
    timestamp: Optional[str] = "2026-01-06T08:00:00+01:00",
) -> Dict[str, Any]:
    """A bundle holding one product and its reimbursement-list authorization."""
    product = make_product(f"ppd-{index}", gtin, description=name)
    resources = [product]
    if sl or prices:
        resources.append(make_authorization(
            f"ra-{index}", f"PackagedProductDefinition/ppd-{index}", prices=prices, sl=sl
        ))
    return make_bundle(*resources, timestamp=timestamp)


def to_ndjson(bundles: List[Dict[str, Any]]) -> str:
    return "\n".join(json.dumps(b) for b in bundles) + "\n"
