import asyncio
import json

import pytest

from fake_commerce import FakeCommerceClient, make_product, make_variant, metadata_dict
from services.bundle_service import BundleService
from services.bundle_validation import AddBundleRequest
from services.errors import NotFoundError, StockError, ValidationError


def kit_client(**overrides):
    metadata = {
        "fixedPrice": "100",
        "required": ["V1", "V2"],
        "optional": {"V3": "5"},
        "quantities": {"V1": 1, "V2": 2, "V3": 1},
    }
    metadata.update(overrides)
    metadata = {k: v for k, v in metadata.items() if v is not None}
    return FakeCommerceClient(
        products={"P1": make_product("P1", "Camping Kit", **metadata)},
        variants={
            "V1": make_variant("V1", 80),
            "V2": make_variant("V2", 40),
            "V3": make_variant("V3", 12),
        },
    )


def request(variants=("V1", "V2"), qty=1, checkout_id=None):
    return AddBundleRequest(
        product_id="P1",
        bundle_quantity=qty,
        variants=list(variants),
        checkout_id=checkout_id,
    )


service = BundleService(channel="test-channel")


def test_add_bundle_creates_checkout_and_tags_lines():
    client = kit_client()
    result = asyncio.run(service.add_bundle(client, request(["V1", "V2", "V3"], qty=2)))

    assert result["message"] == "Bundle added to checkout successfully"
    checkout = result["checkout"]
    ledger = json.loads(metadata_dict(checkout["metadata"])["bundle_quantities"])
    assert ledger == {"Camping Kit": 2}

    stored = client.checkouts[checkout["id"]]
    statuses = {
        line["variant"]["id"]: metadata_dict(line["metadata"])["bundle_item_status"]
        for line in stored["lines"]
    }
    assert statuses == {"V1": "required", "V2": "required", "V3": "optional"}

    (_, channel, sent), = client.calls_to("create_checkout")
    assert channel == "test-channel"
    assert [(line["variantId"], line["quantity"], line["price"]) for line in sent] == [
        ("V1", 2, 66.67),
        ("V2", 4, 16.67),
        ("V3", 2, 5.0),
    ]


def test_adding_twice_appends_and_accumulates_ledger():
    client = kit_client()
    first = asyncio.run(service.add_bundle(client, request()))
    checkout_id = first["checkout"]["id"]

    second = asyncio.run(service.add_bundle(client, request(qty=3, checkout_id=checkout_id)))

    assert second["checkout"]["id"] == checkout_id
    assert len(client.checkouts[checkout_id]["lines"]) == 4
    ledger = json.loads(metadata_dict(second["checkout"]["metadata"])["bundle_quantities"])
    assert ledger == {"Camping Kit": 4}
    line_updates = [c for c in client.calls_to("update_metadata") if c[1] != checkout_id]
    assert [c[1] for c in line_updates] == ["line-1", "line-2", "line-3", "line-4"]


def test_unknown_product_is_not_found():
    client = kit_client()
    with pytest.raises(NotFoundError) as exc:
        asyncio.run(service.add_bundle(client, AddBundleRequest(product_id="P404", bundle_quantity=1, variants=["V1"])))
    assert exc.value.status_code == 404
    assert exc.value.message == "Product not found"


def test_pricing_not_set_stops_before_variant_lookups():
    client = kit_client(fixedPrice=None)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.add_bundle(client, request()))
    assert exc.value.message == "Pricing is not set for this bundle"
    assert client.calls_to("get_variant") == []


def test_missing_required_variant_stops_before_stock_check():
    client = kit_client()
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.add_bundle(client, request(["V2", "V3"])))
    assert exc.value.details == {"missingVariants": ["V1"]}
    assert client.calls_to("get_variant") == []
    assert client.calls_to("create_checkout") == []


def test_missing_quantity_is_reported():
    client = kit_client(quantities={"V1": 1, "V2": 2})
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.add_bundle(client, request(["V1", "V2", "V3"])))
    assert exc.value.details == {"missingQuantityVariants": ["V3"]}


def test_out_of_stock_leaves_checkout_untouched():
    client = kit_client()
    client.variants["V1"]["quantityAvailable"] = 0
    with pytest.raises(StockError):
        asyncio.run(service.add_bundle(client, request()))
    assert [c[1] for c in client.calls_to("get_variant")] == ["V1"]
    assert client.checkouts == {}


def test_inspect_reports_product_and_variants():
    client = kit_client()
    result = asyncio.run(service.inspect_bundle(client, request(["V1", "V2", "V9"])))

    assert result["message"] == "Bundle processed successfully"
    assert result["productData"]["id"] == "P1"
    assert [v["id"] for v in result["variantDetails"]] == ["V1", "V2"]
    assert client.checkouts == {}


def test_inspect_still_checks_required_coverage():
    client = kit_client()
    with pytest.raises(ValidationError):
        asyncio.run(service.inspect_bundle(client, request(["V2"])))


def test_unpriced_variant_is_never_sold_for_zero():
    client = kit_client(fixedPrice=None, noDiscount="1")
    client.variants["V1"]["pricing"] = None
    with pytest.raises(NotFoundError) as exc:
        asyncio.run(service.add_bundle(client, request()))
    assert "V1" in exc.value.message
    assert client.calls_to("create_checkout") == []
    assert client.checkouts == {}
