import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fake_commerce import FakeCommerceClient, make_product, make_variant, metadata_dict
from routers import bundles
from services.bundle_service import BundleService
from services.credential_store import AuthData
from services.errors import UnexpectedError

SHOP = "https://shop.example.com/graphql/"


class InMemoryStore:

    def __init__(self, tenants):
        self.tenants = tenants

    async def get(self, tenant):
        return self.tenants.get(tenant)


@pytest.fixture
def commerce():
    return FakeCommerceClient(
        products={"P1": make_product(
            "P1",
            "Camping Kit",
            discountedSum="10",
            required=["V1"],
            quantities={"V1": 2, "V2": 1},
        )},
        variants={"V1": make_variant("V1", 20), "V2": make_variant("V2", 5, quantity_available=0)},
    )


@pytest.fixture
def client(commerce):
    app = FastAPI()
    app.include_router(bundles.router, prefix="/api")
    store = InMemoryStore({SHOP: AuthData(saleor_api_url=SHOP, token="tok")})
    app.dependency_overrides[bundles.get_credential_store] = lambda: store
    app.dependency_overrides[bundles.get_bundle_service] = lambda: BundleService(channel="test-channel")
    app.dependency_overrides[bundles.get_client_factory] = lambda: (lambda auth: commerce)
    return TestClient(app)


def post(client, body, path="/api/add-bundle", tenant=SHOP):
    headers = {"Saleor-Domain": tenant} if tenant else {}
    return client.post(path, json=body, headers=headers)


def test_preflight(client):
    for path in ("/api/add-bundle", "/api/add-bundle/inspect"):
        response = client.options(path)
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


def test_missing_tenant_header(client):
    response = post(client, {"product_id": "P1", "bundle_quantity": 1, "variants": ["V1"]}, tenant=None)
    assert response.status_code == 400
    assert response.json() == {"errorMessage": "Saleor-Domain header is required"}


def test_unknown_tenant(client):
    response = post(
        client,
        {"product_id": "P1", "bundle_quantity": 1, "variants": ["V1"]},
        tenant="https://nobody.example.com/graphql/",
    )
    assert response.status_code == 400
    assert "Is the app installed?" in response.json()["errorMessage"]


def test_invalid_payload(client):
    response = post(client, {"bundle_quantity": 1, "variants": ["V1"]})
    assert response.status_code == 400
    assert response.json() == {"errorMessage": "product_id is required"}


def test_wrongly_typed_quantity(client):
    response = post(client, {"product_id": "P1", "bundle_quantity": "3", "variants": ["V1"]})
    assert response.status_code == 400
    assert response.json() == {"errorMessage": "bundle_quantity must be a positive integer"}


def test_add_bundle_success(client, commerce):
    response = post(client, {"product_id": "P1", "bundle_quantity": 3, "variants": ["V1"]})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Bundle added to checkout successfully"
    ledger = json.loads(metadata_dict(body["checkout"]["metadata"])["bundle_quantities"])
    assert ledger == {"Camping Kit": 3}
    (_, _, sent), = commerce.calls_to("create_checkout")
    assert sent == [{"variantId": "V1", "quantity": 6, "price": 18.0}]
    assert commerce.closed


def test_missing_required_variant_details(client):
    response = post(client, {"product_id": "P1", "bundle_quantity": 1, "variants": ["V2"]})
    assert response.status_code == 400
    assert response.json() == {
        "errorMessage": "Required variant is missing",
        "missingVariants": ["V1"],
    }


def test_out_of_stock(client):
    response = post(client, {"product_id": "P1", "bundle_quantity": 1, "variants": ["V1", "V2"]})
    assert response.status_code == 400
    assert "V2" not in response.json()["errorMessage"]


def test_unknown_product_is_404(client):
    response = post(client, {"product_id": "P404", "bundle_quantity": 1, "variants": ["V1"]})
    assert response.status_code == 404
    assert response.json() == {"errorMessage": "Product not found"}


def test_unexpected_failure_is_generic_500(client, commerce):
    commerce.fail("get_product", RuntimeError("socket exploded"))
    response = post(client, {"product_id": "P1", "bundle_quantity": 1, "variants": ["V1"]})
    assert response.status_code == 500
    assert response.json() == UnexpectedError().to_response()


def test_inspect(client, commerce):
    response = post(
        client,
        {"product_id": "P1", "bundle_quantity": 1, "variants": ["V1", "V2"]},
        path="/api/add-bundle/inspect",
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Bundle processed successfully"
    assert [v["id"] for v in body["variantDetails"]] == ["V1", "V2"]
    assert commerce.checkouts == {}
