"""
Commerce API Client
Thin async GraphQL client for the tenant's commerce API (Saleor-style).
One POST endpoint, bearer credential in the `Authorization-Bearer` header.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from services.errors import UnexpectedError, UpstreamError
from settings import UPSTREAM_TIMEOUT_SECONDS
from utils import mask_token

logger = logging.getLogger(__name__)


CHECKOUT_FRAGMENT = """
fragment CheckoutDetails on Checkout {
  id
  token
  metadata { key value }
  lines {
    id
    quantity
    variant { id name }
    unitPrice { gross { amount currency } }
    metadata { key value }
  }
  totalPrice { gross { amount currency } }
}
"""

PRODUCT_QUERY = """
query GetProductDetails($id: ID!, $channel: String!) {
  product(id: $id, channel: $channel) {
    id
    name
    metadata { key value }
  }
}
"""

VARIANT_QUERY = """
query GetVariantDetails($id: ID!, $channel: String!) {
  productVariant(id: $id, channel: $channel) {
    id
    name
    sku
    quantityAvailable
    pricing {
      price {
        gross { amount currency }
      }
    }
  }
}
"""

CHECKOUT_QUERY = CHECKOUT_FRAGMENT + """
query GetCheckoutDetails($id: ID!) {
  checkout(id: $id) { ...CheckoutDetails }
}
"""

CHECKOUT_CREATE_MUTATION = CHECKOUT_FRAGMENT + """
mutation CreateCheckout($input: CheckoutCreateInput!) {
  checkoutCreate(input: $input) {
    checkout { ...CheckoutDetails }
    errors { field message code }
  }
}
"""

CHECKOUT_LINES_ADD_MUTATION = CHECKOUT_FRAGMENT + """
mutation AddLinesToCheckout($id: ID!, $lines: [CheckoutLineInput!]!) {
  checkoutLinesAdd(id: $id, lines: $lines) {
    checkout { ...CheckoutDetails }
    errors { field message code }
  }
}
"""

UPDATE_METADATA_MUTATION = CHECKOUT_FRAGMENT + """
mutation UpdateMetadata($id: ID!, $input: [MetadataInput!]!) {
  updateMetadata(id: $id, input: $input) {
    item {
      metadata { key value }
      ... on Checkout { ...CheckoutDetails }
    }
    errors { field message code }
  }
}
"""


def join_error_messages(errors: List[Dict[str, Any]]) -> str:
    messages = [str(e.get("message") or e.get("code") or "unknown error") for e in errors]
    return ", ".join(messages)


class CommerceClient:
    """GraphQL client bound to one tenant's API URL and token."""

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        timeout: float = UPSTREAM_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.token = token
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "CommerceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization-Bearer"] = self.token
        return headers

    async def execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST one GraphQL document and return its `data` object.

        Raises UpstreamError when the response carries an `errors` list and
        UnexpectedError on transport or decoding failures.
        """
        logger.debug(f"GraphQL request url={self.api_url} token={mask_token(self.token)}")
        try:
            response = await self._client.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers=self._headers(),
            )
            body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"GraphQL transport error for {self.api_url}: {e}")
            raise UnexpectedError() from e
        except ValueError as e:
            logger.error(f"GraphQL response from {self.api_url} is not JSON: {e}")
            raise UnexpectedError() from e

        if not isinstance(body, dict):
            logger.error(f"GraphQL response from {self.api_url} has unexpected shape")
            raise UnexpectedError()

        if body.get("errors"):
            logger.error(f"GraphQL errors: {body['errors']}")
            raise UpstreamError(f"GraphQL errors: {join_error_messages(body['errors'])}")

        if response.status_code >= 400:
            logger.error(f"GraphQL HTTP {response.status_code} from {self.api_url}")
            raise UnexpectedError()

        return body.get("data") or {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_product(self, product_id: str, channel: str) -> Optional[Dict[str, Any]]:
        data = await self.execute(PRODUCT_QUERY, {"id": product_id, "channel": channel})
        return data.get("product")

    async def get_variant(self, variant_id: str, channel: str) -> Optional[Dict[str, Any]]:
        data = await self.execute(VARIANT_QUERY, {"id": variant_id, "channel": channel})
        return data.get("productVariant")

    async def get_checkout(self, checkout_id: str) -> Optional[Dict[str, Any]]:
        data = await self.execute(CHECKOUT_QUERY, {"id": checkout_id})
        return data.get("checkout")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    @staticmethod
    def _mutation_payload(data: Dict[str, Any], field: str, result_key: str, action: str) -> Dict[str, Any]:
        payload = data.get(field) or {}
        errors = payload.get("errors") or []
        if errors:
            raise UpstreamError(f"{action}. Error: {join_error_messages(errors)}")
        result = payload.get(result_key)
        if not result:
            raise UpstreamError(f"{action}. Error: empty response")
        return result

    async def create_checkout(self, channel: str, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        data = await self.execute(
            CHECKOUT_CREATE_MUTATION,
            {"input": {"channel": channel, "lines": lines}},
        )
        return self._mutation_payload(data, "checkoutCreate", "checkout", "Could not create checkout")

    async def add_checkout_lines(self, checkout_id: str, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        data = await self.execute(
            CHECKOUT_LINES_ADD_MUTATION,
            {"id": checkout_id, "lines": lines},
        )
        return self._mutation_payload(data, "checkoutLinesAdd", "checkout", "Failed to add lines")

    async def update_metadata(self, item_id: str, items: List[Dict[str, str]]) -> Dict[str, Any]:
        data = await self.execute(UPDATE_METADATA_MUTATION, {"id": item_id, "input": items})
        return self._mutation_payload(data, "updateMetadata", "item", f"Failed to update metadata on {item_id}")
