"""Fetches a bundle product's metadata from the commerce API."""
import logging

from schemas.bundle_schemas import BundleProduct
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


async def load_bundle_product(client, product_id: str, channel: str) -> BundleProduct:
    """Return the product with its raw key/value metadata; NotFoundError if absent."""
    product = await client.get_product(product_id, channel)
    if not product:
        logger.warning(f"Product {product_id} not found in channel {channel}")
        raise NotFoundError("Product not found")

    metadata = [
        {"key": item.get("key"), "value": item.get("value")}
        for item in product.get("metadata") or []
        if item.get("key") is not None
    ]
    logger.info(f"Loaded bundle product {product.get('id')} with {len(metadata)} metadata keys")
    return BundleProduct(
        id=product.get("id") or product_id,
        name=product.get("name") or "",
        metadata=metadata,
    )
