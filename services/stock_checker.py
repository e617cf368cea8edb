"""
Stock Checker
Fetches price and availability for each requested variant, one at a time,
in request order. The first variant that is unpriced or has nothing
available aborts the scan.
"""
import logging
from typing import Dict, List

from schemas.bundle_schemas import VariantFacts
from services.errors import BundleError, NotFoundError, StockError

logger = logging.getLogger(__name__)


async def fetch_variant_facts(client, variant_id: str, channel: str) -> VariantFacts:
    payload = await client.get_variant(variant_id, channel)
    if not payload:
        raise NotFoundError(f"Product variant {variant_id} not found", status_code=400)
    return VariantFacts.from_payload(payload)


async def check_stock(client, variant_ids: List[str], channel: str) -> Dict[str, VariantFacts]:
    """
    Return VariantFacts keyed by variant id, in request order.

    Raises NotFoundError when a variant has no price in the channel and
    StockError on the first zero-availability variant; variants after it are
    never fetched. Duplicate ids are fetched once.
    """
    facts: Dict[str, VariantFacts] = {}
    for variant_id in variant_ids:
        if variant_id in facts:
            continue
        variant = await fetch_variant_facts(client, variant_id, channel)
        if not variant.is_priced:
            logger.warning(f"Variant {variant_id} has no price in channel {channel}; aborting bundle")
            raise NotFoundError(
                f"Product variant {variant_id} has no price in channel {channel}",
                status_code=400,
            )
        if variant.available_quantity <= 0:
            logger.info(f"Variant {variant_id} is out of stock; aborting bundle")
            raise StockError()
        facts[variant_id] = variant
    return facts


async def fetch_variant_details(client, variant_ids: List[str], channel: str) -> List[VariantFacts]:
    """Lenient lookup for the inspection path: unresolved variants are logged and skipped."""
    details: List[VariantFacts] = []
    for variant_id in variant_ids:
        try:
            details.append(await fetch_variant_facts(client, variant_id, channel))
        except BundleError as e:
            logger.warning(f"Variant {variant_id} not found or error: {e.message}")
    return details
