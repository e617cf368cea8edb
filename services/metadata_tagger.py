"""
Metadata Tagger
Marks newly added checkout lines with their bundle membership and keeps a
per-bundle quantity ledger in the checkout's metadata.

The ledger update is a plain read-modify-write: two requests against the same
checkout at the same time can lose an increment (last writer wins).
"""
import json
import logging
from typing import Any, Dict, List, Optional

from schemas.bundle_schemas import BundleItemStatus, BundleSpec, Checkout
from services.errors import UpstreamError
from settings import BUNDLE_LEDGER_KEY

logger = logging.getLogger(__name__)

BUNDLE_NAME_KEY = "bundle_name"
BUNDLE_STATUS_KEY = "bundle_item_status"
BUNDLE_MESSAGE_KEY = "bundle_item_message"

STATUS_MESSAGES: Dict[BundleItemStatus, str] = {
    BundleItemStatus.REQUIRED: "This item is a required part of the bundle",
    BundleItemStatus.OPTIONAL: "This item is an optional add-on for the bundle",
    BundleItemStatus.UNKNOWN: "This item is not part of the bundle definition",
}


def parse_ledger(raw: Optional[str]) -> Dict[str, Any]:
    """Ledger mapping from its metadata value; {} when absent or unparsable."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Unparsable {BUNDLE_LEDGER_KEY} metadata, starting a new ledger")
        return {}
    if not isinstance(value, dict):
        return {}
    return value


def increment_ledger(ledger: Dict[str, Any], bundle_name: str, bundle_quantity: int) -> Dict[str, Any]:
    updated = dict(ledger)
    current = updated.get(bundle_name)
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        current = 0
    updated[bundle_name] = current + bundle_quantity
    return updated


def line_metadata(spec: BundleSpec, variant_id: str) -> List[Dict[str, str]]:
    status = spec.classify(variant_id)
    return [
        {"key": BUNDLE_NAME_KEY, "value": spec.name},
        {"key": BUNDLE_STATUS_KEY, "value": status.value},
        {"key": BUNDLE_MESSAGE_KEY, "value": STATUS_MESSAGES[status]},
    ]


class MetadataTagger:

    def __init__(self, client):
        self.client = client

    async def tag_new_lines(self, checkout: Checkout, new_line_ids: List[str], spec: BundleSpec) -> List[str]:
        """Write bundle metadata on each new line, in checkout order. Returns the tagged ids."""
        new_ids = set(new_line_ids)
        tagged: List[str] = []
        for line in checkout.lines:
            if line.id not in new_ids:
                continue
            await self.client.update_metadata(line.id, line_metadata(spec, line.variant_id))
            tagged.append(line.id)
        logger.info(f"Tagged {len(tagged)} lines on checkout {checkout.id} for bundle '{spec.name}'")
        return tagged

    async def update_ledger(self, checkout_id: str, bundle_name: str, bundle_quantity: int) -> Dict[str, Any]:
        """
        Add bundle_quantity to ledger[bundle_name] and write the whole ledger back.

        Returns the updated checkout payload from the metadata mutation.
        """
        payload = await self.client.get_checkout(checkout_id)
        if not payload:
            raise UpstreamError(f"Could not fetch checkout {checkout_id}")
        current = Checkout.from_payload(payload).metadata.get(BUNDLE_LEDGER_KEY)

        ledger = increment_ledger(parse_ledger(current), bundle_name, bundle_quantity)
        logger.info(f"Checkout {checkout_id} ledger -> {ledger}")
        return await self.client.update_metadata(
            checkout_id,
            [{"key": BUNDLE_LEDGER_KEY, "value": json.dumps(ledger)}],
        )
