"""
Checkout Reconciler
Creates a checkout or appends to an existing one, and works out which lines
this call added. Lines are always appended, never merged into an existing
line for the same variant, so adding the same bundle twice yields two sets
of lines.
"""
import logging
from typing import List, Optional

from schemas.bundle_schemas import Checkout, ReconcileResult, RequestedLine
from services.errors import UpstreamError

logger = logging.getLogger(__name__)


class CheckoutReconciler:

    def __init__(self, client, channel: str):
        self.client = client
        self.channel = channel

    async def reconcile(self, lines: List[RequestedLine], checkout_id: Optional[str] = None) -> ReconcileResult:
        if not checkout_id:
            return await self._create(lines)
        return await self._extend(checkout_id, lines)

    async def _create(self, lines: List[RequestedLine]) -> ReconcileResult:
        logger.info("No checkoutId provided - creating new checkout")
        payload = await self.client.create_checkout(
            self.channel,
            [line.to_input() for line in lines],
        )
        checkout = Checkout.from_payload(payload)
        logger.info(f"Created checkout {checkout.id} with {len(checkout.lines)} lines")
        return ReconcileResult(checkout=checkout, new_line_ids=checkout.line_ids, created=True)

    async def _extend(self, checkout_id: str, lines: List[RequestedLine]) -> ReconcileResult:
        logger.info(f"Adding bundle lines to existing checkout {checkout_id}")
        existing_payload = await self.client.get_checkout(checkout_id)
        if not existing_payload:
            raise UpstreamError(f"Could not fetch checkout {checkout_id}")
        before = set(Checkout.from_payload(existing_payload).line_ids)

        payload = await self.client.add_checkout_lines(
            checkout_id,
            [line.to_input(force_new_line=True) for line in lines],
        )
        checkout = Checkout.from_payload(payload)
        new_line_ids = [line_id for line_id in checkout.line_ids if line_id not in before]
        logger.info(
            f"Checkout {checkout_id}: {len(before)} existing lines, {len(new_line_ids)} new"
        )
        return ReconcileResult(checkout=checkout, new_line_ids=new_line_ids, created=False)
