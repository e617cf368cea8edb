"""
Bundle Service
Runs the add-bundle pipeline against one tenant's commerce API:

    load product -> validate -> check stock -> price -> reconcile checkout -> tag

Every stage raises a BundleError subclass to abort. Nothing already written
upstream is undone when a later stage fails.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from schemas.bundle_schemas import BundleSpec, RequestedLine
from services.bundle_loader import load_bundle_product
from services.bundle_validation import (
    AddBundleRequest,
    build_bundle_spec,
    check_quantity_coverage,
    check_required_coverage,
)
from services.checkout_reconciler import CheckoutReconciler
from services.commerce_client import CommerceClient
from services.credential_store import AuthData
from services.metadata_tagger import MetadataTagger
from services.pricing import BundlePricingCalculator, pricing_calculator
from services.stock_checker import check_stock, fetch_variant_details
from settings import DEFAULT_CHANNEL

logger = logging.getLogger(__name__)

ClientFactory = Callable[[AuthData], Any]


def default_client_factory(auth: AuthData) -> CommerceClient:
    return CommerceClient(auth.saleor_api_url, auth.token)


class BundleService:
    """Orchestrates the checkout path and the inspection path."""

    def __init__(
        self,
        channel: str = DEFAULT_CHANNEL,
        calculator: BundlePricingCalculator = pricing_calculator,
    ):
        self.channel = channel
        self.calculator = calculator

    async def add_bundle(self, client, request: AddBundleRequest) -> Dict[str, Any]:
        logger.info(
            f"Add bundle product={request.product_id} qty={request.bundle_quantity} "
            f"variants={request.variants} checkout={request.checkout_id or '-'}"
        )
        product = await load_bundle_product(client, request.product_id, self.channel)
        spec = build_bundle_spec(product)
        check_required_coverage(spec, request.variants)
        check_quantity_coverage(spec, request.variants)

        facts = await check_stock(client, request.variants, self.channel)
        lines = self.calculator.price_lines(spec, facts, request.variants, request.bundle_quantity)
        logger.info(
            f"Bundle '{spec.name}' x{request.bundle_quantity} totals "
            f"{self.calculator.bundle_total(lines):.2f}"
        )

        checkout = await self._reconcile_and_tag(client, spec, lines, request)
        return {
            "message": "Bundle added to checkout successfully",
            "checkout": checkout,
        }

    async def _reconcile_and_tag(
        self,
        client,
        spec: BundleSpec,
        lines: List[RequestedLine],
        request: AddBundleRequest,
    ) -> Dict[str, Any]:
        reconciler = CheckoutReconciler(client, self.channel)
        result = await reconciler.reconcile(lines, request.checkout_id)

        tagger = MetadataTagger(client)
        await tagger.tag_new_lines(result.checkout, result.new_line_ids, spec)
        return await tagger.update_ledger(result.checkout.id, spec.name, request.bundle_quantity)

    async def inspect_bundle(self, client, request: AddBundleRequest) -> Dict[str, Any]:
        """Validate pricing and required coverage, then report product and variant data."""
        product = await load_bundle_product(client, request.product_id, self.channel)
        spec = build_bundle_spec(product)
        check_required_coverage(spec, request.variants)

        logger.info(f"Processing variants from request: {request.variants}")
        variants = await fetch_variant_details(client, request.variants, self.channel)
        return {
            "message": "Bundle processed successfully",
            "productData": product.to_dict(),
            "variantDetails": [v.to_dict() for v in variants],
        }


# Global instance for application use
bundle_service = BundleService()
