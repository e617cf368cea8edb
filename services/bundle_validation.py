"""
Bundle Validation Pipeline
Checks run in a fixed order and the first failure aborts the request:

1. structural: product_id, bundle_quantity, variants present and well-typed
2. (tenant credentials resolved by the router before any upstream call)
3. pricing-method exclusivity across fixedPrice / discountedSum / noDiscount
4. every required variant is requested
5. every requested variant has a quantity multiplier
"""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, constr, field_validator
from pydantic import ValidationError as PydanticValidationError

from schemas.bundle_schemas import (
    BundleProduct,
    BundleSpec,
    DiscountedSum,
    FixedPrice,
    NoDiscount,
    OPTIONAL_KEY,
    PRICING_METHOD_KEYS,
    PricingMethod,
    PricingMethodKey,
    QUANTITIES_KEY,
    REQUIRED_KEY,
)
from services.errors import ValidationError
from utils import to_decimal

logger = logging.getLogger(__name__)


class AddBundleRequest(BaseModel):
    """Body of POST /api/add-bundle and /api/add-bundle/inspect."""

    product_id: StrictStr = Field(..., min_length=1)
    bundle_quantity: StrictInt = Field(..., gt=0)
    variants: List[constr(strict=True, min_length=1)]
    checkout_id: Optional[StrictStr] = Field(None, alias="checkoutId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("checkout_id")
    @classmethod
    def _blank_checkout_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


# -------------------------------------------------------------------
# Step 1: structural
# -------------------------------------------------------------------
# Field order matches AddBundleRequest, so pydantic reports the earliest
# failing field first.
_MISSING_MESSAGES = {
    "product_id": "product_id is required",
    "bundle_quantity": "bundle_quantity is required",
    "variants": "variants array is required",
}
_INVALID_MESSAGES = {
    "product_id": "product_id must be a string",
    "bundle_quantity": "bundle_quantity must be a positive integer",
    "variants": "variants must be an array of variant ids",
    "checkoutId": "checkoutId must be a string",
}


def _error_message(error: Dict[str, Any]) -> str:
    field = error["loc"][0]
    if field == "variants":
        # the list itself is absent or not a list
        if len(error["loc"]) == 1:
            return _MISSING_MESSAGES[field]
        return _INVALID_MESSAGES[field]
    if field in _MISSING_MESSAGES and (error["type"] == "missing" or not error.get("input")):
        return _MISSING_MESSAGES[field]
    return _INVALID_MESSAGES.get(field, "Invalid request body")


def validate_request_payload(body: Any) -> AddBundleRequest:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return AddBundleRequest.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0]
        logger.info(f"Rejected add-bundle payload: {first['loc']} {first['type']}")
        raise ValidationError(_error_message(first))


# -------------------------------------------------------------------
# Step 3: pricing method
# -------------------------------------------------------------------
def find_pricing_methods(product: BundleProduct) -> List[str]:
    return [key for key in PRICING_METHOD_KEYS if product.has_metadata_key(key)]


def resolve_pricing_method(product: BundleProduct) -> PricingMethod:
    """Build the tagged pricing method; exactly one method key must be present."""
    found = find_pricing_methods(product)
    logger.info(f"Present pricing methods for {product.id}: {found}")

    if not found:
        raise ValidationError("Pricing is not set for this bundle")
    if len(found) > 1:
        raise ValidationError(
            "Pricing is not set for this bundle - multiple pricing methods found",
            details={"foundMethods": found},
        )

    key = PricingMethodKey(found[0])
    raw = product.metadata_value(key.value)

    if key is PricingMethodKey.NO_DISCOUNT:
        return NoDiscount()

    amount = to_decimal(raw)
    if key is PricingMethodKey.FIXED_PRICE:
        if amount is None or amount < 0:
            raise ValidationError(f"Invalid {key.value} value: {raw!r}")
        return FixedPrice(price=amount)

    if amount is None or amount < 0 or amount > 100:
        raise ValidationError(f"Invalid {key.value} value: {raw!r}")
    return DiscountedSum(percent=amount)


# -------------------------------------------------------------------
# Bundle definition keys
# -------------------------------------------------------------------
def _load_json(product: BundleProduct, key: str) -> Any:
    raw = product.metadata_value(key)
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Bundle metadata '{key}' is not valid JSON")


def parse_required_variants(product: BundleProduct) -> List[str]:
    value = _load_json(product, REQUIRED_KEY)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"Bundle metadata '{REQUIRED_KEY}' must be an array of variant ids")
    # dedupe, keep order
    return list(dict.fromkeys(value))


def parse_optional_prices(product: BundleProduct) -> Dict[str, Optional[Decimal]]:
    value = _load_json(product, OPTIONAL_KEY)
    if value is None:
        return {}
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return {variant_id: None for variant_id in value}
    if not isinstance(value, dict):
        raise ValidationError(f"Bundle metadata '{OPTIONAL_KEY}' must map variant ids to prices")

    prices: Dict[str, Optional[Decimal]] = {}
    for variant_id, raw_price in value.items():
        if raw_price is None:
            prices[variant_id] = None
            continue
        price = to_decimal(raw_price)
        if price is None or price < 0:
            raise ValidationError(f"Invalid optional price for variant {variant_id}: {raw_price!r}")
        prices[variant_id] = price
    return prices


def parse_quantity_map(product: BundleProduct) -> Dict[str, int]:
    value = _load_json(product, QUANTITIES_KEY)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"Bundle metadata '{QUANTITIES_KEY}' must map variant ids to quantities")

    quantities: Dict[str, int] = {}
    for variant_id, raw_qty in value.items():
        if isinstance(raw_qty, bool):
            raw_qty = None
        try:
            qty = int(raw_qty)
        except (TypeError, ValueError):
            qty = 0
        if qty < 1 or str(raw_qty).strip() != str(qty):
            raise ValidationError(f"Invalid quantity for variant {variant_id}: {raw_qty!r}")
        quantities[variant_id] = qty
    return quantities


def build_bundle_spec(product: BundleProduct) -> BundleSpec:
    pricing_method = resolve_pricing_method(product)
    return BundleSpec(
        product_id=product.id,
        name=product.name or product.id,
        pricing_method=pricing_method,
        required_variant_ids=parse_required_variants(product),
        optional_variant_prices=parse_optional_prices(product),
        quantity_map=parse_quantity_map(product),
    )


# -------------------------------------------------------------------
# Steps 4 and 5: coverage
# -------------------------------------------------------------------
def check_required_coverage(spec: BundleSpec, variants: List[str]) -> None:
    requested = set(variants)
    missing = [v for v in spec.required_variant_ids if v not in requested]
    if missing:
        logger.info(f"Required variants missing for {spec.product_id}: {missing}")
        raise ValidationError(
            "Required variant is missing",
            details={"missingVariants": missing},
        )


def check_quantity_coverage(spec: BundleSpec, variants: List[str]) -> None:
    missing = [v for v in dict.fromkeys(variants) if v not in spec.quantity_map]
    if missing:
        logger.info(f"Variants without a quantity for {spec.product_id}: {missing}")
        raise ValidationError(
            "Quantity is not set for some variants",
            details={"missingQuantityVariants": missing},
        )
