"""
Bundle Checkout Schemas
=======================

Canonical data structures passed between the add-bundle pipeline stages.

PRODUCT METADATA CONVENTION (set by merchants on the bundle product):
---------------------------------------------------------------------
- fixedPrice     - "100.00"                  flat bundle price
- discountedSum  - "15"                      percent off every line (0-100)
- noDiscount     - any value                 lines keep their own price
- required       - '["V1", "V2"]'            variants that must be requested
- optional       - '{"V3": "9.99"}'          optional variants -> override price (or null)
- quantities     - '{"V1": 1, "V2": 2}'      per-bundle-unit multiplier

Exactly one of the three pricing keys may be present. The pricing method is
resolved once into a tagged union (FixedPrice | DiscountedSum | NoDiscount)
and the rest of the pipeline dispatches on its type.
"""

from typing import List, Dict, Any, Optional, Union, TypedDict
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
import logging

from utils import quantize_money, to_decimal

logger = logging.getLogger(__name__)


# =============================================================================
# TYPE DEFINITIONS (wire shapes)
# =============================================================================

class MetadataItemDict(TypedDict):
    """Upstream key/value metadata pair."""
    key: str
    value: str


class CheckoutLineInputDict(TypedDict, total=False):
    """Line input for checkoutCreate / checkoutLinesAdd."""
    variantId: str
    quantity: int
    price: float
    forceNewLine: bool


class VariantDetailsDict(TypedDict, total=False):
    """Variant summary returned by the inspection path."""
    id: str
    name: str
    sku: Optional[str]
    price: Optional[float]
    currency: str
    quantityAvailable: int


# =============================================================================
# PRICING METHOD (tagged union)
# =============================================================================

class PricingMethodKey(str, Enum):
    """Product metadata keys that select a pricing method."""
    FIXED_PRICE = "fixedPrice"
    DISCOUNTED_SUM = "discountedSum"
    NO_DISCOUNT = "noDiscount"


PRICING_METHOD_KEYS: List[str] = [m.value for m in PricingMethodKey]

REQUIRED_KEY = "required"
OPTIONAL_KEY = "optional"
QUANTITIES_KEY = "quantities"


@dataclass(frozen=True)
class FixedPrice:
    """The bundle sells for a flat price spread over its required variants."""
    price: Decimal
    key = PricingMethodKey.FIXED_PRICE


@dataclass(frozen=True)
class DiscountedSum:
    """Every line is discounted by the same percentage."""
    percent: Decimal
    key = PricingMethodKey.DISCOUNTED_SUM


@dataclass(frozen=True)
class NoDiscount:
    """Every line keeps its own price."""
    key = PricingMethodKey.NO_DISCOUNT


PricingMethod = Union[FixedPrice, DiscountedSum, NoDiscount]


# =============================================================================
# DATACLASS DEFINITIONS
# =============================================================================

class BundleItemStatus(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    UNKNOWN = "unknown"


@dataclass
class BundleProduct:
    """Raw product as returned by the loader: id, name and unparsed metadata."""
    id: str
    name: str
    metadata: List[MetadataItemDict] = field(default_factory=list)

    def metadata_value(self, key: str) -> Optional[str]:
        for item in self.metadata:
            if item.get("key") == key:
                return item.get("value")
        return None

    def has_metadata_key(self, key: str) -> bool:
        return any(item.get("key") == key for item in self.metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metadata": [dict(item) for item in self.metadata],
        }


@dataclass
class BundleSpec:
    """Parsed bundle definition. Lives for one request only."""
    product_id: str
    name: str
    pricing_method: PricingMethod
    required_variant_ids: List[str] = field(default_factory=list)
    optional_variant_prices: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    quantity_map: Dict[str, int] = field(default_factory=dict)

    def is_required(self, variant_id: str) -> bool:
        return variant_id in self.required_variant_ids

    def is_optional(self, variant_id: str) -> bool:
        return variant_id in self.optional_variant_prices

    def classify(self, variant_id: str) -> BundleItemStatus:
        if self.is_required(variant_id):
            return BundleItemStatus.REQUIRED
        if self.is_optional(variant_id):
            return BundleItemStatus.OPTIONAL
        return BundleItemStatus.UNKNOWN


@dataclass
class VariantFacts:
    """Price and availability of one variant, fetched per request."""
    variant_id: str
    name: str
    original_unit_price: Optional[Decimal]
    currency: str
    available_quantity: int
    sku: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VariantFacts":
        # original_unit_price is None when the variant is not priced in the channel
        gross = (((payload.get("pricing") or {}).get("price") or {}).get("gross") or {})
        available = payload.get("quantityAvailable")
        return cls(
            variant_id=payload["id"],
            name=payload.get("name") or "",
            sku=payload.get("sku"),
            original_unit_price=to_decimal(gross.get("amount")),
            currency=gross.get("currency") or "",
            available_quantity=max(0, int(available or 0)),
        )

    @property
    def is_priced(self) -> bool:
        return self.original_unit_price is not None

    def to_dict(self) -> VariantDetailsDict:
        return {
            "id": self.variant_id,
            "name": self.name,
            "sku": self.sku,
            "price": float(self.original_unit_price) if self.is_priced else None,
            "currency": self.currency,
            "quantityAvailable": self.available_quantity,
        }


@dataclass
class RequestedLine:
    """One line to push upstream."""
    variant_id: str
    quantity: int
    unit_price: Decimal

    def to_input(self, force_new_line: bool = False) -> CheckoutLineInputDict:
        line: CheckoutLineInputDict = {
            "variantId": self.variant_id,
            "quantity": self.quantity,
            "price": float(quantize_money(self.unit_price)),
        }
        if force_new_line:
            line["forceNewLine"] = True
        return line


@dataclass
class CheckoutLine:
    id: str
    variant_id: str
    quantity: int
    price: Optional[Decimal] = None


@dataclass
class Checkout:
    """Upstream checkout as seen by the pipeline; `raw` is echoed back to callers."""
    id: str
    token: Optional[str]
    lines: List[CheckoutLine] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Checkout":
        lines = []
        for line in payload.get("lines") or []:
            unit_price = (line.get("unitPrice") or {}).get("gross") or {}
            lines.append(
                CheckoutLine(
                    id=line["id"],
                    variant_id=(line.get("variant") or {}).get("id", ""),
                    quantity=int(line.get("quantity") or 0),
                    price=to_decimal(unit_price.get("amount")),
                )
            )
        metadata = {
            item["key"]: item["value"]
            for item in payload.get("metadata") or []
            if "key" in item
        }
        return cls(
            id=payload["id"],
            token=payload.get("token"),
            lines=lines,
            metadata=metadata,
            raw=payload,
        )

    @property
    def line_ids(self) -> List[str]:
        return [line.id for line in self.lines]


@dataclass
class ReconcileResult:
    """Checkout after create/extend plus the ids of lines this call added."""
    checkout: Checkout
    new_line_ids: List[str] = field(default_factory=list)
    created: bool = False
