"""
Bundle Pricing Service
Per-unit line prices for a bundle under its single pricing method.

- PassThrough (noDiscount): each variant keeps its own price
- FlatDiscount (discountedSum): every variant loses the same percentage
- WeightedAllocation (fixedPrice): the flat bundle price is spread over the
  required variants in proportion to their standalone price, then divided by
  each variant's per-bundle multiplier; optional variants use their override
  price (or their own price) divided by the multiplier

Line quantity is always quantity_map[variant] * bundle_quantity.
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Optional
import logging
from decimal import Decimal

from schemas.bundle_schemas import (
    BundleSpec,
    DiscountedSum,
    FixedPrice,
    NoDiscount,
    PricingMethod,
    RequestedLine,
    VariantFacts,
)
from services.errors import ValidationError

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


class PricingStrategy(ABC):
    """Base strategy: subclasses turn VariantFacts into a unit price."""

    name = "base"

    def prepare(self, spec: BundleSpec, facts: Dict[str, VariantFacts]) -> None:
        """Hook for strategies that need bundle-wide totals before pricing lines."""

    @abstractmethod
    def unit_price(self, spec: BundleSpec, variant: VariantFacts) -> Decimal:
        """Per-unit price for one variant of the bundle."""


class PassThrough(PricingStrategy):
    name = "pass_through"

    def unit_price(self, spec: BundleSpec, variant: VariantFacts) -> Decimal:
        return variant.original_unit_price


class FlatDiscount(PricingStrategy):
    name = "flat_discount"

    def __init__(self, percent: Decimal):
        self.percent = percent
        self.multiplier = Decimal('1') - percent / HUNDRED

    def unit_price(self, spec: BundleSpec, variant: VariantFacts) -> Decimal:
        return variant.original_unit_price * self.multiplier


class WeightedAllocation(PricingStrategy):
    name = "weighted_allocation"

    def __init__(self, fixed_price: Decimal):
        self.fixed_price = fixed_price
        self.total_required_original: Optional[Decimal] = None

    def prepare(self, spec: BundleSpec, facts: Dict[str, VariantFacts]) -> None:
        total = Decimal('0')
        for variant_id in spec.required_variant_ids:
            variant = facts.get(variant_id)
            if variant is not None:
                total += variant.original_unit_price

        if total <= 0:
            logger.warning(
                f"Bundle {spec.product_id} has fixedPrice but required variants total {total}"
            )
            raise ValidationError(
                "Invalid bundle configuration: required variants have no price to allocate the fixed price over"
            )
        self.total_required_original = total

    def unit_price(self, spec: BundleSpec, variant: VariantFacts) -> Decimal:
        if self.total_required_original is None:
            raise RuntimeError("WeightedAllocation.prepare() must run before pricing lines")

        multiplier = Decimal(spec.quantity_map[variant.variant_id])

        if spec.is_required(variant.variant_id):
            weight = variant.original_unit_price / self.total_required_original
            return (self.fixed_price * weight) / multiplier

        override = spec.optional_variant_prices.get(variant.variant_id)
        base = override if override is not None else variant.original_unit_price
        return base / multiplier


def strategy_for(method: PricingMethod) -> PricingStrategy:
    if isinstance(method, FixedPrice):
        return WeightedAllocation(method.price)
    if isinstance(method, DiscountedSum):
        return FlatDiscount(method.percent)
    if isinstance(method, NoDiscount):
        return PassThrough()
    raise TypeError(f"Unsupported pricing method: {method!r}")


class BundlePricingCalculator:
    """Turns a validated bundle and its variant facts into checkout lines."""

    def price_lines(
        self,
        spec: BundleSpec,
        facts: Dict[str, VariantFacts],
        variant_ids: List[str],
        bundle_quantity: int,
    ) -> List[RequestedLine]:
        strategy = strategy_for(spec.pricing_method)
        strategy.prepare(spec, facts)

        lines: List[RequestedLine] = []
        for variant_id in dict.fromkeys(variant_ids):
            variant = facts[variant_id]
            multiplier = spec.quantity_map[variant_id]
            lines.append(
                RequestedLine(
                    variant_id=variant_id,
                    quantity=multiplier * bundle_quantity,
                    unit_price=strategy.unit_price(spec, variant),
                )
            )

        logger.info(
            f"Priced {len(lines)} lines for bundle {spec.product_id} using {strategy.name}: "
            + ", ".join(f"{l.variant_id}x{l.quantity}@{l.unit_price:.2f}" for l in lines)
        )
        return lines

    @staticmethod
    def bundle_total(lines: List[RequestedLine]) -> Decimal:
        return sum((line.unit_price * line.quantity for line in lines), Decimal('0'))


# Global instance for application use
pricing_calculator = BundlePricingCalculator()
