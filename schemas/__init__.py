"""
Bundle Schemas Package
Provides the data structures shared by the add-bundle pipeline.
"""

from .bundle_schemas import (
    # Wire shapes
    MetadataItemDict,
    CheckoutLineInputDict,
    VariantDetailsDict,

    # Pricing method tagged union
    PricingMethodKey,
    PricingMethod,
    FixedPrice,
    DiscountedSum,
    NoDiscount,
    PRICING_METHOD_KEYS,
    REQUIRED_KEY,
    OPTIONAL_KEY,
    QUANTITIES_KEY,

    # Pipeline data
    BundleItemStatus,
    BundleProduct,
    BundleSpec,
    VariantFacts,
    RequestedLine,
    CheckoutLine,
    Checkout,
    ReconcileResult,
)
