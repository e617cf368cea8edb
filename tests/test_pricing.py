from decimal import Decimal

import pytest

from schemas.bundle_schemas import BundleSpec, DiscountedSum, FixedPrice, NoDiscount, VariantFacts
from services.errors import ValidationError
from services.pricing import (
    BundlePricingCalculator,
    FlatDiscount,
    PassThrough,
    PricingStrategy,
    WeightedAllocation,
    strategy_for,
)


def facts(**prices):
    return {
        variant_id: VariantFacts(
            variant_id=variant_id,
            name=variant_id,
            original_unit_price=Decimal(str(price)),
            currency="USD",
            available_quantity=5,
        )
        for variant_id, price in prices.items()
    }


def spec(method, required=(), optional=None, quantities=None):
    return BundleSpec(
        product_id="P",
        name="Kit",
        pricing_method=method,
        required_variant_ids=list(required),
        optional_variant_prices=optional or {},
        quantity_map=quantities or {},
    )


calculator = BundlePricingCalculator()


def test_strategy_dispatch():
    assert isinstance(strategy_for(FixedPrice(Decimal("1"))), WeightedAllocation)
    assert isinstance(strategy_for(DiscountedSum(Decimal("5"))), FlatDiscount)
    assert isinstance(strategy_for(NoDiscount()), PassThrough)


def test_fixed_price_worked_example():
    bundle = spec(FixedPrice(Decimal("100")), required=["V1", "V2"], quantities={"V1": 1, "V2": 2})
    lines = calculator.price_lines(bundle, facts(V1=80, V2=40), ["V1", "V2"], bundle_quantity=1)

    by_id = {line.variant_id: line for line in lines}
    assert by_id["V1"].quantity == 1
    assert by_id["V2"].quantity == 2
    assert by_id["V1"].unit_price == pytest.approx(Decimal("66.6667"), abs=Decimal("0.001"))
    assert by_id["V2"].unit_price == pytest.approx(Decimal("16.6667"), abs=Decimal("0.001"))
    assert by_id["V1"].to_input()["price"] == 66.67
    assert by_id["V2"].to_input()["price"] == 16.67


def test_fixed_price_required_lines_sum_to_bundle_price():
    bundle = spec(
        FixedPrice(Decimal("59.99")),
        required=["A", "B", "C"],
        quantities={"A": 3, "B": 1, "C": 7},
    )
    lines = calculator.price_lines(bundle, facts(A=12.5, B=30, C=3.33), ["A", "B", "C"], 1)
    total = sum(line.unit_price * bundle.quantity_map[line.variant_id] for line in lines)
    assert total == pytest.approx(Decimal("59.99"), abs=Decimal("0.0001"))


def test_fixed_price_optional_uses_override_or_own_price():
    bundle = spec(
        FixedPrice(Decimal("50")),
        required=["R"],
        optional={"O1": Decimal("4"), "O2": None},
        quantities={"R": 1, "O1": 2, "O2": 4},
    )
    lines = calculator.price_lines(bundle, facts(R=70, O1=10, O2=20), ["R", "O1", "O2"], 3)
    by_id = {line.variant_id: line for line in lines}
    assert by_id["R"].unit_price == Decimal("50")
    assert by_id["O1"].unit_price == Decimal("2")
    assert by_id["O2"].unit_price == Decimal("5")
    assert [l.quantity for l in lines] == [3, 6, 12]


def test_fixed_price_zero_required_total_is_rejected():
    bundle = spec(FixedPrice(Decimal("10")), required=["V1"], quantities={"V1": 1})
    with pytest.raises(ValidationError):
        calculator.price_lines(bundle, facts(V1=0), ["V1"], 1)


@pytest.mark.parametrize("multiplier", [1, 2, 5])
def test_discounted_sum_independent_of_multiplier(multiplier):
    bundle = spec(
        DiscountedSum(Decimal("15")),
        required=["V1"],
        optional={"V2": Decimal("1")},
        quantities={"V1": multiplier, "V2": multiplier},
    )
    lines = calculator.price_lines(bundle, facts(V1=20, V2=9.99), ["V1", "V2"], 2)
    by_id = {line.variant_id: line for line in lines}
    assert by_id["V1"].unit_price == Decimal("20") * (Decimal("1") - Decimal("15") / Decimal("100"))
    assert by_id["V2"].unit_price == Decimal("9.99") * (Decimal("1") - Decimal("15") / Decimal("100"))
    assert by_id["V1"].quantity == multiplier * 2


def test_no_discount_keeps_original_price():
    bundle = spec(NoDiscount(), required=["V1"], quantities={"V1": 4, "V2": 1})
    lines = calculator.price_lines(bundle, facts(V1=12.34, V2=5), ["V1", "V2"], 1)
    assert [l.unit_price for l in lines] == [Decimal("12.34"), Decimal("5")]
    assert [l.quantity for l in lines] == [4, 1]


def test_duplicate_variants_priced_once():
    bundle = spec(NoDiscount(), quantities={"V1": 1})
    lines = calculator.price_lines(bundle, facts(V1=3), ["V1", "V1"], 1)
    assert len(lines) == 1


def test_bundle_total():
    bundle = spec(FixedPrice(Decimal("100")), required=["V1", "V2"], quantities={"V1": 1, "V2": 2})
    lines = calculator.price_lines(bundle, facts(V1=80, V2=40), ["V1", "V2"], 2)
    assert calculator.bundle_total(lines) == pytest.approx(Decimal("200"), abs=Decimal("0.0001"))


def test_strategy_without_unit_price_cannot_be_built():
    class Incomplete(PricingStrategy):
        name = "incomplete"

    with pytest.raises(TypeError):
        Incomplete()
