"""
Unit tests for the fee component.

Tests:
- Split arithmetic and half-up rounding
- Complement invariant across many amounts
- Invalid amounts
- Config loading
"""

from decimal import Decimal
from pathlib import Path

import pytest

from src.components.fees import (
    DEFAULT_FEE_RATE,
    FeeConfig,
    FeeSplit,
    SplitInput,
    load_config_from_rules,
    run,
    split,
)
from src.domain.errors import InvalidAmount, ValidationFailure
from src.domain.money import round_cents
from src.rules.loader import load_rules

RULES_PATH = Path(__file__).resolve().parents[4] / "rules.yaml"


class TestSplit:
    def test_ten_percent_default(self) -> None:
        result = split(Decimal("29.99"))
        assert result.platform_fee == Decimal("3.00")
        assert result.seller_earnings == Decimal("26.99")

    def test_round_half_up(self) -> None:
        # 0.05 * 0.10 = 0.005 -> 0.01
        result = split(Decimal("0.05"))
        assert result.platform_fee == Decimal("0.01")
        assert result.seller_earnings == Decimal("0.04")

    def test_below_half_rounds_down(self) -> None:
        # 0.04 * 0.10 = 0.004 -> 0.00
        result = split(Decimal("0.04"))
        assert result.platform_fee == Decimal("0.00")
        assert result.seller_earnings == Decimal("0.04")

    def test_accepts_int_and_str(self) -> None:
        assert split(10) == FeeSplit(Decimal("1.00"), Decimal("9.00"))
        assert split("10.00") == FeeSplit(Decimal("1.00"), Decimal("9.00"))

    def test_custom_rate(self) -> None:
        result = split(Decimal("100.00"), Decimal("0.25"))
        assert result.platform_fee == Decimal("25.00")
        assert result.seller_earnings == Decimal("75.00")

    def test_zero_rate(self) -> None:
        result = split(Decimal("12.34"), Decimal("0"))
        assert result.platform_fee == Decimal("0.00")
        assert result.seller_earnings == Decimal("12.34")

    @pytest.mark.parametrize(
        "amount",
        ["0.01", "0.15", "0.25", "0.95", "1.05", "9.99", "19.95", "33.33", "123.45", "99999.99"],
    )
    def test_fee_plus_earnings_equals_amount(self, amount: str) -> None:
        value = Decimal(amount)
        result = split(value)
        assert result.total == value
        assert result.platform_fee == round_cents(value * DEFAULT_FEE_RATE)

    def test_every_cent_up_to_ten_dollars(self) -> None:
        for cents in range(1, 1001):
            value = Decimal(cents).scaleb(-2)
            result = split(value)
            assert result.platform_fee + result.seller_earnings == value
            assert result.seller_earnings >= 0


class TestInvalidAmount:
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1.00"), "-0.01", 0])
    def test_non_positive(self, amount: object) -> None:
        with pytest.raises(InvalidAmount):
            split(amount)  # type: ignore[arg-type]

    def test_sub_cent_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            split(Decimal("1.005"))

    def test_not_a_number(self) -> None:
        with pytest.raises(InvalidAmount):
            split("ten dollars")

    def test_nan_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            split(Decimal("NaN"))

    def test_beyond_decimal_precision(self) -> None:
        with pytest.raises(InvalidAmount):
            split("1e30")

    def test_is_validation_failure(self) -> None:
        with pytest.raises(ValidationFailure) as exc:
            split(Decimal("0"))
        assert exc.value.status_code == 400
        assert exc.value.field == "amount"


class TestRun:
    def test_dispatches_split(self) -> None:
        out = run(SplitInput(amount=Decimal("50.00")), FeeConfig(fee_rate=Decimal("0.20")))
        assert out.platform_fee == Decimal("10.00")

    def test_unknown_input(self) -> None:
        with pytest.raises(TypeError):
            run("not an input")  # type: ignore[arg-type]


class TestConfig:
    def test_load_from_rules(self) -> None:
        config = load_config_from_rules(load_rules(RULES_PATH))
        assert config.fee_rate == Decimal("0.10")
        assert config.currency == "USD"
