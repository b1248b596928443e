"""
Fee component.

Pure functions for splitting a sale amount into platform fee and seller
earnings.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from src.domain.errors import InvalidAmount
from src.domain.money import as_decimal, is_cent_precise, round_cents
from src.rules.models import Rules

from .models import DEFAULT_FEE_RATE, FeeConfig, FeeSplit, SplitInput


def split(amount: Decimal | int | str, fee_rate: Decimal = DEFAULT_FEE_RATE) -> FeeSplit:
    """
    Split amount into (platform_fee, seller_earnings).

    platform_fee is amount * fee_rate rounded half-up to the cent;
    seller_earnings = amount - platform_fee.

    Raises:
        InvalidAmount: amount is not a positive, cent-precise number
    """
    try:
        value = as_decimal(amount)
    except ValueError as e:
        raise InvalidAmount(amount) from e

    try:
        if not value.is_finite() or value <= 0 or not is_cent_precise(value):
            raise InvalidAmount(amount)
        platform_fee = round_cents(value * fee_rate)
    except InvalidOperation as e:
        # Too many digits to quantize to the cent
        raise InvalidAmount(amount) from e

    return FeeSplit(platform_fee=platform_fee, seller_earnings=value - platform_fee)


# --- Run Function (Atomic Component Pattern) ---


def run(input_data: SplitInput, config: FeeConfig | None = None) -> FeeSplit:
    config = config or FeeConfig()

    if isinstance(input_data, SplitInput):
        return split(input_data.amount, config.fee_rate)

    raise TypeError(f"Unknown input type: {type(input_data)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> FeeConfig:
    return FeeConfig(fee_rate=rules.commerce.fee_rate, currency=rules.commerce.currency)
