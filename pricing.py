"""
Checkout summary: tax, shipping and grand total derived from a cart total.

Pure functions of the total and the configured policy; recomputed on every
request, never stored.
"""
import math
from typing import Optional

import config
from schemas import CheckoutSummary


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties going up, the way the storefront displays numbers."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def tax_for(total_amount: float, rate: Optional[float] = None) -> float:
    rate = config.TAX_RATE if rate is None else rate
    return round(total_amount * rate, 2)


def shipping_fee_for(total_amount: float) -> float:
    return 0.0 if total_amount > config.FREE_SHIPPING_THRESHOLD else config.SHIPPING_FEE


def checkout_summary(total_amount: float) -> CheckoutSummary:
    tax = tax_for(total_amount)
    shipping_fee = shipping_fee_for(total_amount)
    amount_to_free_shipping = 0.0
    if shipping_fee > 0 and total_amount < config.FREE_SHIPPING_THRESHOLD:
        amount_to_free_shipping = round(config.FREE_SHIPPING_THRESHOLD - total_amount, 2)
    return CheckoutSummary(
        subtotal=round(total_amount, 2),
        tax=tax,
        shipping_fee=shipping_fee,
        grand_total=round(total_amount + tax + shipping_fee, 2),
        amount_to_free_shipping=amount_to_free_shipping,
    )
