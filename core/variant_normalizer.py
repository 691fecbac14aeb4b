"""
Variant Inventory & Pricing Normalization
Applies bulk-edit inventory settings to a Shopify variant: inventory policy and
tracking, a randomized stock quantity, price adjustment/rounding and the
compare-at ("was") price.
"""

import math
import random
from dataclasses import dataclass
from typing import Dict, Any, Optional

TRACKED_INVENTORY_MANAGEMENT = 'shopify'
DEFAULT_INVENTORY_POLICY = 'deny'
COMPARE_AT_STRATEGIES = ('=', '+', 'x')

# Payload keys that mean "apply inventory/pricing settings to every variant"
INVENTORY_SETTING_KEYS = (
    'qty_min', 'qty_max', 'variant_inventory_qty_min', 'variant_inventory_qty_max',
    'variant_inventory_policy', 'variant_weight_unit', 'track_quantity', 'currency',
    'adjustPrices', 'adjust_prices', 'adjustmentAmount', 'adjustment_amount',
    'roundPrices', 'round_prices', 'roundingNumber', 'rounding_number',
    'compare_at_strategy', 'compare_at_amount',
)

_TRUE_STRINGS = ('1', 'true', 'yes', 'on')


def _to_float(value: Any) -> Optional[float]:
    """Parse a finite number, None for anything else"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


@dataclass(frozen=True)
class InventorySettings:
    """Inventory and pricing options for one bulk edit, shared by all variants"""
    qty_min: int = 0
    qty_max: int = 0
    variant_inventory_policy: Optional[str] = None
    variant_weight_unit: Optional[str] = None
    track_quantity: bool = False
    currency: Optional[str] = None
    adjust_prices: bool = False
    adjustment_amount: Optional[float] = None
    round_prices: bool = False
    rounding_number: Optional[float] = None
    compare_at_strategy: Optional[str] = None
    compare_at_amount: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'InventorySettings':
        """
        Build settings from a partially filled request payload.

        Malformed values never raise: a non-numeric qty_min becomes 0, a
        non-numeric qty_max falls back to qty_min, and other numeric options
        become None (disabled).
        """
        raw = raw or {}

        qty_min = _to_int(_first_present(raw, 'qty_min', 'variant_inventory_qty_min'))
        if qty_min is None:
            qty_min = 0
        qty_max = _to_int(_first_present(raw, 'qty_max', 'variant_inventory_qty_max'))
        if qty_max is None:
            qty_max = qty_min

        strategy = _to_text(raw.get('compare_at_strategy'))
        if strategy is not None:
            strategy = strategy.lower()
            if strategy not in COMPARE_AT_STRATEGIES:
                strategy = None

        return cls(
            qty_min=qty_min,
            qty_max=qty_max,
            variant_inventory_policy=_to_text(raw.get('variant_inventory_policy')),
            variant_weight_unit=_to_text(raw.get('variant_weight_unit')),
            track_quantity=_to_bool(raw.get('track_quantity')),
            currency=_to_text(raw.get('currency')),
            adjust_prices=_to_bool(_first_present(raw, 'adjustPrices', 'adjust_prices')),
            adjustment_amount=_to_float(_first_present(raw, 'adjustmentAmount', 'adjustment_amount')),
            round_prices=_to_bool(_first_present(raw, 'roundPrices', 'round_prices')),
            rounding_number=_to_float(_first_present(raw, 'roundingNumber', 'rounding_number')),
            compare_at_strategy=strategy,
            compare_at_amount=_to_float(raw.get('compare_at_amount')),
        )


def draw_quantity(qty_min: int, qty_max: int, rng=random) -> int:
    """Uniform integer in [qty_min, qty_max], or qty_min when the range is empty"""
    if qty_max > qty_min:
        return math.floor(rng.random() * (qty_max - qty_min + 1)) + qty_min
    return qty_min


def compute_price(price: Any, settings: InventorySettings) -> float:
    """Apply the flat adjustment then the fixed-decimal rounding to a price"""
    value = _to_float(price)
    if value is None:
        value = 0.0

    if settings.adjust_prices and settings.adjustment_amount is not None:
        value += settings.adjustment_amount

    if settings.round_prices and settings.rounding_number is not None:
        # Replaces the fraction outright; 10.97 with 0.50 becomes 10.50
        value = math.floor(value) + settings.rounding_number

    return value


def compute_compare_at_price(base_price: float, settings: InventorySettings) -> Optional[float]:
    """Compare-at candidate for base_price, None unless it exceeds the base"""
    amount = settings.compare_at_amount
    if amount is None:
        return None

    if settings.compare_at_strategy == '=':
        candidate = amount
    elif settings.compare_at_strategy == '+':
        candidate = base_price + amount
    elif settings.compare_at_strategy == 'x':
        candidate = base_price * amount
    else:
        return None

    if not math.isfinite(candidate) or candidate <= base_price:
        return None
    return candidate


def normalize_variant(variant: Dict[str, Any], settings: InventorySettings, rng=random) -> None:
    """
    Apply inventory and pricing settings to a variant in place.

    inventory_management is always overwritten; weight_unit only when a unit is
    configured. The price is finalized before the compare-at price is derived
    from it, and an existing compare_at_price is left alone when no valid
    candidate is produced.

    Args:
        variant: Shopify variant dict, mutated in place
        settings: InventorySettings for this edit
        rng: Source with random() in [0, 1), for the quantity draw
    """
    variant['inventory_policy'] = settings.variant_inventory_policy or DEFAULT_INVENTORY_POLICY

    if settings.variant_weight_unit:
        variant['weight_unit'] = settings.variant_weight_unit

    variant['inventory_management'] = TRACKED_INVENTORY_MANAGEMENT if settings.track_quantity else None

    variant['inventory_quantity'] = draw_quantity(settings.qty_min, settings.qty_max, rng)

    if settings.currency:
        variant['price_currency'] = settings.currency

    price = compute_price(variant.get('price'), settings)
    variant['price'] = f"{price:.2f}"

    base_price = float(variant['price'])
    compare_at = compute_compare_at_price(base_price, settings)
    if compare_at is not None:
        variant['compare_at_price'] = f"{compare_at:.2f}"
        if settings.currency:
            variant['compare_at_price_currency'] = settings.currency
