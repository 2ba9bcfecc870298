"""Validation of bot settings updates"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from flashbot.database.models import (
    AMOUNT_LIMIT,
    GAS_PRICE_LIMIT,
    PERCENT_LIMIT,
    UPDATABLE_SETTINGS_FIELDS,
    quantize_amount,
    quantize_percent,
)
from flashbot.errors import ConfigInvalid

_BOOL_FIELDS = ("auto_execute_enabled", "alerts_enabled")

# Rounding and exclusive upper bound matching each settings column
_NUMERIC_SCALES = {
    "min_profit_threshold": (quantize_percent, PERCENT_LIMIT),
    "max_gas_price": (quantize_percent, GAS_PRICE_LIMIT),
    "trade_amount": (quantize_amount, AMOUNT_LIMIT),
    "slippage_tolerance": (quantize_percent, PERCENT_LIMIT),
}


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigInvalid(f"{name} must be a number", field=name)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigInvalid(f"{name} must be a number, got {value!r}", field=name)
    if not number.is_finite():
        raise ConfigInvalid(f"{name} must be finite", field=name)
    return number


def validate_settings_update(
    changes: Mapping[str, Any], detection_margin_pct: Decimal
) -> Dict[str, Any]:
    """
    Check a partial settings update and normalize its values.

    The update is all-or-nothing: the first offending field raises and
    nothing is returned.

    Args:
        changes: Field name to new value
        detection_margin_pct: Detection filter the executable threshold must exceed

    Returns:
        Normalized changes ready for the repository

    Raises:
        ConfigInvalid: For unknown fields or out-of-range values
    """
    unknown = sorted(set(changes) - set(UPDATABLE_SETTINGS_FIELDS))
    if unknown:
        raise ConfigInvalid(f"Unknown settings field(s): {', '.join(unknown)}", field=unknown[0])

    normalized: Dict[str, Any] = {}
    for name, value in changes.items():
        if name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ConfigInvalid(f"{name} must be a boolean", field=name)
            normalized[name] = value
            continue

        quantize, limit = _NUMERIC_SCALES[name]
        number = _to_decimal(name, value)
        if number < 0:
            raise ConfigInvalid(f"{name} must not be negative", field=name)
        if number >= limit or quantize(number) >= limit:
            raise ConfigInvalid(f"{name} must be below {limit}", field=name)
        normalized[name] = quantize(number)

    threshold = normalized.get("min_profit_threshold")
    if threshold is not None and threshold <= detection_margin_pct:
        raise ConfigInvalid(
            f"min_profit_threshold {threshold} must exceed detection filter {detection_margin_pct}",
            field="min_profit_threshold",
        )

    slippage = normalized.get("slippage_tolerance")
    if slippage is not None and slippage > 100:
        raise ConfigInvalid("slippage_tolerance must not exceed 100", field="slippage_tolerance")

    trade_amount = normalized.get("trade_amount")
    if trade_amount is not None and trade_amount <= 0:
        raise ConfigInvalid("trade_amount must be positive", field="trade_amount")

    return normalized
