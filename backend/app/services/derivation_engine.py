"""
derivation_engine.py — Derived numeric fields of a material passport.

    weight    = density × volume
    gwp_total = gwp_a1 + gwp_a2 + gwp_a3          (EN 15804 product stage A1–A3)
    net_gwp   = gwp_total − stage_d_reduction      (Stage D credit)

All arithmetic is done in Decimal so decimal-string inputs round-trip exactly
("0.89" + "0.12" + "1.44" == "2.45").  A derived value is only produced when
every input is present; otherwise the caller keeps whatever was stored.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Union

from app.errors import ValidationError

Number = Union[Decimal, int, float, str, None]

DERIVED_FIELDS = ("weight", "gwp_total", "net_gwp")


def parse_decimal(value: Number, field: str = "value") -> Optional[Decimal]:
    """
    Parse a numeric input into a Decimal.

    ``None`` and blank strings mean "absent" and return None.  Anything that is
    not a finite decimal raises ValidationError naming the field.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid numeric value for {field}")
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    try:
        # str() keeps float inputs from dragging binary noise into the result
        parsed = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid numeric value for {field}")
    if not parsed.is_finite():
        raise ValidationError(f"Invalid numeric value for {field}")
    return parsed


def derive_weight(density: Number, volume: Number) -> Optional[Decimal]:
    d = parse_decimal(density, "density")
    v = parse_decimal(volume, "volume")
    if d is None or v is None:
        return None
    return d * v


def derive_gwp_total(a1: Number, a2: Number, a3: Number) -> Optional[Decimal]:
    parts = [
        parse_decimal(a1, "gwpA1"),
        parse_decimal(a2, "gwpA2"),
        parse_decimal(a3, "gwpA3"),
    ]
    if any(p is None for p in parts):
        return None
    return parts[0] + parts[1] + parts[2]


def derive_net_gwp(total: Number, stage_d_reduction: Number) -> Optional[Decimal]:
    t = parse_decimal(total, "gwpTotal")
    s = parse_decimal(stage_d_reduction, "stageDReduction")
    if t is None or s is None:
        return None
    return t - s


def recompute_derived_fields(record: Mapping[str, Any]) -> Dict[str, Decimal]:
    """
    Recompute every derived field whose inputs are all present in ``record``.

    Returns only the keys that could be computed, so merging the result into a
    stored passport never nulls out a previously derived value.  Net GWP prefers
    the freshly derived total and falls back to the stored one.
    """
    derived: Dict[str, Decimal] = {}

    weight = derive_weight(record.get("density"), record.get("volume"))
    if weight is not None:
        derived["weight"] = weight

    total = derive_gwp_total(record.get("gwp_a1"), record.get("gwp_a2"), record.get("gwp_a3"))
    if total is not None:
        derived["gwp_total"] = total
    else:
        total = parse_decimal(record.get("gwp_total"), "gwpTotal")

    net = derive_net_gwp(total, record.get("stage_d_reduction"))
    if net is not None:
        derived["net_gwp"] = net

    return derived


def format_decimal(value: Number) -> Optional[str]:
    """Render a decimal as a plain string without trailing zeros ("10.000" -> "10")."""
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    normalized = parsed.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")
