"""
export_engine.py — BAMB material-passport export document.

Field blocks follow the BAMB materials-passport convention (physical,
chemical, process identifiers, circularity, LCA).  Decimal values are emitted
as normalized decimal strings so the document matches what the API returns.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.services.derivation_engine import format_decimal

EXPORT_STANDARD = "ISO 14040/44, ISO 20887, ISO 12006-3, ISO 23387"


def export_filename(passport_id: int) -> str:
    return f"passport-{passport_id}.json"


def build_bamb_export(passport, exported_at: Optional[datetime] = None) -> Dict[str, Any]:
    exported_at = exported_at or datetime.now(timezone.utc)
    return {
        "passportId": passport.id,
        "materialName": passport.name,
        "category": passport.category,
        "physicalProperties": {
            "density": format_decimal(passport.density),
            "volume": format_decimal(passport.volume),
            "weight": format_decimal(passport.weight),
            "strengthClass": passport.strength_class,
            "serviceLife": passport.service_life,
            "contentReference": passport.content_reference,
        },
        "chemical": {
            "constituents": passport.constituents,
            "svhcFlag": passport.svhc_flag,
            "vocClass": passport.voc_class,
        },
        "processIds": {
            "gtin": passport.gtin,
            "manufacturer": passport.manufacturer,
            "bomObjectGuid": passport.bom_object_guid,
        },
        "circularity": {
            "disassemblyRating": passport.disassembly_rating,
            "recyclabilityPercentage": format_decimal(passport.recyclability_percentage),
        },
        "lca": {
            "gwpA1A3": format_decimal(passport.gwp_total),
            "stageDReduction": format_decimal(passport.stage_d_reduction),
            "netGwp": format_decimal(passport.net_gwp),
        },
        "standard": EXPORT_STANDARD,
        "exportedAt": exported_at.isoformat(),
    }
