"""
completion_engine.py — Passport completion scoring and status derivation.

A passport is scored against 16 required scalar fields spanning all five
blocks plus one structural requirement (at least one usable constituent).
The percentage drives the status a passport is saved with: ``complete`` at
100 %, ``draft`` below.  Partial drafts are always accepted; only publishing
is gated on a fully complete record.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Mapping, Optional

from app.errors import ValidationError

REQUIRED_FIELDS: tuple = (
    "name",
    "category",
    "density",
    "volume",
    "strength_class",
    "service_life",
    "content_reference",
    "voc_class",
    "gtin",
    "manufacturer",
    "disassembly_rating",
    "recyclability_percentage",
    "gwp_a1",
    "gwp_a2",
    "gwp_a3",
    "stage_d_reduction",
)
CONSTITUENTS_REQUIREMENT = "constituents"

STATUS_DRAFT = "draft"
STATUS_COMPLETE = "complete"
STATUS_PUBLISHED = "published"
STATUSES = (STATUS_DRAFT, STATUS_COMPLETE, STATUS_PUBLISHED)


@dataclass(frozen=True)
class Completion:
    ratio: float
    percentage: int
    satisfied: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.percentage == 100


def _value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _is_filled(value: Any) -> bool:
    return value is not None and value != ""


def _constituent_is_valid(entry: Any) -> bool:
    material = _value(entry, "material")
    percentage = _value(entry, "percentage")
    if not material or not str(material).strip():
        return False
    try:
        return Decimal(str(percentage)) > 0
    except (InvalidOperation, ValueError, TypeError):
        return False


def has_valid_constituent(constituents: Optional[list]) -> bool:
    return any(_constituent_is_valid(c) for c in (constituents or []))


def compute_completion(record: Any) -> Completion:
    """Score a passport (mapping or ORM object) against the required fields."""
    satisfied: List[str] = []
    missing: List[str] = []
    for name in REQUIRED_FIELDS:
        (satisfied if _is_filled(_value(record, name)) else missing).append(name)

    if has_valid_constituent(_value(record, CONSTITUENTS_REQUIREMENT)):
        satisfied.append(CONSTITUENTS_REQUIREMENT)
    else:
        missing.append(CONSTITUENTS_REQUIREMENT)

    total = len(REQUIRED_FIELDS) + 1
    ratio = len(satisfied) / total
    # Half-up so 8.5/17 style midpoints match the UI's Math.round
    percentage = int((Decimal(len(satisfied) * 100) / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return Completion(ratio=ratio, percentage=percentage, satisfied=satisfied, missing=missing)


def derive_status(
    completion: Completion,
    requested: Optional[str] = None,
    current: Optional[str] = None,
) -> str:
    """
    Decide the status a passport is persisted with.

    - requesting ``published`` needs a fully complete record
    - a published passport stays published while it remains complete
    - otherwise the status follows completion: complete at 100 %, else draft
    """
    if requested is not None and requested not in STATUSES:
        raise ValidationError("Unknown passport status")

    if requested == STATUS_PUBLISHED:
        if not completion.is_complete:
            raise ValidationError("Only fully completed passports can be published")
        return STATUS_PUBLISHED

    if requested is None and current == STATUS_PUBLISHED and completion.is_complete:
        return STATUS_PUBLISHED

    return STATUS_COMPLETE if completion.is_complete else STATUS_DRAFT
