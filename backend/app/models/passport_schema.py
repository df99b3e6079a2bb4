"""
Request / response contracts for passports, components, import jobs and users.

Wire format is camelCase (``gwpA1``, ``stageDReduction``); Python code works
with snake_case field names.  A passport payload is composed from one model
per lifecycle block so each block is validated on its own terms before the
derivation engine runs.  Derived fields (weight, gwpTotal, netGwp) and the
owner are never accepted from clients; unknown keys are ignored.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from app.services.completion_engine import compute_completion
from app.services.derivation_engine import format_decimal

DecimalStr = Annotated[Decimal, PlainSerializer(format_decimal, return_type=str)]
PassportStatus = Literal["draft", "complete", "published"]
DisassemblyRating = Literal["excellent", "good", "fair", "poor"]

# Decimal inputs carry the precision and scale of their Numeric(p, s) column
MAX_SERVICE_LIFE = 1000


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ─── Passport blocks ──────────────────────────────────────────────────────────

class PhysicalBlock(CamelModel):
    density: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=3)    # kg/m³
    volume: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=6)     # m³
    strength_class: Optional[str] = None
    service_life: Optional[int] = Field(None, ge=0, le=MAX_SERVICE_LIFE)               # years
    fire_resistance: Optional[str] = None
    content_reference: Optional[str] = None

    @field_validator("density", "volume", "service_life", mode="before")
    @classmethod
    def physical_blank_to_none(cls, value):
        return _blank_to_none(value)


class Constituent(CamelModel):
    material: str = ""
    percentage: float = Field(0, ge=0, le=100)


class ChemicalBlock(CamelModel):
    constituents: Optional[List[Constituent]] = None
    svhc_flag: bool = False
    reach_compliance: bool = False
    voc_class: Optional[str] = None


class ProcessBlock(CamelModel):
    gtin: Optional[str] = None
    ean: Optional[str] = None
    cas: Optional[str] = None
    manufacturer: Optional[str] = None
    bom_object_guid: Optional[str] = None


class CircularityBlock(CamelModel):
    disassembly_rating: Optional[DisassemblyRating] = None
    recyclability_percentage: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)

    @field_validator("disassembly_rating", "recyclability_percentage", mode="before")
    @classmethod
    def circularity_blank_to_none(cls, value):
        return _blank_to_none(value)


class LcaBlock(CamelModel):
    gwp_a1: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=4)
    gwp_a2: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=4)
    gwp_a3: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=4)
    stage_d_reduction: Optional[Decimal] = Field(None, max_digits=10, decimal_places=4)
    odp: Optional[Decimal] = Field(None, max_digits=15, decimal_places=10)
    acidification_potential: Optional[Decimal] = Field(None, max_digits=10, decimal_places=6)

    @field_validator(
        "gwp_a1", "gwp_a2", "gwp_a3", "stage_d_reduction", "odp", "acidification_potential",
        mode="before",
    )
    @classmethod
    def lca_blank_to_none(cls, value):
        return _blank_to_none(value)


class PassportUpdate(PhysicalBlock, ChemicalBlock, ProcessBlock, CircularityBlock, LcaBlock):
    """Partial update: only the keys a client sends are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[PassportStatus] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PassportCreate(PassportUpdate):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)


# ─── Responses ────────────────────────────────────────────────────────────────

class CompletionOut(CamelModel):
    ratio: float
    percentage: int


class CompletionDetailOut(CompletionOut):
    satisfied: List[str] = []
    missing: List[str] = []


class PassportOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    category: str
    status: str
    author_id: str

    density: Optional[DecimalStr] = None
    volume: Optional[DecimalStr] = None
    weight: Optional[DecimalStr] = None
    strength_class: Optional[str] = None
    service_life: Optional[int] = None
    fire_resistance: Optional[str] = None
    content_reference: Optional[str] = None

    constituents: Optional[List[dict]] = None
    svhc_flag: Optional[bool] = None
    reach_compliance: Optional[bool] = None
    voc_class: Optional[str] = None

    gtin: Optional[str] = None
    ean: Optional[str] = None
    cas: Optional[str] = None
    manufacturer: Optional[str] = None
    bom_object_guid: Optional[str] = None

    disassembly_rating: Optional[str] = None
    recyclability_percentage: Optional[DecimalStr] = None

    gwp_a1: Optional[DecimalStr] = None
    gwp_a2: Optional[DecimalStr] = None
    gwp_a3: Optional[DecimalStr] = None
    gwp_total: Optional[DecimalStr] = None
    stage_d_reduction: Optional[DecimalStr] = None
    net_gwp: Optional[DecimalStr] = None
    odp: Optional[DecimalStr] = None
    acidification_potential: Optional[DecimalStr] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completion: Optional[CompletionOut] = None


def passport_out(passport) -> PassportOut:
    out = PassportOut.model_validate(passport)
    completion = compute_completion(passport)
    out.completion = CompletionOut(ratio=round(completion.ratio, 4), percentage=completion.percentage)
    return out


def completion_detail_out(passport) -> CompletionDetailOut:
    completion = compute_completion(passport)
    return CompletionDetailOut(
        ratio=round(completion.ratio, 4),
        percentage=completion.percentage,
        satisfied=[to_camel(f) for f in completion.satisfied],
        missing=[to_camel(f) for f in completion.missing],
    )


# ─── Components ───────────────────────────────────────────────────────────────

class ComponentCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    ifc_guid: Optional[str] = None
    passport_id: Optional[int] = None


class ComponentOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    category: str
    description: Optional[str] = None
    ifc_guid: Optional[str] = None
    passport_id: Optional[int] = None
    author_id: str
    created_at: Optional[datetime] = None


class ComponentPromotionRequest(CamelModel):
    external_guids: List[str] = Field(..., min_length=1)
    passport_id: Optional[int] = None
    category: str = Field("IFC Element", min_length=1, max_length=100)


class ComponentPromotionOut(CamelModel):
    job_id: int
    created: List[ComponentOut]
    skipped: List[str]


# ─── Import jobs ──────────────────────────────────────────────────────────────

class ImportJobOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    type: str
    filename: str
    status: str
    result_data: Any = None
    error_message: Optional[str] = None
    author_id: str
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


# ─── Users ────────────────────────────────────────────────────────────────────

class UserOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_image_url: Optional[str] = None
    role: str


class DashboardStats(CamelModel):
    total_passports: int
    completed: int
    in_progress: int
    total_components: int
