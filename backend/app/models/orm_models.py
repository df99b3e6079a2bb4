"""ORM Models for the Material Passport service — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime, JSON,
    ForeignKey, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in dev/tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ── AUTH ──────────────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[Optional[str]] = mapped_column(Text)
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="viewer")  # author | member | viewer
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    passports: Mapped[list["MaterialPassport"]] = relationship("MaterialPassport", back_populates="author")

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.email


# ── MATERIAL PASSPORTS ────────────────────────────────────────────────────────
class MaterialPassport(Base):
    __tablename__ = "material_passports"
    __table_args__ = (
        Index("ix_material_passports_author_updated", "author_id", "updated_at"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")  # draft | complete | published
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)

    # Block 1: physical
    density: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))          # kg/m³
    volume: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 6))           # m³
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(22, 9))           # derived: density × volume, exact
    strength_class: Mapped[Optional[str]] = mapped_column(String(50))
    service_life: Mapped[Optional[int]] = mapped_column(Integer)                # years
    fire_resistance: Mapped[Optional[str]] = mapped_column(String(50))
    content_reference: Mapped[Optional[str]] = mapped_column(Text)

    # Block 2: chemical / health
    constituents: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSONType)  # [{material, percentage}]
    svhc_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    reach_compliance: Mapped[bool] = mapped_column(Boolean, default=False)
    voc_class: Mapped[Optional[str]] = mapped_column(String(20))

    # Block 3: process / identifiers
    gtin: Mapped[Optional[str]] = mapped_column(String(50))
    ean: Mapped[Optional[str]] = mapped_column(String(50))
    cas: Mapped[Optional[str]] = mapped_column(String(50))
    manufacturer: Mapped[Optional[str]] = mapped_column(String(255))
    bom_object_guid: Mapped[Optional[str]] = mapped_column(String(64))

    # Block 4: circularity
    disassembly_rating: Mapped[Optional[str]] = mapped_column(String(20))       # excellent | good | fair | poor
    recyclability_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    # Block 5: LCA (kg CO₂-eq / kg, EN 15804 stages)
    gwp_a1: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    gwp_a2: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    gwp_a3: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    gwp_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))        # derived: A1 + A2 + A3
    stage_d_reduction: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    net_gwp: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))          # derived: total − Stage D
    odp: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 10))
    acidification_potential: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 6))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    author: Mapped["User"] = relationship("User", back_populates="passports")
    components: Mapped[list["Component"]] = relationship("Component", back_populates="passport")


# ── COMPONENT LIBRARY ─────────────────────────────────────────────────────────
class Component(Base):
    __tablename__ = "components"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    ifc_guid: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    passport_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("material_passports.id", ondelete="SET NULL")
    )
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    passport: Mapped[Optional["MaterialPassport"]] = relationship("MaterialPassport", back_populates="components")


# ── IMPORT JOBS ───────────────────────────────────────────────────────────────
class ImportJob(Base):
    __tablename__ = "import_jobs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)               # excel | ifc
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")
    result_data: Mapped[Optional[Any]] = mapped_column(JSONType)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
