"""
IFC parser adapters — extract candidate building components from an IFC model.

Each adapter returns a list of IfcCandidate(name, external_guid, material_label)
which the import engine stores as the job's result data.

  StubIfcParser        fixed three-element result after a configurable delay;
                       used in dev and tests, no geometry kernel required
  IfcOpenShellParser   reads the model with ifcopenshell, one candidate per
                       IfcElement with its associated material name
"""
import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from app import config

logger = logging.getLogger("passport-import.ifc")


@dataclass(frozen=True)
class IfcCandidate:
    name: str
    external_guid: str
    material_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = asdict(self)
        return {
            "name": data["name"],
            "externalGuid": data["external_guid"],
            "materialLabel": data["material_label"],
        }


class IfcParser:
    """Interface for IFC parser adapters."""

    name = "base"

    async def parse(self, file_path: str) -> List[IfcCandidate]:
        raise NotImplementedError


STUB_CANDIDATES = (
    IfcCandidate("Steel Beam HEB 200 - B001", "2N1gHkRXL8ChVYzM3QEKMz", "Structural Steel"),
    IfcCandidate("Concrete Column C1", "3M2hGlSYM9DiWZaN4RFLNa", "Concrete C25/30"),
    IfcCandidate("CLT Panel P001", "1L0gFlRWK7BhUXyL2PDKLz", "Cross Laminated Timber"),
)


class StubIfcParser(IfcParser):
    name = "stub"

    def __init__(self, delay_seconds: Optional[float] = None):
        self.delay_seconds = config.IFC_STUB_DELAY_SECONDS if delay_seconds is None else delay_seconds

    async def parse(self, file_path: str) -> List[IfcCandidate]:
        logger.info("Stub IFC parse of %s (delay %.1fs)", file_path, self.delay_seconds)
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        return list(STUB_CANDIDATES)


class IfcOpenShellParser(IfcParser):
    name = "ifcopenshell"

    async def parse(self, file_path: str) -> List[IfcCandidate]:
        # ifcopenshell is synchronous and CPU bound
        return await asyncio.to_thread(self.parse_sync, file_path)

    def parse_sync(self, file_path: str) -> List[IfcCandidate]:
        import ifcopenshell

        model = ifcopenshell.open(file_path)
        candidates: List[IfcCandidate] = []
        for element in model.by_type("IfcElement"):
            if element.is_a("IfcOpeningElement"):
                continue
            candidates.append(IfcCandidate(
                name=element.Name or f"{element.is_a()} {element.GlobalId}",
                external_guid=element.GlobalId,
                material_label=_material_label(element),
            ))
        logger.info("Parsed %d IFC elements from %s", len(candidates), file_path)
        return candidates


def _material_label(element) -> Optional[str]:
    """Name of the first material associated with an element, if any."""
    for rel in getattr(element, "HasAssociations", None) or []:
        if not rel.is_a("IfcRelAssociatesMaterial"):
            continue
        material = rel.RelatingMaterial
        if material.is_a("IfcMaterial"):
            return material.Name
        if material.is_a("IfcMaterialLayerSetUsage"):
            material = material.ForLayerSet
        if material.is_a("IfcMaterialLayerSet"):
            layers = material.MaterialLayers or []
            if layers and layers[0].Material:
                return layers[0].Material.Name
        if material.is_a("IfcMaterialList"):
            materials = material.Materials or []
            if materials:
                return materials[0].Name
        name = getattr(material, "Name", None)
        if name:
            return name
    return None


_PARSERS = {
    StubIfcParser.name: StubIfcParser,
    IfcOpenShellParser.name: IfcOpenShellParser,
}


def get_ifc_parser(name: Optional[str] = None) -> IfcParser:
    key = (name or config.IFC_PARSER).lower()
    if key not in _PARSERS:
        raise ValueError(f"Unknown IFC parser '{key}' (expected one of {sorted(_PARSERS)})")
    return _PARSERS[key]()
