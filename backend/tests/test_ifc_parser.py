"""
test_ifc_parser.py — Tests for the IFC parser adapters.

The ifcopenshell adapter is exercised through its material lookup with small
stand-in entities, so the geometry kernel is not needed to run the suite.
"""

import asyncio

import pytest

from app.services.ifc_parser import (
    STUB_CANDIDATES,
    IfcCandidate,
    IfcOpenShellParser,
    StubIfcParser,
    _material_label,
    get_ifc_parser,
)


class _Entity:
    """Minimal stand-in for an ifcopenshell entity instance."""

    def __init__(self, ifc_type, **attributes):
        self._type = ifc_type
        self.__dict__.update(attributes)

    def is_a(self, name=None):
        if name is None:
            return self._type
        return self._type == name


def _element(material):
    rel = _Entity("IfcRelAssociatesMaterial", RelatingMaterial=material)
    return _Entity("IfcWall", HasAssociations=[_Entity("IfcRelDefinesByType"), rel])


class TestStubParser:
    """StubIfcParser returns the fixed three-element model."""

    def test_returns_three_candidates(self):
        candidates = asyncio.run(StubIfcParser(delay_seconds=0).parse("ignored.ifc"))
        assert candidates == list(STUB_CANDIDATES)
        assert [c.material_label for c in candidates] == [
            "Structural Steel",
            "Concrete C25/30",
            "Cross Laminated Timber",
        ]

    def test_candidate_wire_format(self):
        candidate = IfcCandidate("Wall W1", "0abcDEFghiJKLmnoPQRstu")
        assert candidate.to_dict() == {
            "name": "Wall W1",
            "externalGuid": "0abcDEFghiJKLmnoPQRstu",
            "materialLabel": None,
        }


class TestParserSelection:
    """get_ifc_parser picks the adapter by name."""

    def test_default_is_stub_in_tests(self):
        assert isinstance(get_ifc_parser(), StubIfcParser)

    def test_ifcopenshell_by_name(self):
        assert isinstance(get_ifc_parser("IfcOpenShell"), IfcOpenShellParser)

    def test_unknown_parser_rejected(self):
        with pytest.raises(ValueError):
            get_ifc_parser("revit")


class TestMaterialLabel:
    """_material_label resolves the common IFC material association shapes."""

    def test_single_material(self):
        assert _material_label(_element(_Entity("IfcMaterial", Name="Brick"))) == "Brick"

    def test_layer_set_usage_uses_first_layer(self):
        layers = [
            _Entity("IfcMaterialLayer", Material=_Entity("IfcMaterial", Name="Gypsum")),
            _Entity("IfcMaterialLayer", Material=_Entity("IfcMaterial", Name="Mineral wool")),
        ]
        layer_set = _Entity("IfcMaterialLayerSet", MaterialLayers=layers)
        usage = _Entity("IfcMaterialLayerSetUsage", ForLayerSet=layer_set)
        assert _material_label(_element(usage)) == "Gypsum"

    def test_material_list_uses_first_entry(self):
        materials = _Entity("IfcMaterialList", Materials=[_Entity("IfcMaterial", Name="Glass")])
        assert _material_label(_element(materials)) == "Glass"

    def test_named_constituent_set_falls_back_to_name(self):
        constituents = _Entity("IfcMaterialConstituentSet", Name="Window assembly")
        assert _material_label(_element(constituents)) == "Window assembly"

    def test_element_without_material(self):
        assert _material_label(_Entity("IfcSlab", HasAssociations=[])) is None
        assert _material_label(_Entity("IfcSlab")) is None
