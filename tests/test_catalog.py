import pytest
import yaml

from neo_rebuild.catalog import load_catalog, parse_catalog
from neo_rebuild.layout import Area

CATALOG = """
garou:
  parent: null
  areas:
    P:
      size: 0x900000
      chips:
        - {name: kf.neo-sma, size: 0x40000, crc: "0123ABCD"}
        - {name: 253-ep1.p1, size: 0x200000}
    s: {size: 0x80000}
garouh:
  parent: garou
  areas: {}
"""


def test_parse_catalog():
    layouts = parse_catalog(yaml.safe_load(CATALOG))
    garou = layouts["garou"]
    assert garou.name == "garou"
    assert garou.parent is None
    assert garou[Area.P].size == 0x900000
    assert [c.filename for c in garou[Area.P].chips] == ["kf.neo-sma", "253-ep1.p1"]
    assert garou[Area.P].chips[0].crc == "0123abcd"
    assert garou[Area.P].pad_size == 0x200000
    assert garou[Area.S].size == 0x80000
    assert garou[Area.S].chips == ()
    assert garou[Area.C].pad_size == 0
    assert layouts["garouh"].parent == "garou"


def test_load_catalog(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG, encoding="utf-8")
    assert sorted(load_catalog(str(path))) == ["garou", "garouh"]


@pytest.mark.parametrize("text", [
    "- just a list",
    "game: {areas: {X9: {size: 1}}}",
    "game: {areas: {P: {size: -1}}}",
    "game: {areas: {P: {chips: [{name: a.p1}]}}}",
    "game: {areas: {P: {chips: [{name: a.p1, size: 16, crc: 12345678}]}}}",
    "game: {areas: {P: {chips: [{name: a.p1, size: 16, crc: 'xyz'}]}}}",
])
def test_bad_catalogs(text):
    with pytest.raises(ValueError):
        parse_catalog(yaml.safe_load(text))
