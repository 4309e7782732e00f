import zlib

import yaml
from click.testing import CliRunner

from neo_rebuild.cli import main

CHIPS = {
    "P": {"001-p1.p1": b"\x01\x02\x03\x04"},
    "M": {"001-m1.m1": b"\x60\x61"},
    "C": {"001-c1.c1": b"\x11\x12", "001-c2.c2": b"\x21\x22"},
}


def _setup(tmp_path, title, corrupt=None):
    roms = tmp_path / "roms"
    roms.mkdir()
    areas = {}
    for area, chips in CHIPS.items():
        entries = []
        for name, data in chips.items():
            (roms / name).write_bytes(data if name != corrupt else data[::-1])
            entries.append({"name": name, "size": len(data), "crc": f"{zlib.crc32(data) & 0xFFFFFFFF:08x}"})
        areas[area] = {"size": sum(len(d) for d in chips.values()), "chips": entries}
    areas["S"] = {"size": 2}
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text(yaml.safe_dump({title: {"areas": areas}}), encoding="utf-8")
    return str(catalog), str(roms)


def test_titles_lists_special_cases():
    result = CliRunner().invoke(main, ["titles"])
    assert result.exit_code == 0
    assert "garou" in result.output
    assert "SMA + CMC42 (key 0x06)" in result.output


def test_verify_ok_and_bad(tmp_path):
    catalog, roms = _setup(tmp_path, "somegame", corrupt="001-m1.m1")
    result = CliRunner().invoke(main, ["verify", "--catalog", catalog, "--title", "somegame", "--roms", roms])
    assert result.exit_code != 0
    assert "OK      P  001-p1.p1" in result.output
    assert "BAD     M  001-m1.m1" in result.output


def test_build_writes_areas(tmp_path):
    catalog, roms = _setup(tmp_path, "somegame")
    out = tmp_path / "out"
    result = CliRunner().invoke(main, ["build", "--catalog", catalog, "--title", "somegame",
                                       "--roms", roms, "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "somegame-p.bin").read_bytes() == b"\x01\x02\x03\x04"
    assert (out / "somegame-c.bin").read_bytes() == b"\x11\x21\x12\x22"
    # empty areas are not written
    assert not (out / "somegame-s.bin").exists()


def test_build_cmc_title_needs_backend(tmp_path):
    catalog, roms = _setup(tmp_path, "nitd")
    result = CliRunner().invoke(main, ["build", "--catalog", catalog, "--title", "nitd",
                                       "--roms", roms, "--out", str(tmp_path / "out")])
    assert result.exit_code != 0
    assert "CMC backend" in result.output


def test_build_with_backend(tmp_path):
    catalog, roms = _setup(tmp_path, "nitd")
    out = tmp_path / "out"
    result = CliRunner().invoke(main, ["build", "--catalog", catalog, "--title", "nitd", "--roms", roms,
                                       "--out", str(out), "--backend", "rom_builder:StubBackend"])
    assert result.exit_code == 0, result.output
    assert (out / "nitd-c.bin").read_bytes() == bytes(b ^ 0xFF for b in b"\x11\x21\x12\x22")
    assert (out / "nitd-s.bin").read_bytes() == bytes(b ^ 0xFF for b in b"\x11\x21")


def test_unknown_title(tmp_path):
    catalog, roms = _setup(tmp_path, "somegame")
    result = CliRunner().invoke(main, ["build", "--catalog", catalog, "--title", "other",
                                       "--roms", roms, "--out", str(tmp_path / "out")])
    assert result.exit_code != 0
