import io

import pytest

from neo_rebuild.errors import LayoutMismatchError, StreamReadError
from neo_rebuild.layout import AreaLayout, RomChip
from neo_rebuild.streams import (ONE_MB, SMA_PREFIX_SIZE, TWO_MB, drain, interleave_bytes, padded_concat,
                                 patched_concat, sma_expand)
from neo_rebuild.titles import PATCH_EP


def _area(*chips):
    """AreaLayout and streams from (filename, data) pairs."""
    layout = AreaLayout(size=sum(len(d) for _, d in chips), chips=tuple(RomChip(n, len(d)) for n, d in chips))
    return layout, [io.BytesIO(d) for _, d in chips]


class FailingReader:
    def read(self, *args):
        raise OSError("device not ready")


def test_padded_concat_pads_all_but_last():
    a = b"\x01\x02\x03"
    b = b"\x04\x05\x06\x07\x08"
    out = padded_concat([a, b], pad_size=5, fill=0x00)
    assert out == a + b"\x00\x00" + b
    assert len(out) == 10


def test_padded_concat_single_chunk_unchanged():
    assert padded_concat([b"\xaa\xbb"], pad_size=16) == b"\xaa\xbb"


def test_padded_concat_fill_byte_and_no_truncation():
    assert padded_concat([b"\x01", b"\x02"], pad_size=3, fill=0xFF) == b"\x01\xff\xff\x02"
    assert padded_concat([b"\x01\x02\x03", b"\x04"], pad_size=2) == b"\x01\x02\x03\x04"


def test_patched_concat_without_patch_is_plain_concat():
    area, streams = _area(("x-p1.p1", b"\x01\x02"), ("x-p2.sp2", b"\x03\x04"))
    assert patched_concat(area, streams, PATCH_EP) == b"\x01\x02\x03\x04"


def test_patched_concat_overlays_patch():
    body = bytes(range(256))
    area, streams = _area(("x-ep1.ep1", b"\xaa" * 4), ("x-p1.p1", body))
    out = patched_concat(area, streams, PATCH_EP)
    assert out[:4] == b"\xaa" * 4
    assert out[4:] == body[4:]
    assert len(out) == len(body)


def test_patched_concat_keeps_order_within_groups():
    area, streams = _area(
        ("x-p1.p1", b"\x10\x11\x12\x13"),
        ("x-ep1.ep1", b"\xe1"),
        ("x-p2.p2", b"\x20\x21"),
        ("x-ep2.ep2", b"\xe2"),
    )
    assert patched_concat(area, streams, PATCH_EP) == b"\xe1\xe2\x12\x13\x20\x21"


def test_patched_concat_without_pattern_treats_all_as_body():
    area, streams = _area(("x-ep1.ep1", b"\x01"), ("x-ep2.ep2", b"\x02"))
    assert patched_concat(area, streams, None) == b"\x01\x02"


def test_two_mb_chip_halves_are_swapped():
    data = bytearray(TWO_MB)
    data[0] = 0x01
    data[ONE_MB] = 0x02
    area, streams = _area(("x-p1.p1", bytes(data)))
    out = patched_concat(area, streams, PATCH_EP)
    assert out[0] == 0x02
    assert out[ONE_MB] == 0x01
    assert len(out) == TWO_MB


def test_two_mb_rule_only_checks_first_body_chip():
    data = bytearray(TWO_MB)
    data[0] = 0x01
    area, streams = _area(("x-ep1.ep1", b"\xee"), ("x-p1.p1", b"\x00\x00"), ("x-p2.p2", bytes(data)))
    out = patched_concat(area, streams, PATCH_EP)
    assert out[:3] == b"\xee\x00\x01"


def test_patched_concat_needs_a_body():
    area, streams = _area(("x-ep1.ep1", b"\x01"))
    with pytest.raises(LayoutMismatchError):
        patched_concat(area, streams, PATCH_EP)


def test_patch_longer_than_body():
    area, streams = _area(("x-ep1.ep1", b"\x01\x02\x03"), ("x-p1.p1", b"\x00"))
    with pytest.raises(StreamReadError):
        patched_concat(area, streams, PATCH_EP)


def test_truncated_two_mb_chip():
    layout = AreaLayout(size=TWO_MB, chips=(RomChip("x-p1.p1", TWO_MB),))
    with pytest.raises(StreamReadError):
        patched_concat(layout, [io.BytesIO(b"\x00" * 16)], PATCH_EP)


def test_interleave_unit_one():
    out = interleave_bytes([b"\x11\x22\x33", b"\xaa\xbb\xcc"], 1)
    assert out == b"\x11\xaa\x22\xbb\x33\xcc"


def test_interleave_four_way_and_larger_unit():
    assert interleave_bytes([b"\x01", b"\x02", b"\x03", b"\x04"], 1) == b"\x01\x02\x03\x04"
    assert interleave_bytes([b"\x01\x02\x03\x04", b"\x05\x06\x07\x08"], 2) == b"\x01\x02\x05\x06\x03\x04\x07\x08"


def test_interleave_rejects_bad_inputs():
    with pytest.raises(LayoutMismatchError):
        interleave_bytes([b"\x01"], 1)
    with pytest.raises(LayoutMismatchError):
        interleave_bytes([b"\x01\x02", b"\x03"], 1)
    with pytest.raises(LayoutMismatchError):
        interleave_bytes([b"\x01\x02\x03", b"\x04\x05\x06"], 2)


def test_ragged_interleave_skips_exhausted_inputs():
    out = interleave_bytes([b"\x01\x02\x03\x04", b"\x05\x06"], 2, ragged=True)
    assert out == b"\x01\x02\x05\x06\x03\x04"


def test_drain_wraps_os_errors():
    with pytest.raises(StreamReadError) as exc:
        drain(FailingReader(), "x-m1.m1")
    assert "x-m1.m1" in str(exc.value)
    assert isinstance(exc.value.__cause__, OSError)


def test_sma_expand_prepends_zero_region():
    words = sma_expand([b"\x34\x12", b"\x78\x56"])
    assert len(words) == SMA_PREFIX_SIZE // 2 + 2
    assert not any(words[:SMA_PREFIX_SIZE // 2])
    assert words[-2:] == [0x1234, 0x5678]


def test_sma_expand_odd_length():
    with pytest.raises(StreamReadError):
        sma_expand([b"\x01"])
