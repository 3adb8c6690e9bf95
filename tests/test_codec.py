import struct

import pytest

from print_agent.core.config import PaperProfile, RenderConfig
from print_agent.core.errors import ConfigurationError
from print_agent.printing.codec import (
    CutCommand,
    Directive,
    contains_cut,
    directive,
    encode_lines,
    encode_text,
    finalize,
    frame_raster,
    size_bytes,
)
from print_agent.printing.layout import Line
from print_agent.printing.models import RenderedArtifact

ESC = b"\x1b"
GS = b"\x1d"


def _cfg(**kw) -> RenderConfig:
    kw.setdefault("cache_enabled", False)
    kw.setdefault("cache_path", "")
    return RenderConfig(**kw)


def test_directive_table_bytes():
    assert directive(Directive.INIT) == ESC + b"@"
    assert directive(Directive.ALIGN_CENTER) == ESC + b"a\x01"
    assert directive(Directive.BOLD_ON) == ESC + b"E\x01"
    assert directive(Directive.SIZE_LARGE) == ESC + b"!\x18"
    assert directive(Directive.BEEP) == ESC + b"B\x02\x01"
    assert directive(Directive.RASTER_IMAGE) == GS + b"v0\x00"


def test_encode_line_wraps_directives_and_resets(mm58):
    out = encode_lines([Line("Hi", align="center", size="large", bold=True)], mm58, _cfg())
    assert out == (
        ESC + b"@"
        + ESC + b"a\x01"
        + ESC + b"E\x01"
        + ESC + b"!\x18"
        + b"Hi"
        + ESC + b"!\x00"
        + ESC + b"E\x00"
        + b"\n"
    )


def test_plain_line_has_no_size_or_bold(mm58):
    out = encode_lines([Line("plain")], mm58, _cfg())
    assert out == ESC + b"@" + ESC + b"a\x00" + b"plain\n"


def test_size_codes_come_from_profile(mm58):
    custom = mm58.model_copy(update={"font_size_codes": mm58.font_size_codes.model_copy(update={"medium": 0x01})})
    assert size_bytes("medium", custom) == ESC + b"!\x01"
    with pytest.raises(ConfigurationError):
        size_bytes("huge", mm58)


def test_zero_chars_per_line_is_configuration_error():
    broken = PaperProfile(name="MM_0", pixel_width=384, chars_per_line=0)
    with pytest.raises(ConfigurationError):
        encode_lines([Line("x")], broken, _cfg())


def test_encode_text_replaces_unencodable_and_rejects_unknown_codec():
    assert encode_text("café ☃", "cp437") == b"caf\x82 ?"
    with pytest.raises(ConfigurationError):
        encode_text("x", "no-such-codec")


def test_encode_text_strips_control_bytes():
    assert encode_text("Tea\x1dV\x1bd\x00\x7f", "cp437") == b"TeaVd"
    assert encode_text("Line\tbreak\n", "cp437") == b"Linebreak"


def test_frame_raster_header_is_le16_width_bytes_and_height():
    art = RenderedArtifact(width=10, height=3, bitmap=bytes(range(6)))
    framed = frame_raster(art)
    assert framed[:4] == GS + b"v0\x00"
    assert framed[4:8] == struct.pack("<HH", 2, 3) == b"\x02\x00\x03\x00"
    assert framed[8:] == bytes(range(6))


def test_frame_raster_rejects_mismatched_bitmap():
    with pytest.raises(ValueError):
        frame_raster(RenderedArtifact(width=16, height=2, bitmap=b"\x00"))


def test_finalize_appends_beep_feed_and_single_cut():
    out = finalize(b"body", _cfg(cut_feed_lines=4))
    assert out == b"body" + ESC + b"B\x02\x01" + b"\n" * 4 + GS + b"VA\x10"


def test_finalize_without_beep():
    out = finalize(b"body", _cfg(beep=False, cut_feed_lines=2))
    assert out == b"body\n\n" + GS + b"VA\x10"


@pytest.mark.parametrize(
    "model,expected",
    [
        ("generic", CutCommand.FULL.value),
        ("partial-cut", GS + b"VB\x10"),
        ("no-cutter", ESC + b"d\x03"),
    ],
)
def test_cut_command_per_printer_model(model, expected):
    out = finalize(b"x", _cfg(printer_model=model, beep=False))
    assert out.endswith(expected)
    assert out.count(expected) == 1


def test_finalize_does_not_double_cut():
    body = b"x" + CutCommand.PARTIAL.value
    out = finalize(body, _cfg(beep=False))
    assert out == body
    assert contains_cut(out)


def test_raster_bytes_do_not_suppress_the_cut():
    head = ESC + b"@" + ESC + b"a\x01"
    # bitmap rows that happen to contain GS V
    art = RenderedArtifact(width=16, height=1, bitmap=GS + b"V")
    body = head + frame_raster(art)
    out = finalize(body, _cfg(beep=False), scan=head)
    assert out.endswith(GS + b"VA\x10")
