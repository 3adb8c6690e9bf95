"""
ESC/POS device codec.

Every printer control sequence the agent emits comes from the closed
DIRECTIVES table below. Layout lines are wrapped with their directives and
reset afterwards so size/bold never leak into the next line. The paper cut is
appended exactly once per job, from the one cut command declared for the
printer model.
"""

from __future__ import annotations

import enum
import logging
import struct
from collections.abc import Iterable
from typing import Optional

from escpos.constants import ESC, GS

from print_agent.core.config import PaperProfile, RenderConfig
from print_agent.core.errors import ConfigurationError
from print_agent.printing.models import RenderedArtifact

logger = logging.getLogger(__name__)

LF = b"\n"


class Directive(enum.Enum):
    INIT = "init"
    ALIGN_LEFT = "align_left"
    ALIGN_CENTER = "align_center"
    BOLD_ON = "bold_on"
    BOLD_OFF = "bold_off"
    SIZE_NORMAL = "size_normal"
    SIZE_MEDIUM = "size_medium"
    SIZE_LARGE = "size_large"
    BEEP = "beep"
    RASTER_IMAGE = "raster_image"


DIRECTIVES: dict[Directive, bytes] = {
    Directive.INIT: ESC + b"@",
    Directive.ALIGN_LEFT: ESC + b"a\x00",
    Directive.ALIGN_CENTER: ESC + b"a\x01",
    Directive.BOLD_ON: ESC + b"E\x01",
    Directive.BOLD_OFF: ESC + b"E\x00",
    Directive.SIZE_NORMAL: ESC + b"!\x00",
    Directive.SIZE_MEDIUM: ESC + b"!\x10",  # double height
    Directive.SIZE_LARGE: ESC + b"!\x18",  # double width and height
    Directive.BEEP: ESC + b"B\x02\x01",  # 2 beeps, 100ms each
    Directive.RASTER_IMAGE: GS + b"v0\x00",  # GS v 0, normal density
}


class CutCommand(enum.Enum):
    FULL = GS + b"VA\x10"  # full cut after feeding 16 dots
    PARTIAL = GS + b"VB\x10"
    FEED = ESC + b"d\x03"  # no cutter: feed 3 lines to the tear bar


# One cut command per declared printer model.
CUT_BY_MODEL: dict[str, CutCommand] = {
    "generic": CutCommand.FULL,
    "partial-cut": CutCommand.PARTIAL,
    "no-cutter": CutCommand.FEED,
}

# Byte prefixes that already mean "cut" (or feed-to-tear) on the printers in the field.
KNOWN_CUT_PATTERNS: tuple[bytes, ...] = (ESC + b"d", ESC + b"V", GS + b"V")

# C0 controls and DEL, removed from text before encoding
_CONTROL_CHARS = {c: None for c in (*range(0x20), 0x7F)}

_SIZE_DIRECTIVES = {
    "normal": Directive.SIZE_NORMAL,
    "medium": Directive.SIZE_MEDIUM,
    "large": Directive.SIZE_LARGE,
}


def directive(d: Directive) -> bytes:
    return DIRECTIVES[d]


def size_bytes(size: str, profile: PaperProfile) -> bytes:
    """
    Return the ESC ! sequence for a font size; the mode byte comes from the profile.
    """
    if size not in _SIZE_DIRECTIVES:
        raise ConfigurationError(f"Unknown font size directive: {size!r}")
    code = getattr(profile.font_size_codes, size)
    return ESC + b"!" + bytes([code])


def encode_text(text: str, encoding: str = "cp437") -> bytes:
    """
    Encode printable text. Control characters are dropped so content can never
    smuggle in printer commands (or a cut the finalizer would then skip).
    """
    try:
        return text.translate(_CONTROL_CHARS).encode(encoding, errors="replace")
    except LookupError as e:
        raise ConfigurationError(f"Unknown printer text encoding: {encoding!r}") from e


def encode_lines(lines: Iterable, profile: PaperProfile, config: Optional[RenderConfig] = None) -> bytes:
    """
    Encode layout lines into an ESC/POS stream.

    Starts with INIT. Each line is emitted as: alignment, bold/size directives,
    text, then SIZE_NORMAL/BOLD_OFF resets and a line feed.
    """
    profile.validate_geometry()
    cfg = config or RenderConfig()
    normal = size_bytes("normal", profile)
    out = bytearray(directive(Directive.INIT))
    for line in lines:
        out += directive(Directive.ALIGN_CENTER if line.align == "center" else Directive.ALIGN_LEFT)
        if line.bold:
            out += directive(Directive.BOLD_ON)
        if line.size != "normal":
            out += size_bytes(line.size, profile)
        out += encode_text(line.text, cfg.encoding)
        if line.size != "normal":
            out += normal
        if line.bold:
            out += directive(Directive.BOLD_OFF)
        out += LF
    return bytes(out)


def frame_raster(artifact: RenderedArtifact) -> bytes:
    """
    Frame a packed bitmap as a GS v 0 raster command.

    Header is width in bytes (LE16) then height in dots (LE16), followed by
    the bitmap itself.
    """
    width_bytes = artifact.bytes_per_row
    if width_bytes > 0xFFFF or artifact.height > 0xFFFF:
        raise ConfigurationError(f"Raster image too large: {artifact.width}x{artifact.height}")
    expected = width_bytes * artifact.height
    if len(artifact.bitmap) != expected:
        raise ValueError(f"Bitmap is {len(artifact.bitmap)} bytes, expected {expected}")
    return directive(Directive.RASTER_IMAGE) + struct.pack("<HH", width_bytes, artifact.height) + artifact.bitmap


def contains_cut(data: bytes) -> bool:
    return any(pattern in data for pattern in KNOWN_CUT_PATTERNS)


def cut_command(config: RenderConfig) -> CutCommand:
    return CUT_BY_MODEL[config.printer_model]


def finalize(body: bytes, config: RenderConfig, *, scan: Optional[bytes] = None, beep: Optional[bool] = None) -> bytes:
    """
    Close a job stream: optional beep, feed lines, then exactly one cut.

    `scan` is the part of the stream searched for an existing cut command; it
    defaults to the whole body. Raster payloads should be left out of it since
    bitmap bytes can contain cut-like byte pairs.
    """
    out = bytearray(body)
    ring = config.beep if beep is None else beep
    if ring:
        out += directive(Directive.BEEP)
    if contains_cut(body if scan is None else scan):
        logger.debug("Stream already contains a cut command; not appending another")
        return bytes(out)
    out += LF * config.cut_feed_lines
    out += cut_command(config).value
    return bytes(out)


__all__ = [
    "CUT_BY_MODEL",
    "CutCommand",
    "DIRECTIVES",
    "Directive",
    "KNOWN_CUT_PATTERNS",
    "contains_cut",
    "cut_command",
    "directive",
    "encode_lines",
    "encode_text",
    "finalize",
    "frame_raster",
    "size_bytes",
]
