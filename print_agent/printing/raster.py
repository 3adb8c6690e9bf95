"""
Markup-to-bitmap rasterization.

The rasterizer renders an HTML document in a headless browser at the paper's
pixel width, captures a full-page screenshot, and converts it into the packed
1-bit bitmap the GS v 0 raster command expects:

- luma = 0.299R + 0.587G + 0.114B (ITU-R 601-2, Pillow's "L" conversion)
- luma < 128 is ink (bit 1), anything else is blank (bit 0)
- 8 pixels per byte, most significant bit first, rows padded to ceil(width/8) bytes

Browser and temporary files are scoped to a single conversion.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Protocol

from PIL import Image
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from print_agent.core.config import RenderConfig
from print_agent.core.errors import RenderError
from print_agent.printing.models import RenderedArtifact

logger = logging.getLogger(__name__)

INK_THRESHOLD = 128


class RenderEngine(Protocol):
    """Something that can turn markup into a PNG file at `path`."""

    def screenshot(self, markup: str, width: int, scale: float, timeout: float, path: str) -> None: ...


class PlaywrightEngine:
    """
    Headless Chromium via Playwright.

    A fresh browser is launched per conversion and closed in all cases; the
    whole conversion shares one deadline so a hung page fails within `timeout`.
    """

    def __init__(self, browser: str = "chromium", launch_args: Optional[list[str]] = None) -> None:
        self.browser = browser
        self.launch_args = launch_args if launch_args is not None else ["--no-sandbox", "--disable-gpu"]

    def screenshot(self, markup: str, width: int, scale: float, timeout: float, path: str) -> None:
        deadline = time.monotonic() + timeout

        def remaining_ms() -> float:
            left = deadline - time.monotonic()
            if left <= 0:
                raise RenderError(f"Rendering exceeded {timeout:.1f}s")
            return left * 1000

        try:
            with sync_playwright() as pw:
                launcher = getattr(pw, self.browser)
                browser = launcher.launch(headless=True, args=self.launch_args, timeout=remaining_ms())
                try:
                    context = browser.new_context(
                        viewport={"width": int(width), "height": 1},
                        device_scale_factor=scale,
                    )
                    page = context.new_page()
                    page.set_content(markup, wait_until="load", timeout=remaining_ms())
                    page.screenshot(path=path, full_page=True, type="png", timeout=remaining_ms())
                finally:
                    browser.close()
        except PlaywrightTimeoutError as e:
            raise RenderError(f"Rendering timed out after {timeout:.1f}s") from e
        except PlaywrightError as e:
            raise RenderError(f"Headless browser failed: {e}") from e


def to_monochrome(image: Image.Image) -> Image.Image:
    """
    Threshold an image into a mode '1' ink mask where set bits are ink.

    Transparent areas are treated as white paper.
    """
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        paper = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        image = Image.alpha_composite(paper, rgba)
    # "F" keeps the unrounded luma (R*299 + G*587 + B*114) / 1000, which moves
    # in steps of 0.001; the linear map sends luma < 128 above 255 and the
    # rest below 0, and the "L" conversion clips to 255 / 0.
    luma = image.convert("RGB").convert("F")
    cut = INK_THRESHOLD - 0.0005
    ink = luma.point(lambda v: v * -1e6 + cut * 1e6).convert("L")
    return ink.point(lambda v: 255 if v else 0, mode="1")


def pack_bits(mask: Image.Image) -> bytes:
    """
    Pack a mode '1' mask row-major, MSB first, each row padded to a whole byte.
    """
    if mask.mode != "1":
        raise ValueError(f"Expected a mode '1' image, got {mask.mode!r}")
    return mask.tobytes()


def artifact_from_image(
    image: Image.Image,
    target_width: Optional[int] = None,
    raw_bytes: Optional[bytes] = None,
) -> RenderedArtifact:
    """
    Convert a rendered image into a RenderedArtifact, scaling it to `target_width` first.
    """
    if target_width and image.width != target_width:
        ratio = target_width / float(image.width)
        new_h = max(1, int(round(image.height * ratio)))
        logger.debug("scaling raster %dx%d -> %dx%d", image.width, image.height, target_width, new_h)
        image = image.convert("RGBA").resize((target_width, new_h), Image.LANCZOS)
    mask = to_monochrome(image)
    return RenderedArtifact(width=mask.width, height=mask.height, bitmap=pack_bits(mask), raw_bytes=raw_bytes)


class Rasterizer:
    """
    Markup in, RenderedArtifact out. Any engine failure surfaces as RenderError.
    """

    def __init__(self, engine: Optional[RenderEngine] = None, config: Optional[RenderConfig] = None) -> None:
        self.engine = engine or PlaywrightEngine()
        self.config = config or RenderConfig()

    def rasterize(self, markup: str, width: int, scale: Optional[float] = None) -> RenderedArtifact:
        scale = scale or self.config.scale
        started = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="printagent-") as tmp:
            path = os.path.join(tmp, "render.png")
            try:
                self.engine.screenshot(markup, width, scale, self.config.render_timeout, path)
            except RenderError:
                raise
            except Exception as e:
                raise RenderError(f"Render engine crashed: {e}") from e
            try:
                raw = Path(path).read_bytes()
                with Image.open(path) as img:
                    img.load()
                    artifact = artifact_from_image(img, width, raw_bytes=raw)
            except (OSError, ValueError) as e:
                raise RenderError(f"Unreadable render output: {e}") from e
        logger.info(
            "Rasterized %d bytes of markup to %dx%d in %.0fms",
            len(markup),
            artifact.width,
            artifact.height,
            (time.monotonic() - started) * 1000,
        )
        return artifact


__all__ = [
    "INK_THRESHOLD",
    "PlaywrightEngine",
    "Rasterizer",
    "RenderEngine",
    "artifact_from_image",
    "pack_bits",
    "to_monochrome",
]
