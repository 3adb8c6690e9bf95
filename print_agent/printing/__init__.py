"""
Printing subsystem for the Print Agent.

This package groups the rendering pipeline:

- models: validated ticket/bill/job models and the RenderedArtifact
- layout: the layout engine (fixed-width text lines or HTML markup)
- codec: ESC/POS directive table, line encoding, raster framing and cut handling
- raster: markup-to-bitmap conversion through a headless browser
- cache: fingerprinted two-tier cache of rasterized renders
- pipeline: job description in, printer byte stream (or structured failure) out
- transport: raw TCP delivery of finished streams

For convenience, common functions are re-exported for easy import.
"""

from .cache import *
from .codec import *
from .layout import *
from .models import *
from .pipeline import *
from .raster import *
from .transport import *
