"""
Error taxonomy for the Print Agent.

- ConfigurationError: invalid or missing paper profile / render settings (fatal, not retried)
- ContentError: ticket or bill content that layout cannot proceed with (fatal for the job)
- RenderError: markup-to-bitmap conversion failed (caller may fall back to text mode)
- CacheError: durable cache tier failure (absorbed by the cache, logged, treated as a miss)
- DeliveryError: raw TCP delivery to the printer failed
"""

from __future__ import annotations


class PrintAgentError(Exception):
    """Base class for all Print Agent errors."""

    kind = "error"


class ConfigurationError(PrintAgentError):
    kind = "configuration"


class ContentError(PrintAgentError):
    kind = "content"


class RenderError(PrintAgentError):
    kind = "render"


class CacheError(PrintAgentError):
    kind = "cache"


class DeliveryError(PrintAgentError):
    kind = "delivery"


__all__ = [
    "CacheError",
    "ConfigurationError",
    "ContentError",
    "DeliveryError",
    "PrintAgentError",
    "RenderError",
]
