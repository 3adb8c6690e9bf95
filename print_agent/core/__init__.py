"""
Core utilities for the Print Agent.

This package groups non-Flask helpers used across the agent:
- config: paths, JSON load/save, paper profiles and the immutable RenderConfig
- logging: Request ID aware logging filters/formatters and root logger config
- errors: the error taxonomy shared by layout, codec, rasterizer and cache

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    DEFAULT_PROFILE,
    PAPER_PROFILES,
    FontSizeCodes,
    PaperProfile,
    RenderConfig,
    default_cache_path,
    default_config_path,
    ensure_dir,
    get_cache_path,
    get_config_path,
    get_profile,
    load_config,
    load_render_config,
    save_config,
)
from .errors import (
    CacheError,
    ConfigurationError,
    ContentError,
    DeliveryError,
    PrintAgentError,
    RenderError,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "DEFAULT_PROFILE",
    "PAPER_PROFILES",
    "FontSizeCodes",
    "PaperProfile",
    "RenderConfig",
    "default_cache_path",
    "default_config_path",
    "ensure_dir",
    "get_cache_path",
    "get_config_path",
    "get_profile",
    "load_config",
    "load_render_config",
    "save_config",
    # errors
    "CacheError",
    "ConfigurationError",
    "ContentError",
    "DeliveryError",
    "PrintAgentError",
    "RenderError",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
