"""
Config utilities for the Print Agent.

Responsibilities:
- Resolve config/cache paths with environment and XDG support
- Provide JSON load/save helpers for the agent's saved config
- Build the immutable RenderConfig passed to every render call
- Hold the paper profile table (58/76/80mm)
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from print_agent.core.errors import ConfigurationError

ENV_PREFIX = "PRINTAGENT_"


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/printagent/config.json
    2) ~/.config/printagent/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "printagent" / "config.json")
    return str(Path.home() / ".config" / "printagent" / "config.json")


def default_cache_path() -> str:
    """
    Resolve the default render cache directory using:
    1) $XDG_CACHE_HOME/printagent/render-cache
    2) ~/.cache/printagent/render-cache
    """
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return str(Path(xdg) / "printagent" / "render-cache")
    return str(Path.home() / ".cache" / "printagent" / "render-cache")


def get_config_path() -> str:
    """
    Return the config path honoring PRINTAGENT_CONFIG_PATH override.
    """
    return os.environ.get("PRINTAGENT_CONFIG_PATH", default_config_path())


def get_cache_path() -> str:
    """
    Return the cache path honoring PRINTAGENT_CACHE_PATH override.
    """
    return os.environ.get("PRINTAGENT_CACHE_PATH", default_cache_path())


def ensure_dir(path: str) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


class FontSizeCodes(BaseModel):
    """ESC ! mode bytes used for each font size directive."""

    model_config = ConfigDict(frozen=True)

    normal: int = Field(default=0x00, ge=0, le=0xFF)
    medium: int = Field(default=0x10, ge=0, le=0xFF)
    large: int = Field(default=0x18, ge=0, le=0xFF)


class PaperProfile(BaseModel):
    """A named roll size: pixel width for raster output, characters per line for text."""

    model_config = ConfigDict(frozen=True)

    name: str
    pixel_width: int
    chars_per_line: int
    font_size_codes: FontSizeCodes = FontSizeCodes()

    def validate_geometry(self) -> "PaperProfile":
        """Raise ConfigurationError when the profile cannot drive a layout."""
        if self.chars_per_line <= 0:
            raise ConfigurationError(f"Paper profile {self.name!r} has chars_per_line={self.chars_per_line}")
        if self.pixel_width <= 0:
            raise ConfigurationError(f"Paper profile {self.name!r} has pixel_width={self.pixel_width}")
        return self


# Paper profiles, keyed by the paper-width identifier the producer sends.
_SIZE_CODES = FontSizeCodes(normal=0x00, medium=0x10, large=0x18)

PAPER_PROFILES: dict[str, PaperProfile] = {
    "MM_58": PaperProfile(name="MM_58", pixel_width=384, chars_per_line=32, font_size_codes=_SIZE_CODES),
    "MM_76": PaperProfile(name="MM_76", pixel_width=512, chars_per_line=42, font_size_codes=_SIZE_CODES),
    "MM_80": PaperProfile(name="MM_80", pixel_width=576, chars_per_line=48, font_size_codes=_SIZE_CODES),
}

DEFAULT_PROFILE = "MM_58"


def get_profile(name: Optional[str]) -> PaperProfile:
    """
    Return the paper profile for a width identifier.

    Accepts "MM_58", "58mm", "58" and similar spellings. Unknown names raise
    ConfigurationError rather than silently falling back to a default width.
    """
    key = str(name or DEFAULT_PROFILE).strip().upper().replace("MM", "").strip("_ ")
    profile = PAPER_PROFILES.get(f"MM_{key}")
    if profile is None:
        raise ConfigurationError(f"Unknown paper width profile: {name!r}")
    return profile


class RenderConfig(BaseModel):
    """
    Immutable render settings, built once and passed to each render call.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    printer_model: Literal["generic", "partial-cut", "no-cutter"] = "generic"
    cut_feed_lines: int = Field(default=4, ge=0, le=20)
    beep: bool = True
    encoding: str = "cp437"
    scale: float = Field(default=1.0, gt=0, le=4)
    render_timeout: float = Field(default=15.0, gt=0)
    cache_enabled: bool = True
    cache_max_age: float = Field(default=24 * 60 * 60, gt=0)
    cache_path: str = Field(default_factory=get_cache_path)
    currency: str = "Rs."
    thank_you: str = "Thank you!"

    @classmethod
    def from_sources(
        cls,
        saved: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "RenderConfig":
        """
        Merge defaults, the saved JSON config and PRINTAGENT_* environment
        variables (in that order) into one frozen RenderConfig.

        Raises ConfigurationError when a value fails validation.
        """
        merged: dict[str, Any] = {}
        if saved:
            render_section = saved.get("render", saved)
            if isinstance(render_section, Mapping):
                merged.update(render_section)
        for name, value in (env if env is not None else os.environ).items():
            if not name.startswith(ENV_PREFIX):
                continue
            field = name[len(ENV_PREFIX) :].lower()
            if field in cls.model_fields:
                merged[field] = value
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigurationError(f"Invalid render config {loc}: {first.get('msg')}") from e


def load_render_config(path: Optional[str] = None) -> RenderConfig:
    """
    Load the saved config (if any) and build a RenderConfig from it and the environment.
    """
    try:
        saved = load_config(path)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Unable to read config: {e}") from e
    return RenderConfig.from_sources(saved)


__all__ = [
    "DEFAULT_PROFILE",
    "FontSizeCodes",
    "PAPER_PROFILES",
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
]
