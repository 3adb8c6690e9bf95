"""
Content cache for rasterized renders.

Entries are keyed by a fingerprint over the canonicalized content, its type
tag and the active paper profile, so the same order at a different paper
width is a different entry. Lookups check memory first, then the durable
tier (one JSON file per fingerprint) and promote durable hits into memory.

Entries older than max_age are treated as absent; expired durable records
are deleted when read. Durable-tier failures are logged and treated as
misses, they never block rendering. Two identical jobs racing to fill the
same entry both render and the last write wins.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel

from print_agent.core.config import PaperProfile, RenderConfig
from print_agent.core.errors import CacheError
from print_agent.printing.models import RenderedArtifact

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 24 * 60 * 60
RECORD_SUFFIX = ".json"

# RenderConfig fields that show up in rendered markup or bitmaps
BITMAP_FIELDS = ("currency", "thank_you", "scale")


def canonical_json(value: Any) -> str:
    """
    Serialize with keys sorted at every depth and compact separators.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(content: Any, kind: str, profile: PaperProfile, config: Optional[RenderConfig] = None) -> str:
    """
    SHA-256 over the canonical JSON of {type, content, profile, render}.

    `render` holds the RenderConfig fields that change the bitmap (currency,
    thank-you text, scale), so a config change never serves a stale render.

    pydantic models are dumped first, so a validated model and the raw
    mapping it came from hash identically only when their fields match.
    """
    if isinstance(content, BaseModel):
        content = content.model_dump(mode="json")
    cfg = config or RenderConfig(cache_enabled=False, cache_path="")
    payload = {
        "type": kind,
        "content": content,
        "profile": profile.model_dump(mode="json"),
        "render": cfg.model_dump(mode="json", include=set(BITMAP_FIELDS)),
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    artifact: RenderedArtifact
    created_at: float


class ContentCache:
    """
    Two-tier (memory + directory) cache of RenderedArtifacts.

    Usage:
        cache = ContentCache.from_config(cfg)
        fp = fingerprint(ticket, "ticket", profile, cfg)
        artifact = cache.get(fp)
        if artifact is None:
            artifact = rasterizer.rasterize(markup, profile.pixel_width)
            cache.put(fp, artifact)
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory) if directory else None
        self.max_age = float(max_age)
        self.clock = clock
        self._memory: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls, config: RenderConfig) -> "ContentCache":
        return cls(directory=config.cache_path, max_age=config.cache_max_age)

    # Public API

    def get(self, fp: str) -> Optional[RenderedArtifact]:
        entry = self._memory.get(fp)
        if entry is not None:
            if self._expired(entry):
                self._memory.pop(fp, None)
            else:
                self.hits += 1
                logger.debug("cache hit (memory) %s", fp[:12])
                return entry.artifact

        entry = self._read_durable(fp)
        if entry is not None:
            self._memory[fp] = entry
            self.hits += 1
            logger.debug("cache hit (disk) %s", fp[:12])
            return entry.artifact

        self.misses += 1
        logger.debug("cache miss %s", fp[:12])
        return None

    def put(self, fp: str, artifact: RenderedArtifact) -> CacheEntry:
        entry = CacheEntry(fingerprint=fp, artifact=artifact, created_at=self.clock())
        self._memory[fp] = entry
        try:
            self._write_durable(entry)
        except CacheError as e:
            logger.warning("Render cache write failed for %s: %s", fp[:12], e)
        return entry

    def clear(self) -> int:
        """
        Wipe both tiers. Returns the number of durable records removed.
        """
        self._memory.clear()
        removed = 0
        if self.directory is None or not self.directory.exists():
            return removed
        for path in self.directory.glob(f"*{RECORD_SUFFIX}*"):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not remove cache record %s: %s", path.name, e)
        logger.info("Render cache cleared (%d durable records)", removed)
        return removed

    def stats(self) -> Dict[str, Any]:
        durable = 0
        if self.directory is not None and self.directory.exists():
            durable = sum(1 for _ in self.directory.glob(f"*{RECORD_SUFFIX}"))
        return {
            "memory_entries": len(self._memory),
            "durable_entries": durable,
            "hits": self.hits,
            "misses": self.misses,
            "max_age_seconds": self.max_age,
        }

    # Durable tier

    def _expired(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.created_at > self.max_age

    def _record_path(self, fp: str) -> Path:
        assert self.directory is not None
        return self.directory / f"{fp}{RECORD_SUFFIX}"

    def _read_durable(self, fp: str) -> Optional[CacheEntry]:
        if self.directory is None:
            return None
        path = self._record_path(fp)
        try:
            with path.open("r", encoding="utf-8") as f:
                record = json.load(f)
            entry = _entry_from_record(fp, record)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable cache record %s: %s", path.name, e)
            return None
        if self._expired(entry):
            logger.debug("cache record expired %s", fp[:12])
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Could not delete expired cache record %s: %s", path.name, e)
            return None
        return entry

    def _write_durable(self, entry: CacheEntry) -> None:
        """
        Write the record to a uniquely named temp file and os.replace() it into
        place so readers never observe a partially written record, even when
        two threads fill the same fingerprint at once.
        """
        if self.directory is None:
            return
        path = self._record_path(entry.fingerprint)
        tmp_path: Optional[Path] = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.directory,
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                json.dump(_record_from_entry(entry), f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            raise CacheError(str(e)) from e


def _record_from_entry(entry: CacheEntry) -> Dict[str, Any]:
    a = entry.artifact
    record: Dict[str, Any] = {
        "created_at": entry.created_at,
        "width": a.width,
        "height": a.height,
        "bitmap": base64.b64encode(a.bitmap).decode("ascii"),
    }
    if a.raw_bytes is not None:
        record["raw"] = base64.b64encode(a.raw_bytes).decode("ascii")
    return record


def _entry_from_record(fp: str, record: Mapping[str, Any]) -> CacheEntry:
    raw = record.get("raw")
    artifact = RenderedArtifact(
        width=int(record["width"]),
        height=int(record["height"]),
        bitmap=base64.b64decode(record["bitmap"], validate=True),
        raw_bytes=base64.b64decode(raw, validate=True) if raw else None,
    )
    if len(artifact.bitmap) != artifact.bytes_per_row * artifact.height:
        raise ValueError("bitmap size does not match its dimensions")
    return CacheEntry(fingerprint=fp, artifact=artifact, created_at=float(record["created_at"]))


__all__ = ["BITMAP_FIELDS", "CacheEntry", "ContentCache", "DEFAULT_MAX_AGE", "canonical_json", "fingerprint"]
