from __future__ import annotations

"""
Health endpoint for the Print Agent.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Render cache statistics and whether its directory is writable
- Active render settings and known paper profiles
"""

import os
from typing import Any, Dict

from flask import Blueprint, current_app

from print_agent.core.config import PAPER_PROFILES

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    pipeline = current_app.extensions["print_agent"]
    cfg = pipeline.config
    status: Dict[str, Any] = {
        "status": "ok",
        "profiles": sorted(PAPER_PROFILES),
        "printer_model": cfg.printer_model,
        "render_timeout": cfg.render_timeout,
    }

    cache = pipeline.cache
    if cache is None:
        status["cache"] = None
        return status, 200

    status["cache"] = cache.stats()
    directory = cache.directory
    if directory is not None:
        # Nearest existing ancestor; the cache creates missing directories on first write.
        existing = next((p for p in (directory, *directory.parents) if p.exists()), None)
        writable = existing is not None and os.access(existing, os.W_OK)
        status["cache_writable"] = writable
        if not writable:
            # Renders still work, every image job just re-rasterizes.
            status["status"] = "degraded"
            status["reason"] = "cache_not_writable"
    return status, 200
