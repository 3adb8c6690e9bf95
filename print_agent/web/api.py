from __future__ import annotations

"""
JSON API (v1) for the Print Agent.

Endpoints:
- POST /api/v1/render       : Render a job to printer bytes (application/octet-stream)
- POST /api/v1/print        : Render a job and send it to job.printer {host, port}
- POST /api/v1/cache/clear  : Wipe the render cache (operational reset)
- GET  /api/v1/profiles     : List paper profiles

Payload shape (POST /api/v1/render, /api/v1/print):
{
  "type": "ticket" | "bill",
  "paper_width_profile": "MM_58" | "MM_76" | "MM_80",
  "render_mode": "text" | "image",
  "content": {...},
  "printer": {"host": str, "port": 9100}     # /print only
}
"""

from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify, request

from print_agent.core.config import PAPER_PROFILES
from print_agent.core.errors import ContentError, DeliveryError
from print_agent.printing.pipeline import RenderPipeline, RenderResult, parse_job
from print_agent.printing.transport import send_raw

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")

# RenderResult.error_kind -> HTTP status
_STATUS_BY_KIND = {
    "content": 400,
    "configuration": 400,
    "render": 502,
}


def _pipeline() -> RenderPipeline:
    return current_app.extensions["print_agent"]


def _json_error(msg: str, code: int = 400, **extra: Any):
    body: Dict[str, Any] = {"error": msg}
    body.update(extra)
    return jsonify(body), code


def _failure(result: RenderResult):
    body = result.to_dict()
    return jsonify(body), _STATUS_BY_KIND.get(result.error_kind or "", 500)


@api_bp.post("/render")
def render():
    """
    Render a job and return the raw printer stream.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    result = _pipeline().process(request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return Response(result.data, mimetype="application/octet-stream")


@api_bp.post("/print")
def print_job():
    """
    Render a job and deliver it to the printer named in the payload.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    try:
        job = parse_job(request.get_json(silent=True) or {})
    except ContentError as e:
        return _json_error(str(e), 400, ok=False, kind=e.kind)
    if job.printer is None:
        return _json_error("printer.host is required", 400, ok=False, kind="content")

    result = _pipeline().process(job)
    if not result.ok:
        return _failure(result)
    try:
        sent = send_raw(result.data, job.printer.host, job.printer.port, timeout=current_app.config["PRINTER_TIMEOUT"])
    except DeliveryError as e:
        current_app.logger.error("Delivery failed: %s", e)
        return _json_error(str(e), 503, kind=e.kind)
    return {"ok": True, "bytes": sent, "printer": f"{job.printer.host}:{job.printer.port}"}


@api_bp.post("/cache/clear")
def clear_cache():
    cache = _pipeline().cache
    removed = cache.clear() if cache is not None else 0
    current_app.logger.info("Render cache cleared via API (%d records)", removed)
    return {"ok": True, "removed": removed}


@api_bp.get("/profiles")
def profiles():
    return {name: p.model_dump() for name, p in PAPER_PROFILES.items()}
